"""
Record service facade wiring one backend client into the entity gateways.
"""

import logging
from typing import Dict, Optional, Type

from classbook.core.config import Settings, settings as default_settings
from classbook.core.entity_config import (
    EntityConfigManager, RecordClientProtocol, entity_config_manager
)
from classbook.integrations.apper.errors import RecordErrorHandler
from classbook.integrations.apper.http_client import ApperClient
from classbook.services.notifications import BaseNotifier, LoggingNotifier
from classbook.services.record_gateway import AttendanceGateway, RecordGateway
from classbook.services.record_repository import RecordRepository


logger = logging.getLogger(__name__)


class RecordServiceError(Exception):
    """Base exception for record service errors."""
    pass


class UnknownEntityError(RecordServiceError, KeyError):
    """Exception raised when no gateway exists for a table."""
    pass


class RecordService:
    """
    Entry point for the student, class, grade and attendance gateways.

    The client is injected; every gateway shares it and a single error
    handler. Descriptors come from ``entity_config_manager`` unless another
    manager is given.
    """

    _gateway_classes: Dict[str, Type[RecordGateway]] = {
        "attendance": AttendanceGateway,
    }

    def __init__(
        self,
        client: RecordClientProtocol,
        notifier: Optional[BaseNotifier] = None,
        error_handler: Optional[RecordErrorHandler] = None,
        config_manager: Optional[EntityConfigManager] = None,
        lock_upserts: bool = False
    ):
        self.client = client
        self.error_handler = error_handler or RecordErrorHandler(notifier or LoggingNotifier())
        self.config_manager = config_manager or entity_config_manager

        self._gateways: Dict[str, RecordGateway] = {}
        for table, descriptor in self.config_manager.list_descriptors().items():
            errors = self.config_manager.validate_descriptor(descriptor)
            if errors:
                raise RecordServiceError(
                    f"Descriptor validation failed for {table}: {'; '.join(errors)}"
                )
            gateway_class = self._gateway_classes.get(table, RecordGateway)
            self._gateways[table] = gateway_class(
                RecordRepository(client, descriptor),
                self.error_handler,
                lock_upserts=lock_upserts
            )

        logger.info(f"Record service initialized for tables: {', '.join(self._gateways)}")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        notifier: Optional[BaseNotifier] = None
    ) -> "RecordService":
        """Build a service backed by the Apper HTTP client."""
        settings = settings or default_settings
        client = ApperClient.from_settings(settings)
        if not client.is_configured():
            logger.warning("Apper client is missing a project id or public key")
        return cls(
            client,
            notifier=notifier,
            lock_upserts=settings.ATTENDANCE_UPSERT_LOCKING
        )

    async def __aenter__(self):
        opener = getattr(self.client, "open", None)
        if opener is not None:
            await opener()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        closer = getattr(self.client, "close", None)
        if closer is not None:
            await closer()

    def gateway_for(self, table: str) -> RecordGateway:
        gateway = self._gateways.get(table)
        if gateway is None:
            raise UnknownEntityError(f"No gateway registered for table: {table}")
        return gateway

    @property
    def tables(self):
        return list(self._gateways)

    @property
    def students(self) -> RecordGateway:
        return self.gateway_for("student")

    @property
    def classes(self) -> RecordGateway:
        return self.gateway_for("class")

    @property
    def grades(self) -> RecordGateway:
        return self.gateway_for("grade")

    @property
    def attendance(self) -> AttendanceGateway:
        return self.gateway_for("attendance")
