"""
Caller-facing record gateways.

A gateway applies the reporting policy on top of a ``RecordRepository``:
what gets logged, what the user is told, and which failures reach the caller.

- ``get_all`` never raises; failures are reported and an empty list returned.
- ``get_by_id`` logs and re-raises, including ``RecordNotFoundError``.
- ``create``/``update`` raise on backend or transport failure but tolerate
  rejected records in the batch, reporting each field error.
- ``delete`` raises when any record of the batch is rejected.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from classbook.integrations.apper.errors import (
    BackendFailureError, PartialBatchFailureError, RecordErrorHandler, RecordTransportError
)
from classbook.schemas.records import AttendanceData
from classbook.services.notifications import LoggingNotifier
from classbook.services.record_repository import BatchOutcome, RecordRepository


logger = logging.getLogger(__name__)


class RecordGateway:
    """Gateway for one entity table."""

    def __init__(
        self,
        repository: RecordRepository,
        error_handler: Optional[RecordErrorHandler] = None,
        lock_upserts: bool = False
    ):
        self.repository = repository
        self.error_handler = error_handler or RecordErrorHandler(LoggingNotifier())
        self.lock_upserts = lock_upserts
        self._upsert_locks: Dict[Tuple, List[Any]] = {}

    @property
    def descriptor(self):
        return self.repository.descriptor

    @property
    def table(self) -> str:
        return self.repository.table

    async def get_all(self) -> List[Dict[str, Any]]:
        try:
            return await self.repository.fetch_all()
        except BackendFailureError as e:
            self.error_handler.log_error(e)
            self.error_handler.notify(e.message)
            return []
        except Exception as e:
            self.error_handler.log_error(e, self._context("fetch"))
            self.error_handler.notify(self.descriptor.fetch_failed_message)
            return []

    async def get_by_id(self, record_id: Any) -> Dict[str, Any]:
        try:
            return await self.repository.fetch_one(record_id)
        except Exception as e:
            self.error_handler.log_error(e, self._context("get_by_id", record_id))
            raise

    async def create(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Create one record; returns its data, or ``None`` if the backend rejected it."""
        return await self._apply("create", self.repository.create_many, [data])

    async def update(self, record_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace one record; every writable field is resent."""
        return await self._apply(
            "update", self.repository.update_many, [(record_id, data)], record_id=record_id
        )

    async def delete(self, record_id: Any) -> bool:
        outcome = await self._run("delete", self.repository.delete_many, [record_id], record_id)

        if outcome.failed:
            error = PartialBatchFailureError(
                self.descriptor.delete_failed_message,
                failures=outcome.failures_as_dicts(),
                table=self.table,
                operation="delete",
                record_id=record_id
            )
            self.error_handler.log_error(error)
            self.error_handler.notify(*[result.message for result in outcome.failed])
            raise error

        return True

    async def upsert(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update the first record matching the descriptor's upsert key, or create one.

        This is a read followed by a write with no atomicity: two concurrent
        upserts of the same key can both miss and both create. With
        ``lock_upserts`` the sequence is serialized per key inside this
        process only.
        """
        if not self.descriptor.upsert_key:
            raise ValueError(f"{self.table} has no upsert key")

        conditions = self.repository.key_conditions(data)
        if not self.lock_upserts:
            return await self._upsert(conditions, data)

        key = tuple(conditions.values())
        entry = self._upsert_locks.get(key)
        if entry is None:
            entry = self._upsert_locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                return await self._upsert(conditions, data)
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._upsert_locks.pop(key, None)

    async def _upsert(self, conditions: Dict[str, Any], data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        lookup_fields = ["Name"] + [spec.name for spec in self.descriptor.writable_fields]
        try:
            existing = await self.repository.fetch_all(where=conditions, fields=lookup_fields)
        except BackendFailureError as e:
            # An unanswered lookup is treated as "no match"
            logger.warning(f"Lookup on {self.table} failed, creating instead: {e.message}")
            existing = []
        except Exception as e:
            self.error_handler.log_error(e, self._context("upsert"))
            raise

        if not existing:
            return await self.create(data)

        record_id = existing[0].get("Id")
        if record_id is None:
            error = RecordTransportError(
                f"Malformed lookup response from {self.table}: matching record has no Id",
                table=self.table,
                operation="upsert"
            )
            self.error_handler.log_error(error)
            raise error
        return await self.update(record_id, data)

    async def _apply(self, operation: str, mutate, items, record_id: Any = None) -> Optional[Dict[str, Any]]:
        outcome = await self._run(operation, mutate, items, record_id)

        if outcome.failed:
            error = PartialBatchFailureError(
                f"Failed to {operation} {len(outcome.failed)} records: "
                f"{json.dumps(outcome.failures_as_dicts(), default=str)}",
                failures=outcome.failures_as_dicts(),
                table=self.table,
                operation=operation,
                record_id=record_id
            )
            self.error_handler.log_error(error)
            self.error_handler.notify(*outcome.failure_messages())

        return outcome.first_data

    async def _run(self, operation: str, mutate, items, record_id: Any = None) -> BatchOutcome:
        try:
            return await mutate(items)
        except BackendFailureError as e:
            self.error_handler.log_error(e, self._context(operation, record_id))
            self.error_handler.notify(e.message)
            raise
        except Exception as e:
            self.error_handler.log_error(e, self._context(operation, record_id))
            raise

    def _context(self, operation: str, record_id: Any = None) -> Dict[str, Any]:
        context = {'table': self.table, 'operation': operation}
        if record_id is not None:
            context['record_id'] = record_id
        return context


class AttendanceGateway(RecordGateway):
    """Attendance gateway with the (studentId, date) upsert."""

    async def update_by_student_and_date(
        self,
        student_id: Any,
        date: str,
        status: str,
        reason: str = ""
    ) -> Optional[Dict[str, Any]]:
        """
        Record a student's attendance status for a date.

        Updates the existing record for ``(student_id, date)`` when there is
        one, otherwise creates it. See ``upsert`` for the concurrency caveat.
        """
        data: AttendanceData = {
            "studentId": student_id,
            "date": date,
            "status": status,
            "reason": reason,
        }
        return await self.upsert(data)
