"""
Generic data access over the backend record protocol.

``RecordRepository`` turns caller data into protocol parameters, calls the
client and validates the response. It raises typed ``RecordError``s and never
logs to the user; deciding what to show is left to the gateway layer.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from classbook.core.entity_config import EntityDescriptor, RecordClientProtocol
from classbook.integrations.apper.errors import (
    RecordError, BackendFailureError, RecordNotFoundError, RecordTransportError
)
from classbook.schemas.records import BatchResponse, FetchResponse, RecordResponse, RecordResult


logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


def build_fields(names: Sequence[str]) -> List[Dict[str, Any]]:
    """Field-selection list in the backend's ``{"field": {"Name": ...}}`` shape."""
    return [{"field": {"Name": name}} for name in names]


def build_where(conditions: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Equality filters, all of which must hold."""
    return [
        {"FieldName": name, "Operator": "EqualTo", "Values": [value]}
        for name, value in conditions.items()
    ]


@dataclass
class BatchOutcome:
    """Batch mutation results partitioned by outcome."""
    succeeded: List[RecordResult] = field(default_factory=list)
    failed: List[RecordResult] = field(default_factory=list)

    @property
    def first_data(self) -> Optional[Dict[str, Any]]:
        return self.succeeded[0].data if self.succeeded else None

    def failure_messages(self) -> List[str]:
        """Field-level errors as ``label: message``, then the record-level message."""
        messages = []
        for result in self.failed:
            for error in result.errors or []:
                parts = [p for p in (error.fieldLabel, error.message) if p]
                if parts:
                    messages.append(": ".join(parts))
            if result.message:
                messages.append(result.message)
        return messages

    def failures_as_dicts(self) -> List[Dict[str, Any]]:
        return [result.model_dump(exclude_none=True) for result in self.failed]


def reconcile_batch(response: BatchResponse) -> BatchOutcome:
    outcome = BatchOutcome()
    for result in response.results or []:
        if result.success:
            outcome.succeeded.append(result)
        else:
            outcome.failed.append(result)
    return outcome


class RecordRepository:
    """Data access for one backend table described by an ``EntityDescriptor``."""

    def __init__(self, client: RecordClientProtocol, descriptor: EntityDescriptor):
        self.client = client
        self.descriptor = descriptor

    @property
    def table(self) -> str:
        return self.descriptor.table

    # Reads

    async def fetch_all(
        self,
        where: Optional[Dict[str, Any]] = None,
        fields: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch every record of the table, optionally filtered.

        Args:
            where: Field name to required value; all conditions must match
            fields: Field names to request instead of the descriptor's read set

        Returns:
            List of record dicts, empty when the backend sends no data

        Raises:
            BackendFailureError: the backend answered ``success: false``
            RecordTransportError: the call itself failed
        """
        params: Dict[str, Any] = {"fields": build_fields(fields or self.descriptor.read_fields)}
        if where:
            params["where"] = build_where(where)

        raw = await self._call("fetch", self.client.fetch_records, self.table, params)
        response = self._parse(FetchResponse, raw, "fetch")

        if not response.success:
            raise BackendFailureError(
                response.message or f"Failed to fetch {self.table} records",
                table=self.table,
                operation="fetch"
            )
        return response.data or []

    async def fetch_one(self, record_id: Any) -> Dict[str, Any]:
        """Fetch a single record; ``RecordNotFoundError`` when there is no data."""
        params = {"fields": build_fields(self.descriptor.read_fields)}

        raw = await self._call(
            "get_by_id", self.client.get_record_by_id, self.table, record_id, params,
            record_id=record_id
        )
        response = self._parse(RecordResponse, raw, "get_by_id", record_id) if raw else None

        if response is None or not response.data:
            raise RecordNotFoundError(
                self.descriptor.not_found_message,
                table=self.table,
                operation="get_by_id",
                record_id=record_id
            )
        return response.data

    # Writes

    def build_payload(self, data: Dict[str, Any], record_id: Any = None) -> Dict[str, Any]:
        """Build a full record: synthesized ``Name`` plus every writable field."""
        payload: Dict[str, Any] = {}
        if record_id is not None:
            payload["Id"] = record_id
        payload["Name"] = self.descriptor.synthesize_name(data)
        for spec in self.descriptor.writable_fields:
            payload[spec.name] = spec.prepare(data.get(spec.name))
        return payload

    def key_conditions(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Upsert key values, coerced the same way they are written."""
        specs = {spec.name: spec for spec in self.descriptor.fields}
        return {name: specs[name].prepare(data.get(name)) for name in self.descriptor.upsert_key}

    async def create_many(self, items: Iterable[Dict[str, Any]]) -> BatchOutcome:
        records = [self.build_payload(data) for data in items]
        return await self._mutate("create", self.client.create_record, {"records": records})

    async def update_many(self, items: Iterable[Tuple[Any, Dict[str, Any]]]) -> BatchOutcome:
        records = [self.build_payload(data, record_id=record_id) for record_id, data in items]
        return await self._mutate("update", self.client.update_record, {"records": records})

    async def delete_many(self, record_ids: Iterable[Any]) -> BatchOutcome:
        return await self._mutate("delete", self.client.delete_record, {"RecordIds": list(record_ids)})

    async def _mutate(self, operation: str, method, params: Dict[str, Any]) -> BatchOutcome:
        raw = await self._call(operation, method, self.table, params)
        response = self._parse(BatchResponse, raw, operation)

        if not response.success:
            raise BackendFailureError(
                response.message or f"Failed to {operation} {self.table} records",
                table=self.table,
                operation=operation
            )
        if response.results is None:
            logger.debug(f"{operation} on {self.table} returned no per-record results")
            return BatchOutcome()
        return reconcile_batch(response)

    async def _call(self, operation: str, method, *args, record_id: Any = None) -> Any:
        try:
            return await method(*args)
        except RecordError as e:
            e.table = e.table or self.table
            e.operation = e.operation or operation
            e.record_id = e.record_id if e.record_id is not None else record_id
            raise
        except Exception as e:
            raise RecordTransportError(
                f"{operation} on {self.table} failed: {e}",
                table=self.table,
                operation=operation,
                record_id=record_id,
                original_exception=e
            ) from e

    def _parse(
        self,
        model: Type[ResponseModel],
        raw: Any,
        operation: str,
        record_id: Any = None
    ) -> ResponseModel:
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise RecordTransportError(
                f"Malformed {operation} response from {self.table}",
                table=self.table,
                operation=operation,
                record_id=record_id,
                details={'response': repr(raw)[:500]},
                original_exception=e
            ) from e
