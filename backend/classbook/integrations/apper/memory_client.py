"""
Dict-backed record client for local development and tests.
"""

import asyncio
import copy
import logging
import math
from typing import Dict, Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


class InMemoryRecordClient:
    """
    In-memory implementation of the record client protocol.

    Behaves like the hosted service for the operations the gateways use:
    server-assigned integer ``Id``, field selection, ``EqualTo`` filters,
    per-record batch results and rejection of non-numeric (NaN) values.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._tables: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._next_id = 1
        self.call_log: List[Tuple[str, str, Any]] = []

    def seed(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert records directly, bypassing validation. Returns stored copies."""
        stored = []
        for record in records:
            row = {'Tags': '', **copy.deepcopy(record)}
            row['Id'] = row.get('Id') or self._allocate_id()
            self._next_id = max(self._next_id, row['Id'] + 1)
            self._table(table)[row['Id']] = row
            stored.append(copy.deepcopy(row))
        logger.debug(f"Seeded {len(stored)} records into {table}")
        return stored

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._table(table).values()]

    async def fetch_records(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._tick('fetch_records', table, params)

        matched = []
        for row in self._table(table).values():
            ok, message = self._matches(row, params.get('where') or [])
            if message:
                return {'success': False, 'message': message}
            if ok:
                matched.append(self._project(row, params))
        return {'success': True, 'data': matched}

    async def get_record_by_id(
        self, table: str, record_id: Any, params: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        await self._tick('get_record_by_id', table, record_id)

        row = self._table(table).get(self._normalize_id(record_id))
        if row is None:
            return None
        return {'success': True, 'data': self._project(row, params)}

    async def create_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._tick('create_record', table, params)

        results = []
        for record in params.get('records', []):
            errors = self._validate(record)
            if errors:
                results.append({'success': False, 'errors': errors})
                continue
            row = {'Tags': '', **copy.deepcopy(record)}
            row['Id'] = self._allocate_id()
            self._table(table)[row['Id']] = row
            results.append({'success': True, 'data': copy.deepcopy(row)})
        return {'success': True, 'results': results}

    async def update_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._tick('update_record', table, params)

        results = []
        for record in params.get('records', []):
            record_id = self._normalize_id(record.get('Id'))
            existing = self._table(table).get(record_id)
            if existing is None:
                results.append({
                    'success': False,
                    'message': f"Record with Id {record.get('Id')} does not exist"
                })
                continue
            errors = self._validate(record)
            if errors:
                results.append({'success': False, 'errors': errors})
                continue
            row = {'Tags': existing.get('Tags', ''), **copy.deepcopy(record)}
            row['Id'] = record_id
            self._table(table)[record_id] = row
            results.append({'success': True, 'data': copy.deepcopy(row)})
        return {'success': True, 'results': results}

    async def delete_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._tick('delete_record', table, params)

        results = []
        for record_id in params.get('RecordIds', []):
            if self._table(table).pop(self._normalize_id(record_id), None) is None:
                results.append({
                    'success': False,
                    'message': f"Record with Id {record_id} does not exist"
                })
            else:
                results.append({'success': True})
        return {'success': True, 'results': results}

    def _allocate_id(self) -> int:
        record_id = self._next_id
        self._next_id += 1
        return record_id

    def _table(self, table: str) -> Dict[int, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    async def _tick(self, operation: str, table: str, payload: Any) -> None:
        self.call_log.append((operation, table, copy.deepcopy(payload)))
        # Always yield so concurrent callers interleave like real round-trips
        await asyncio.sleep(self.latency)

    @staticmethod
    def _normalize_id(record_id: Any) -> Any:
        try:
            return int(record_id)
        except (TypeError, ValueError):
            return record_id

    @staticmethod
    def _matches(row: Dict[str, Any], where: List[Dict[str, Any]]) -> Tuple[bool, Optional[str]]:
        for condition in where:
            operator = condition.get('Operator')
            if operator != 'EqualTo':
                return False, f"Unsupported operator: {operator}"
            if row.get(condition.get('FieldName')) not in condition.get('Values', []):
                return False, None
        return True, None

    @staticmethod
    def _project(row: Dict[str, Any], params: Dict[str, Any]) -> Dict[str, Any]:
        names = [f['field']['Name'] for f in params.get('fields', [])]
        if not names:
            return copy.deepcopy(row)
        projected = {'Id': row['Id']}
        for name in names:
            if name in row:
                projected[name] = copy.deepcopy(row[name])
        return projected

    @staticmethod
    def _validate(record: Dict[str, Any]) -> List[Dict[str, str]]:
        errors = []
        for key, value in record.items():
            if isinstance(value, float) and math.isnan(value):
                errors.append({'fieldLabel': key, 'message': 'Invalid number'})
        return errors
