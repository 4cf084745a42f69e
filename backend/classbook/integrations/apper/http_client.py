"""
Apper record service HTTP client.
"""

import asyncio
import logging
import math
from typing import Dict, Any, Optional

import aiohttp

from classbook.core.config import Settings
from classbook.integrations.apper.errors import RecordTransportError


logger = logging.getLogger(__name__)


def to_wire(value: Any) -> Any:
    """Replace non-finite floats with None so the body is strict JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


class ApperClient:
    """
    aiohttp implementation of the record client protocol.

    Each table is exposed under
    ``{base_url}/projects/{project_id}/tables/{table}/records``.
    Use as an async context manager, or call ``open()``/``close()``.
    """

    def __init__(
        self,
        project_id: str,
        public_key: str,
        base_url: str = "https://api.apper.io/v1",
        timeout: int = 30
    ):
        self.project_id = project_id
        self.public_key = public_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._http_session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApperClient":
        return cls(
            project_id=settings.APPER_PROJECT_ID,
            public_key=settings.APPER_PUBLIC_KEY,
            base_url=settings.APPER_BASE_URL,
            timeout=settings.APPER_TIMEOUT,
        )

    def is_configured(self) -> bool:
        return bool(self.project_id and self.public_key and self.base_url)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self) -> None:
        if self._http_session is not None:
            return
        self._http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={
                'User-Agent': 'Classbook-Records/1.0',
                'Accept': 'application/json',
                'Content-Type': 'application/json',
                'X-Apper-Project-Id': self.project_id,
                'X-Apper-Public-Key': self.public_key,
            }
        )
        logger.info(f"Apper client session opened for project {self.project_id}")

    async def close(self) -> None:
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    # Record protocol

    async def fetch_records(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_api_request('POST', f"{self._table_path(table)}/query", json=params)

    async def get_record_by_id(
        self, table: str, record_id: Any, params: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await self._make_api_request(
            'POST',
            f"{self._table_path(table)}/{record_id}/query",
            json=params,
            not_found_as_none=True
        )

    async def create_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_api_request('POST', self._table_path(table), json=params)

    async def update_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_api_request('PUT', self._table_path(table), json=params)

    async def delete_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_api_request('DELETE', self._table_path(table), json=params)

    def _table_path(self, table: str) -> str:
        return f"/projects/{self.project_id}/tables/{table}/records"

    async def _make_api_request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict] = None,
        not_found_as_none: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Send a request and return the decoded JSON envelope."""
        if not self._http_session:
            raise RuntimeError("HTTP session not initialized")

        url = f"{self.base_url}{endpoint}"

        try:
            async with self._http_session.request(method, url, json=to_wire(json)) as response:
                if response.status == 404 and not_found_as_none:
                    return None

                if response.status >= 400:
                    # The service reports validation failures as a success=false envelope
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = None
                    if isinstance(body, dict) and 'success' in body:
                        return body

                    error_text = await response.text()
                    raise RecordTransportError(
                        f"API request failed: {response.status} - {error_text}",
                        operation=f"{method} {endpoint}",
                        details={'status': response.status}
                    )

                return await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise RecordTransportError(
                f"HTTP client error: {e}",
                operation=f"{method} {endpoint}",
                original_exception=e
            )
        except asyncio.TimeoutError as e:
            raise RecordTransportError(
                f"Request timed out after {self.timeout}s",
                operation=f"{method} {endpoint}",
                original_exception=e
            )
