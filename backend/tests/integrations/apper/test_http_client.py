"""
Tests for the Apper HTTP client.
"""

import asyncio
import json
import math
import pytest
from unittest.mock import Mock, AsyncMock, MagicMock

import aiohttp

from classbook.core.config import Settings
from classbook.core.entity_config import STUDENT_DESCRIPTOR
from classbook.integrations.apper.errors import RecordErrorHandler, RecordTransportError
from classbook.integrations.apper.http_client import ApperClient, to_wire
from classbook.services.notifications import CollectingNotifier
from classbook.services.record_gateway import RecordGateway
from classbook.services.record_repository import RecordRepository


def make_response(status=200, body=None, text=""):
    """Build a mocked aiohttp response usable as an async context manager."""
    response = Mock()
    response.status = status
    response.json = AsyncMock(return_value=body)
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__.return_value = response
    context.__aexit__.return_value = False
    return context


@pytest.fixture
def client():
    """Create a client with a mocked HTTP session."""
    client = ApperClient(
        project_id="proj_1",
        public_key="pk_1",
        base_url="https://records.school.edu/api/"
    )
    client._http_session = Mock()
    return client


class TestApperClient:
    """Test request mapping and error translation."""

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            APPER_PROJECT_ID="proj_9",
            APPER_PUBLIC_KEY="pk_9",
            APPER_BASE_URL="https://records.school.edu",
            APPER_TIMEOUT=5
        )

        client = ApperClient.from_settings(settings)

        assert client.project_id == "proj_9"
        assert client.base_url == "https://records.school.edu"
        assert client.timeout == 5
        assert client.is_configured() is True

    def test_not_configured_without_key(self):
        assert ApperClient(project_id="proj_1", public_key="").is_configured() is False

    @pytest.mark.asyncio
    async def test_session_lifecycle(self):
        async with ApperClient("proj_1", "pk_1") as client:
            assert isinstance(client._http_session, aiohttp.ClientSession)
        assert client._http_session is None

    @pytest.mark.asyncio
    async def test_requires_open_session(self):
        with pytest.raises(RuntimeError, match="HTTP session not initialized"):
            await ApperClient("proj_1", "pk_1").fetch_records("student", {})

    @pytest.mark.asyncio
    async def test_fetch_records(self, client):
        body = {"success": True, "data": [{"Id": 1}]}
        client._http_session.request.return_value = make_response(body=body)
        params = {"fields": [{"field": {"Name": "Name"}}]}

        result = await client.fetch_records("student", params)

        assert result == body
        client._http_session.request.assert_called_once_with(
            'POST',
            "https://records.school.edu/api/projects/proj_1/tables/student/records/query",
            json=params
        )

    @pytest.mark.asyncio
    async def test_mutations_use_expected_methods(self, client):
        client._http_session.request.side_effect = [
            make_response(body={"success": True, "results": []}) for _ in range(3)
        ]

        await client.create_record("grade", {"records": []})
        await client.update_record("grade", {"records": []})
        await client.delete_record("grade", {"RecordIds": [3]})

        methods = [c.args[0] for c in client._http_session.request.call_args_list]
        assert methods == ['POST', 'PUT', 'DELETE']
        assert all(
            c.args[1].endswith("/tables/grade/records")
            for c in client._http_session.request.call_args_list
        )

    @pytest.mark.asyncio
    async def test_get_record_by_id_not_found(self, client):
        client._http_session.request.return_value = make_response(status=404, text="missing")

        result = await client.get_record_by_id("student", 5, {"fields": []})

        assert result is None
        url = client._http_session.request.call_args.args[1]
        assert url.endswith("/tables/student/records/5/query")

    @pytest.mark.asyncio
    async def test_error_status_with_envelope_is_returned(self, client):
        body = {"success": False, "message": "Invalid field: gradeLevel"}
        client._http_session.request.return_value = make_response(status=422, body=body)

        result = await client.create_record("student", {"records": [{}]})

        assert result == body

    @pytest.mark.asyncio
    async def test_error_status_without_envelope_raises(self, client):
        client._http_session.request.return_value = make_response(status=502, body=None, text="Bad Gateway")

        with pytest.raises(RecordTransportError, match="502 - Bad Gateway") as exc_info:
            await client.fetch_records("student", {})

        assert exc_info.value.details['status'] == 502

    @pytest.mark.asyncio
    async def test_client_error_translated(self, client):
        client._http_session.request.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(RecordTransportError, match="HTTP client error") as exc_info:
            await client.delete_record("class", {"RecordIds": [1]})

        assert isinstance(exc_info.value.original_exception, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    async def test_timeout_translated(self, client):
        context = make_response()
        context.__aenter__.side_effect = asyncio.TimeoutError()
        client._http_session.request.return_value = context

        with pytest.raises(RecordTransportError, match="timed out"):
            await client.fetch_records("class", {})

    @pytest.mark.asyncio
    async def test_unparseable_number_sent_as_null(self, client):
        body = {
            "success": True,
            "results": [{
                "success": False,
                "errors": [{"fieldLabel": "Grade Level", "message": "is required"}],
            }],
        }
        client._http_session.request.return_value = make_response(body=body)
        notifier = CollectingNotifier()
        students = RecordGateway(
            RecordRepository(client, STUDENT_DESCRIPTOR), RecordErrorHandler(notifier)
        )

        assert await students.create({"name": "Ada", "gradeLevel": "abc"}) is None

        sent = client._http_session.request.call_args.kwargs['json']
        json.dumps(sent, allow_nan=False)
        assert sent["records"][0]["gradeLevel"] is None
        assert notifier.messages == ["Grade Level: is required"]


class TestToWire:
    """Test request body normalization."""

    def test_non_finite_floats_become_none(self):
        payload = {"records": [{"score": math.nan, "maxScore": math.inf, "nested": (1.5, -math.inf)}]}

        assert to_wire(payload) == {"records": [{"score": None, "maxScore": None, "nested": [1.5, None]}]}

    def test_plain_values_untouched(self):
        payload = {"RecordIds": [1, 2], "Name": "Ada", "active": True}
        assert to_wire(payload) == payload
        assert to_wire(None) is None
