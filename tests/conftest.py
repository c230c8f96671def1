import asyncio
import json
from dataclasses import dataclass, field
from typing import Dict, List

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from helix_alm.api import HelixALMAPI
from helix_alm.config import ClientConfig
from helix_alm.models import FIELD_VALUE_TYPES

API_ROOT = "/helix-alm/api/v0/"
PROJECT = "Traditional Template"
PROJECT_PATH = API_ROOT + PROJECT


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: Dict[str, str]
    headers: Dict[str, str]
    body: bytes

    def json(self):
        return json.loads(self.body.decode("utf-8"))


@dataclass
class CannedResponse:
    status: int = 200
    body: str = ""
    delay: float = 0.0


@dataclass
class FakeHelixServer:
    """Serves canned responses per (method, path) and records each request."""

    routes: Dict[tuple, List[CannedResponse]] = field(default_factory=dict)
    requests: List[RecordedRequest] = field(default_factory=list)
    base_url: str = ""

    def respond(self, method, path, status=200, json_body=None, body="", delay=0.0):
        """Queue a response; the last queued response for a route repeats."""
        if json_body is not None:
            body = json.dumps(json_body)
        self.routes.setdefault((method, path), []).append(
            CannedResponse(status=status, body=body, delay=delay)
        )

    def requests_to(self, method, path):
        return [r for r in self.requests if r.method == method and r.path == path]

    async def handle(self, request):
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                query=dict(request.query),
                headers=dict(request.headers),
                body=await request.read(),
            )
        )
        queue = self.routes.get((request.method, request.path))
        if not queue:
            return web.Response(status=418, text="no canned response")
        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        if canned.delay:
            await asyncio.sleep(canned.delay)
        return web.Response(
            status=canned.status,
            body=canned.body.encode("utf-8"),
            content_type="application/json",
        )


@pytest_asyncio.fixture
async def helix_server():
    fake = FakeHelixServer()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", fake.handle)
    server = TestServer(app)
    await server.start_server()
    fake.base_url = str(server.make_url(API_ROOT))
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def helix_api(helix_server):
    api = HelixALMAPI(ClientConfig(base_url=helix_server.base_url, timeout=5))
    async with api:
        yield api


def field_json(field_id, label, field_type, value):
    """A field as the server sends it: every value slot present, one filled."""
    data = {"id": field_id, "label": label, "type": field_type}
    for slot in FIELD_VALUE_TYPES:
        data[slot] = None
    data[field_type] = value
    return data


@pytest.fixture
def access_token_json():
    return {
        "tokenType": "Bearer",
        "expiresOn": "2099-01-01T12:00:00Z",
        "accessToken": "abc123",
    }


@pytest.fixture
def priority_issue_json():
    return {
        "id": 1,
        "number": 11,
        "tag": "IS-11",
        "self": "https://localhost:8443/helix-alm/api/v0/Traditional%20Template/issues/1",
        "fields": [
            field_json(38, "Priority", "menuItem", {"id": 3, "label": "Immediate"}),
        ],
    }


@pytest.fixture
def found_by_issue_json():
    return {
        "id": 1,
        "number": 11,
        "tag": "IS-11",
        "foundByRecords": {
            "self": "https://localhost:8443/helix-alm/api/v0/Traditional%20Template/issues/1/foundByRecords",
            "foundByRecordsData": [
                {
                    "id": 1,
                    "foundBy": {
                        "lastName": "Lee",
                        "firstName": "Ann",
                        "id": 7,
                        "username": "alee",
                    },
                    "dateFound": "2019-08-01",
                    "versionFound": "1.0",
                    "description": {"text": "Crash on save", "isFormatted": False},
                },
                {
                    "id": 2,
                    "foundBy": {"id": 9, "username": "bkim"},
                    "dateFound": "2019-08-03",
                    "description": {
                        "text": "<p>Also on <b>export</b></p>",
                        "isFormatted": True,
                    },
                    "reproduced": {"id": 2, "label": "Always"},
                },
            ],
        },
    }
