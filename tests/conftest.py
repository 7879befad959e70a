"""Pytest configuration and shared fixtures."""

import asyncio
import itertools
import json
import os
from typing import Any, Dict, List, Optional

os.environ.setdefault("PINATA_JWT", "test-jwt")

import httpx
import pytest

from edupin.core.config import Settings
from edupin.pinning.client import PinningClient

MB = 1024 * 1024

API_URL = "https://api.pinata.cloud/v3"
UPLOAD_URL = "https://uploads.pinata.cloud/v3"
DEDICATED_HOST = "my-school.mypinata.cloud"

_record_ids = itertools.count(1)


def file_record(
    size: int,
    mime_type: str = "video/mp4",
    cid: Optional[str] = None,
    file_id: Optional[str] = None,
    name: str = "file.bin",
) -> Dict[str, Any]:
    """A provider file record as returned by the listing endpoint."""
    index = next(_record_ids)
    return {
        "id": file_id or f"file-{index}",
        "cid": cid or f"bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbz{index}",
        "name": name,
        "size": size,
        "mime_type": mime_type,
        "created_at": "2024-05-01T10:00:00Z",
        "keyvalues": {},
    }


class FakePinata:
    """In-memory stand-in for the provider, served through httpx.MockTransport."""

    def __init__(self):
        self.files: Dict[str, List[Dict[str, Any]]] = {"public": [], "private": []}
        self.page_size: Optional[int] = None
        self.sign_status = 403
        self.signed_url = f"https://{DEDICATED_HOST}/ipfs/bafy-signed?X-Algorithm=PINATA1&X-Signature=abc"
        self.listing_status = 200
        self.upload_statuses: List[int] = []
        self.upload_response: Optional[Dict[str, Any]] = None
        self.gateway_status = 200
        self.gateway_error: Optional[Exception] = None
        self.latency = 0.0
        self.requests: List[httpx.Request] = []
        self.upload_bodies: List[bytes] = []
        self.groups: Dict[str, List[Dict[str, Any]]] = {"public": [], "private": []}
        self.group_members: Dict[str, List[str]] = {}
        self.contents: Dict[str, bytes] = {}
        self.content_type = "text/plain"

    def count(self, method: str, path_fragment: str) -> int:
        return sum(
            1 for r in self.requests if r.method == method and path_fragment in r.url.path
        )

    @property
    def uploads(self) -> int:
        return sum(1 for r in self.requests if r.url.host == "uploads.pinata.cloud")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.latency:
            await asyncio.sleep(self.latency)

        path = request.url.path
        if request.url.host == "uploads.pinata.cloud":
            return self._upload(request)
        if request.method == "HEAD":
            if self.gateway_error is not None:
                raise self.gateway_error
            return httpx.Response(self.gateway_status)
        if request.url.host != "api.pinata.cloud":
            return self._gateway(request)
        if path.startswith("/v3/groups/"):
            return self._groups(request)
        if path == "/v3/files/sign":
            return self._sign(request)
        if request.method == "GET" and path in ("/v3/files/public", "/v3/files/private"):
            return self._list(request, path.rsplit("/", 1)[-1])
        if path.startswith("/v3/files/"):
            return self._file(request)
        return httpx.Response(404, json={"error": "not found"})

    def _upload(self, request: httpx.Request) -> httpx.Response:
        self.upload_bodies.append(request.content)
        if self.upload_statuses:
            status = self.upload_statuses.pop(0)
            if status >= 400:
                return httpx.Response(status, json={"error": {"message": f"status {status}"}})
        data = self.upload_response or {
            "id": "uploaded-1",
            "cid": "bafybeihkoviema7g3gxyt6la7vd5ho32ictqbilu3wnlo3rs7ewhnp7lly",
            "name": "upload",
            "size": 0,
            "mime_type": "application/octet-stream",
            "is_duplicate": False,
        }
        return httpx.Response(200, json={"data": data})

    def _sign(self, request: httpx.Request) -> httpx.Response:
        if self.sign_status >= 400:
            return httpx.Response(self.sign_status, json={"error": "Forbidden"})
        return httpx.Response(200, json={"data": self.signed_url})

    def _list(self, request: httpx.Request, network: str) -> httpx.Response:
        if self.listing_status >= 400:
            return httpx.Response(self.listing_status, json={"error": "listing failed"})
        files = self.files[network]
        limit = int(request.url.params.get("limit", len(files) or 1))
        if self.page_size:
            limit = min(limit, self.page_size)
        offset = int(request.url.params.get("pageToken") or 0)
        page = files[offset:offset + limit]
        next_offset = offset + limit
        next_token = str(next_offset) if next_offset < len(files) else None
        return httpx.Response(200, json={"data": {"files": page, "next_page_token": next_token}})

    def _file(self, request: httpx.Request) -> httpx.Response:
        _, _, network, file_id = request.url.path.strip("/").split("/")
        for record in self.files.get(network, []):
            if record["id"] == file_id:
                if request.method == "DELETE":
                    self.files[network].remove(record)
                    return httpx.Response(200, json={"data": "OK"})
                if request.method == "PUT":
                    record.update(json.loads(request.content))
                return httpx.Response(200, json={"data": record})
        return httpx.Response(404, json={"error": {"message": "File not found"}})

    def _gateway(self, request: httpx.Request) -> httpx.Response:
        if self.gateway_error is not None:
            raise self.gateway_error
        if self.gateway_status >= 400:
            return httpx.Response(self.gateway_status)
        cid = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        return httpx.Response(
            200,
            content=self.contents.get(cid, b""),
            headers={"content-type": self.content_type},
        )

    def _groups(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        network = parts[2]
        if len(parts) == 3 and request.method == "POST":
            body = json.loads(request.content)
            group = {
                "id": f"group-{next(_record_ids)}",
                "name": body["name"],
                "is_public": body.get("is_public", False),
                "created_at": "2024-05-01T10:00:00Z",
            }
            self.groups[network].append(group)
            self.group_members[group["id"]] = []
            return httpx.Response(200, json={"data": group})
        if len(parts) == 3 and request.method == "GET":
            name = request.url.params.get("name")
            groups = [g for g in self.groups[network] if not name or name in g["name"]]
            return httpx.Response(200, json={"data": {"groups": groups, "next_page_token": None}})
        if len(parts) == 6 and parts[4] == "ids":
            group_id, file_id = parts[3], parts[5]
            if group_id not in self.group_members:
                return httpx.Response(404, json={"error": {"message": "Group not found"}})
            members = self.group_members[group_id]
            if request.method == "PUT" and file_id not in members:
                members.append(file_id)
            elif request.method == "DELETE" and file_id in members:
                members.remove(file_id)
            return httpx.Response(200, json={"data": "OK"})
        return httpx.Response(404, json={"error": "not found"})


def make_settings(**overrides: Any) -> Settings:
    values = {"PINATA_JWT": "test-jwt", "RETRY_BASE_DELAY_MS": 0}
    values.update(overrides)
    return Settings(**values)


def make_client(fake: FakePinata, **overrides: Any) -> PinningClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    return PinningClient(make_settings(**overrides), http_client=http_client)


@pytest.fixture
def fake_pinata():
    return FakePinata()


@pytest.fixture
def pinning_client(fake_pinata):
    return make_client(fake_pinata)


def multipart_keyvalues(body: bytes) -> Dict[str, str]:
    """Pull the keyvalues JSON out of a recorded multipart upload body."""
    marker = b'name="keyvalues"\r\n\r\n'
    start = body.index(marker) + len(marker)
    end = body.index(b"\r\n--", start)
    return json.loads(body[start:end].decode("utf-8"))
