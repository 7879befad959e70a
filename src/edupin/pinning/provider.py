"""Pinning provider HTTP API.

Thin wrappers over the provider's v3 endpoints. Every call goes through the
:class:`RequestExecutor`, so retry and timeout policy live in one place.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from edupin.pinning.content import NormalizedContent, Visibility
from edupin.pinning.exceptions import InvalidProviderResponse
from edupin.pinning.executor import (
    CallKind,
    RequestExecutor,
    RetryableCall,
    response_body,
)

logger = logging.getLogger(__name__)


@dataclass
class PinnedFile:
    """One object as reported by the provider."""

    id: str
    cid: str
    name: str = ""
    size: int = 0
    mime_type: str = ""
    visibility: Visibility = Visibility.PUBLIC
    created_at: Optional[str] = None
    group_id: Optional[str] = None
    keyvalues: Dict[str, str] = field(default_factory=dict)
    is_duplicate: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any], visibility: Visibility) -> "PinnedFile":
        """Build from a provider file record; ``cid`` is mandatory."""
        if not isinstance(data, dict) or not data.get("cid"):
            raise InvalidProviderResponse(
                "Provider response is missing the content id",
                "Retry the upload; if this persists the provider API may have changed",
            )
        keyvalues = data.get("keyvalues") or {}
        try:
            size = int(data.get("size") or 0)
        except (TypeError, ValueError):
            raise InvalidProviderResponse(
                f"Provider returned a malformed size for {data['cid']}: {data.get('size')!r}"
            )
        if not isinstance(keyvalues, dict):
            raise InvalidProviderResponse(f"Provider returned malformed keyvalues for {data['cid']}")

        return cls(
            id=str(data.get("id") or ""),
            cid=str(data["cid"]),
            name=str(data.get("name") or ""),
            size=size,
            mime_type=str(data.get("mime_type") or ""),
            visibility=visibility,
            created_at=data.get("created_at"),
            group_id=data.get("group_id"),
            keyvalues={str(key): str(value) for key, value in keyvalues.items()},
            is_duplicate=bool(data.get("is_duplicate")),
        )


@dataclass
class FilePage:
    """One page of a file listing."""

    files: List[PinnedFile]
    visibility: Visibility
    next_page_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token)


@dataclass
class PinnedGroup:
    """A provider group used to collect related files."""

    id: str
    name: str
    visibility: Visibility
    is_public: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any], visibility: Visibility) -> "PinnedGroup":
        if not isinstance(data, dict) or not data.get("id"):
            raise InvalidProviderResponse("Provider group record is missing its id")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            visibility=visibility,
            is_public=bool(data.get("is_public")),
            created_at=data.get("created_at"),
        )


@dataclass
class GroupPage:
    groups: List[PinnedGroup]
    visibility: Visibility
    next_page_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token)


@dataclass
class FileContent:
    """Bytes fetched from a gateway and the URL they came from."""

    url: str
    content: bytes
    media_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


def _unwrap(body: Any) -> Any:
    """Return the ``data`` envelope of a v3 response when present."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class PinningProviderApi:
    """Provider endpoints used by the pinning client."""

    def __init__(
        self,
        executor: RequestExecutor,
        jwt: str,
        api_url: str,
        upload_url: str,
    ):
        self.executor = executor
        self.jwt = jwt
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.jwt}"}

    async def upload_file(
        self,
        content: NormalizedContent,
        keyvalues: Dict[str, str],
    ) -> PinnedFile:
        """Upload content as multipart form data.

        Returns:
            The pinned file record; ``is_duplicate`` is set when the provider
            already held identical content
        """
        request = content.request
        data = {
            "network": request.visibility.value,
            "name": request.filename,
        }
        if request.group_id:
            data["group_id"] = request.group_id
        if keyvalues:
            data["keyvalues"] = json.dumps(keyvalues)

        with request.source.open() as fileobj:
            call = RetryableCall(
                method="POST",
                url=f"{self.upload_url}/files",
                kind=CallKind.UPLOAD,
                data=data,
                files={"file": (request.filename, fileobj, content.media_type)},
                headers=self._auth_headers(),
                payload_size=content.size,
            )
            response = await self.executor.execute(call)

        pinned = PinnedFile.from_api(_unwrap(response_body(response)), request.visibility)
        logger.info(
            "Provider accepted upload",
            extra={
                "file_id": pinned.id,
                "file_name": request.filename,
                "size_bytes": pinned.size or content.size,
                "visibility": request.visibility.value,
                "duplicate": pinned.is_duplicate,
                "attempts": call.attempt,
            },
        )
        return pinned

    async def list_files(
        self,
        visibility: Visibility = Visibility.PUBLIC,
        limit: Optional[int] = None,
        page_token: Optional[str] = None,
        name: Optional[str] = None,
        group_id: Optional[str] = None,
        media_type: Optional[str] = None,
        cid: Optional[str] = None,
        order: str = "DESC",
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> FilePage:
        """Fetch one page of files on ``visibility``'s network."""
        params: Dict[str, Any] = {"order": order}
        if limit:
            params["limit"] = limit
        if page_token:
            params["pageToken"] = page_token
        if name:
            params["name"] = name
        if group_id:
            params["group"] = group_id
        if media_type:
            params["mimeType"] = media_type
        if cid:
            params["cid"] = cid

        response = await self.executor.execute(
            RetryableCall(
                method="GET",
                url=f"{self.api_url}/files/{visibility.value}",
                params=params,
                headers=self._auth_headers(),
                max_attempts=max_attempts,
                timeout=timeout,
            )
        )
        data = _unwrap(response_body(response)) or {}
        if not isinstance(data, dict):
            raise InvalidProviderResponse("Provider listing response is not an object")

        files = [PinnedFile.from_api(item, visibility) for item in data.get("files") or []]
        return FilePage(
            files=files,
            visibility=visibility,
            next_page_token=data.get("next_page_token") or None,
        )

    async def iter_files(
        self,
        visibility: Visibility,
        page_size: int = 500,
    ) -> AsyncIterator[PinnedFile]:
        """Yield every file on a network, following page tokens."""
        page_token = None
        seen_tokens = set()
        while True:
            page = await self.list_files(visibility, limit=page_size, page_token=page_token)
            for pinned in page.files:
                yield pinned
            if not page.has_more or page.next_page_token in seen_tokens:
                return
            seen_tokens.add(page.next_page_token)
            page_token = page.next_page_token

    async def get_file(self, file_id: str, visibility: Visibility = Visibility.PRIVATE) -> PinnedFile:
        response = await self.executor.execute(
            RetryableCall(
                method="GET",
                url=f"{self.api_url}/files/{visibility.value}/{file_id}",
                headers=self._auth_headers(),
            )
        )
        return PinnedFile.from_api(_unwrap(response_body(response)), visibility)

    async def delete_file(self, file_id: str, visibility: Visibility = Visibility.PRIVATE) -> None:
        await self.executor.execute(
            RetryableCall(
                method="DELETE",
                url=f"{self.api_url}/files/{visibility.value}/{file_id}",
                headers=self._auth_headers(),
            )
        )
        logger.info(
            "Deleted file",
            extra={"file_id": file_id, "visibility": visibility.value},
        )

    async def update_file(
        self,
        file_id: str,
        visibility: Visibility = Visibility.PRIVATE,
        name: Optional[str] = None,
        keyvalues: Optional[Dict[str, Any]] = None,
    ) -> PinnedFile:
        """Rename a file and/or replace its key/value tags."""
        payload: Dict[str, Any] = {}
        if name is not None:
            payload["name"] = name
        if keyvalues is not None:
            payload["keyvalues"] = {str(key): str(value) for key, value in keyvalues.items()}

        response = await self.executor.execute(
            RetryableCall(
                method="PUT",
                url=f"{self.api_url}/files/{visibility.value}/{file_id}",
                json=payload,
                headers=self._auth_headers(),
            )
        )
        logger.info(
            "Updated file metadata",
            extra={"file_id": file_id, "visibility": visibility.value, "fields": sorted(payload)},
        )
        return PinnedFile.from_api(_unwrap(response_body(response)), visibility)

    async def create_group(
        self,
        name: str,
        visibility: Visibility = Visibility.PRIVATE,
        is_public: bool = False,
    ) -> PinnedGroup:
        response = await self.executor.execute(
            RetryableCall(
                method="POST",
                url=f"{self.api_url}/groups/{visibility.value}",
                json={"name": name, "is_public": is_public},
                headers=self._auth_headers(),
            )
        )
        group = PinnedGroup.from_api(_unwrap(response_body(response)), visibility)
        logger.info(
            "Created group",
            extra={"group_id": group.id, "group_name": group.name, "visibility": visibility.value},
        )
        return group

    async def list_groups(
        self,
        visibility: Visibility = Visibility.PRIVATE,
        name: Optional[str] = None,
        is_public: Optional[bool] = None,
        limit: Optional[int] = None,
        page_token: Optional[str] = None,
    ) -> GroupPage:
        """Fetch one page of groups on ``visibility``'s network."""
        params: Dict[str, Any] = {}
        if name:
            params["name"] = name
        if is_public is not None:
            params["isPublic"] = "true" if is_public else "false"
        if limit:
            params["limit"] = limit
        if page_token:
            params["pageToken"] = page_token

        response = await self.executor.execute(
            RetryableCall(
                method="GET",
                url=f"{self.api_url}/groups/{visibility.value}",
                params=params or None,
                headers=self._auth_headers(),
            )
        )
        data = _unwrap(response_body(response)) or {}
        if not isinstance(data, dict):
            raise InvalidProviderResponse("Provider group listing response is not an object")

        return GroupPage(
            groups=[PinnedGroup.from_api(item, visibility) for item in data.get("groups") or []],
            visibility=visibility,
            next_page_token=data.get("next_page_token") or None,
        )

    async def add_file_to_group(
        self,
        group_id: str,
        file_id: str,
        visibility: Visibility = Visibility.PRIVATE,
    ) -> None:
        await self._group_membership("PUT", group_id, file_id, visibility)

    async def remove_file_from_group(
        self,
        group_id: str,
        file_id: str,
        visibility: Visibility = Visibility.PRIVATE,
    ) -> None:
        await self._group_membership("DELETE", group_id, file_id, visibility)

    async def _group_membership(
        self,
        method: str,
        group_id: str,
        file_id: str,
        visibility: Visibility,
    ) -> None:
        await self.executor.execute(
            RetryableCall(
                method=method,
                url=f"{self.api_url}/groups/{visibility.value}/{group_id}/ids/{file_id}",
                headers=self._auth_headers(),
            )
        )
        logger.info(
            "Added file to group" if method == "PUT" else "Removed file from group",
            extra={"group_id": group_id, "file_id": file_id, "visibility": visibility.value},
        )

    async def fetch_content(self, url: str, timeout: Optional[float] = None) -> FileContent:
        """GET content from a gateway URL; gateways are read without credentials."""
        response = await self.executor.execute(
            RetryableCall(method="GET", url=url, timeout=timeout)
        )
        return FileContent(
            url=url,
            content=response.content,
            media_type=response.headers.get("content-type"),
        )

    async def create_signed_url(
        self,
        cid: str,
        expires: int = 3600,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Mint a time-limited read URL for ``cid``.

        Raises:
            ProviderRejected: 403 when the plan does not include signed URLs
            InvalidProviderResponse: When the body carries no URL
        """
        response = await self.executor.execute(
            RetryableCall(
                method="POST",
                url=f"{self.api_url}/files/sign",
                json={
                    "cid": cid,
                    "expires": expires,
                    "date": int(time.time()),
                    "method": "GET",
                },
                headers=self._auth_headers(),
                kind=CallKind.PROBE if max_attempts == 1 else CallKind.METADATA,
                max_attempts=max_attempts,
                timeout=timeout,
            )
        )

        body = response_body(response)
        signed_url = body
        if isinstance(body, dict):
            signed_url = body.get("data") or body.get("url")
        if not signed_url or not isinstance(signed_url, str):
            raise InvalidProviderResponse("Provider returned no signed URL")
        return signed_url.strip().strip('"')

    async def check_gateway(self, url: str, timeout: float) -> None:
        """HEAD ``url`` once; raises when it is not reachable."""
        await self.executor.execute(
            RetryableCall(
                method="HEAD",
                url=url,
                kind=CallKind.PROBE,
                timeout=timeout,
                max_attempts=1,
            )
        )
