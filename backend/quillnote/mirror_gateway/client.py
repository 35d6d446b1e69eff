# @TASK P3-T3.1 - HTTP document-store client for the mirror
# @TEST tests/test_http_mirror_client.py

"""Async HTTP client for a REST document store used as the mirror.

Endpoints (relative to ``MIRROR_URL``)::

    PATCH  /users/{uid}/{collection}/{id}                 merge into existing
    POST   /users/{uid}/{collection}?documentId={id}      create at fixed id
    DELETE /users/{uid}/{collection}/{id}                 remove

A ``404`` on PATCH means the document does not exist yet, which the mirror
writer answers with a create. Every other non-2xx status raises
:class:`MirrorApiError`.

Usage::

    async with HttpMirrorClient(url, api_key) as client:
        await client.create_document("1", "notes", "7", {"title": "Hi"})
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quillnote.mirror_gateway.base import MirrorBackend, MirrorDocumentMissing

logger = logging.getLogger(__name__)


class MirrorApiError(Exception):
    """Raised when the mirror answers with an unexpected status.

    Attributes:
        status_code: HTTP status returned by the mirror.
        message: A human-readable description.
    """

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message or f"Mirror API error (status: {status_code})"
        super().__init__(self.message)


class HttpMirrorClient(MirrorBackend):
    """:class:`MirrorBackend` over a REST document API.

    Args:
        url: Base URL of the document API (trailing slash is stripped).
        api_key: Bearer token sent with every request, if set.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, url: str, api_key: str = "", timeout: float = 10.0) -> None:
        self._url: str = url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client: httpx.AsyncClient = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def update_document(self, user_id: str, collection: str, document_id: str, data: dict[str, Any]) -> None:
        response = await self._client.patch(self._document_url(user_id, collection, document_id), json=data)
        if response.status_code == 404:
            raise MirrorDocumentMissing(collection, document_id)
        self._raise_for_status(response)

    async def create_document(self, user_id: str, collection: str, document_id: str, data: dict[str, Any]) -> None:
        response = await self._client.post(
            f"{self._url}/users/{user_id}/{collection}",
            params={"documentId": document_id},
            json=data,
        )
        self._raise_for_status(response)

    async def delete_document(self, user_id: str, collection: str, document_id: str) -> bool:
        response = await self._client.delete(self._document_url(user_id, collection, document_id))
        if response.status_code == 404:
            return False
        self._raise_for_status(response)
        return True

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpMirrorClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _document_url(self, user_id: str, collection: str, document_id: str) -> str:
        return f"{self._url}/users/{user_id}/{collection}/{document_id}"

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        logger.warning("Mirror request failed (status=%d)", response.status_code)
        raise MirrorApiError(response.status_code, response.text or None)
