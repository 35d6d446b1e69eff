"""Gateways to the secondary (mirror) document store."""

from quillnote.mirror_gateway.base import MirrorBackend, MirrorDocumentMissing
from quillnote.mirror_gateway.client import HttpMirrorClient, MirrorApiError
from quillnote.mirror_gateway.memory import InMemoryMirror

__all__ = [
    "HttpMirrorClient",
    "InMemoryMirror",
    "MirrorApiError",
    "MirrorBackend",
    "MirrorDocumentMissing",
]
