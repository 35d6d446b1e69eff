# @TASK P2-T2.3 - Read-side cache with kind/id invalidation
# @TEST tests/test_read_cache.py

"""Memoises query results until a mutation invalidates them.

Entries are keyed by ``(kind, key)`` and may be tagged with an entity id so
that a Note mutation can drop only that note's entries. Each kind carries a
generation counter: a load that started before an invalidation of its kind
is returned to its caller but never stored.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, TypeVar

from quillnote.constants import EntityKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Entry:
    value: Any
    entity_id: int | None


class ReadCache:
    """In-process read cache. A disabled cache always calls the loader."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._entries: dict[tuple[EntityKind, Hashable], _Entry] = {}
        self._generations: dict[EntityKind, int] = {}
        self.hits = 0
        self.misses = 0

    async def get_or_load(
        self,
        kind: EntityKind,
        key: Hashable,
        loader: Callable[[], Awaitable[T]],
        *,
        entity_id: int | None = None,
    ) -> T:
        if not self.enabled:
            return await loader()

        entry = self._entries.get((kind, key))
        if entry is not None:
            self.hits += 1
            return entry.value

        self.misses += 1
        generation = self._generations.get(kind, 0)
        value = await loader()
        if self._generations.get(kind, 0) == generation:
            self._entries[(kind, key)] = _Entry(value, entity_id)
        return value

    def invalidate(self, kind: EntityKind, entity_id: int | None = None) -> int:
        """Drop cached entries of *kind*.

        Without *entity_id* every entry of the kind goes. With it, listings
        (untagged entries) and the entries tagged with that id go, while
        entries for other ids of the same kind are kept.

        Returns the number of entries removed.
        """
        self._bump(kind)
        stale = [
            k
            for k, e in self._entries.items()
            if k[0] == kind and (entity_id is None or e.entity_id is None or e.entity_id == entity_id)
        ]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Invalidated %d cached %s read(s)", len(stale), kind)
        return len(stale)

    def _bump(self, kind: EntityKind) -> None:
        self._generations[kind] = self._generations.get(kind, 0) + 1

    def clear(self) -> None:
        for kind in EntityKind:
            self._bump(kind)
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
