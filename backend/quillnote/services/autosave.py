# @TASK P3-T3.4 - Debounced autosave for rapid note edits
# @TEST tests/test_autosave.py

"""Coalesces rapid partial edits of a note into one persisted update.

Each :meth:`AutosaveCoalescer.submit` merges its fields into the note's
pending edit (later values win per field) and restarts a quiet-period timer.
When the timer runs out without another submit, the merged edit is applied
once. :meth:`flush` and :meth:`flush_all` apply pending edits right away.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from quillnote.exceptions import QuillnoteError

logger = logging.getLogger(__name__)

ApplyEdit = Callable[[int, Mapping[str, Any]], Awaitable[Any]]


class AutosaveCoalescer:
    """Per-note debounce of partial updates.

    Args:
        apply: Coroutine function persisting ``(note_id, fields)``.
        delay: Quiet period in seconds after the last edit.
    """

    def __init__(self, apply: ApplyEdit, delay: float = 1.0) -> None:
        self._apply = apply
        self._delay = delay
        self._pending: dict[int, dict[str, Any]] = {}
        self._timers: dict[int, asyncio.Task] = {}
        self._applying: set[asyncio.Task] = set()

    @property
    def pending_note_ids(self) -> list[int]:
        return sorted(self._pending)

    def submit(self, note_id: int, fields: Mapping[str, Any]) -> list[str]:
        """Merge *fields* into the pending edit for *note_id* and restart its timer.

        Returns the sorted names of every field now pending for the note.
        """
        timer = self._timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()
        self._pending.setdefault(note_id, {}).update(fields)
        self._timers[note_id] = asyncio.create_task(self._fire(note_id))
        return sorted(self._pending[note_id])

    async def flush(self, note_id: int) -> Any:
        """Apply the pending edit for *note_id* now.

        Returns the result of the apply callback, or ``None`` when nothing
        was pending. Errors from the callback propagate.
        """
        timer = self._timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()
        fields = self._pending.pop(note_id, None)
        if not fields:
            return None
        return await self._apply(note_id, fields)

    async def flush_all(self) -> None:
        """Apply every pending edit and wait for in-flight ones (used at shutdown)."""
        for note_id in list(self._pending):
            try:
                await self.flush(note_id)
            except Exception as exc:
                self._log_failure(note_id, exc)
        if self._applying:
            await asyncio.gather(*list(self._applying))

    async def _fire(self, note_id: int) -> None:
        await asyncio.sleep(self._delay)
        if self._timers.get(note_id) is not asyncio.current_task():
            return
        # Detached: a submit during the apply starts a new timer.
        del self._timers[note_id]
        fields = self._pending.pop(note_id, None)
        if not fields:
            return

        task = asyncio.current_task()
        self._applying.add(task)
        try:
            await self._apply(note_id, fields)
            logger.debug("Autosaved note %d (%s)", note_id, ", ".join(sorted(fields)))
        except Exception as exc:
            self._log_failure(note_id, exc)
        finally:
            self._applying.discard(task)

    @staticmethod
    def _log_failure(note_id: int, exc: Exception) -> None:
        if isinstance(exc, QuillnoteError):
            logger.warning("Autosave of note %d dropped: %s", note_id, exc.message)
        else:
            logger.exception("Autosave of note %d failed", note_id, exc_info=exc)
