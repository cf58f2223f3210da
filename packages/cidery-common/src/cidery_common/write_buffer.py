"""
Batched write buffer for grid edits.

Edits are staged per row and merged per field. After a quiet period the
buffer hands each row's merged patch to an async sink; flush() does the
same immediately.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from cidery_common.exceptions import CideryCommonError

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_DELAY = 0.5

UpdateSink = Callable[[str, dict[str, Any]], Awaitable[None]]


class UpdateBuffer:
    """
    Pending-updates map flushed on a timer.

    Staging while an event loop is running (re)starts the timer. Without a
    running loop nothing is scheduled and flush() must be awaited.

    Rows the sink rejects with a CideryCommonError are logged and kept
    pending, unless a newer value for the same field was staged meanwhile.
    """

    def __init__(self, sink: UpdateSink, delay: float = DEFAULT_FLUSH_DELAY):
        if delay < 0:
            raise ValueError(f"Flush delay must be non-negative, got {delay}")
        self._sink = sink
        self._delay = delay
        self._pending: dict[str, dict[str, Any]] = {}
        self._timer: asyncio.Task | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> dict[str, dict[str, Any]]:
        """Copy of the staged patches by row id."""
        return {row_id: dict(patch) for row_id, patch in self._pending.items()}

    def __len__(self) -> int:
        return len(self._pending)

    def stage(self, row_id: str, field: str, value: Any) -> None:
        """Stage one field change, merging with earlier changes to the row."""
        self._pending.setdefault(row_id, {})[field] = value
        self._schedule()

    def stage_patch(self, row_id: str, patch: dict[str, Any]) -> None:
        """Stage several field changes to a row."""
        if not patch:
            return
        self._pending.setdefault(row_id, {}).update(patch)
        self._schedule()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _schedule(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.create_task(self._flush_after_delay())

    async def _flush_after_delay(self) -> None:
        await asyncio.sleep(self._delay)
        # Past the sleep, a flush() must not cancel the sink calls
        self._timer = None
        await self._drain()

    async def flush(self) -> dict[str, dict[str, Any]]:
        """
        Send every staged patch to the sink now.

        Returns:
            The patches that were written, by row id
        """
        self._cancel_timer()
        return await self._drain()

    async def _drain(self) -> dict[str, dict[str, Any]]:
        batch, self._pending = self._pending, {}
        written: dict[str, dict[str, Any]] = {}

        for row_id, patch in batch.items():
            try:
                await self._sink(row_id, patch)
            except CideryCommonError as e:
                logger.error("Failed to write update for %s: %s", row_id, e)
                newer = self._pending.get(row_id, {})
                self._pending[row_id] = {**patch, **newer}
                continue
            written[row_id] = patch

        if written:
            logger.debug("Flushed updates for %d row(s)", len(written))
        return written

    async def close(self) -> dict[str, dict[str, Any]]:
        """Flush whatever is left; call before discarding the buffer."""
        return await self.flush()
