"""
Input Coalescer - trailing-edge debounce for dial rotation.

A burst of rotation ticks produces live feedback on every tick and exactly one
resolved value once the dial has been still for the debounce delay.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from deckbridge.config import DEFAULT_DEBOUNCE_MS

logger = logging.getLogger(__name__)

FeedbackHook = Callable[[int], None]
ResolvedHook = Callable[[int, int], Union[None, Awaitable[Any]]]
BaseState = Callable[[], int]


def clamp(value: int, minimum: int = 0, maximum: int = 100) -> int:
    return min(max(value, minimum), maximum)


@dataclass
class RotationAccumulator:
    """Per-control burst state. Ticks are summed unclamped."""

    ticks: int = 0
    timer: Optional[asyncio.TimerHandle] = None
    base_state: Optional[BaseState] = None
    on_resolved: Optional[ResolvedHook] = None

    def cancel(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class InputCoalescer:
    """
    Debounces rotation per control id.

    Idle -> Accumulating on the first tick; every further tick restarts the
    timer; after `delay_s` without ticks the burst is flushed and the control
    returns to Idle.
    """

    def __init__(
        self,
        *,
        delay_s: float = DEFAULT_DEBOUNCE_MS / 1000.0,
        minimum: int = 0,
        maximum: int = 100,
    ):
        self.delay_s = delay_s
        self.minimum = minimum
        self.maximum = maximum
        self._accumulators: Dict[str, RotationAccumulator] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def clamp(self, value: int) -> int:
        return clamp(value, self.minimum, self.maximum)

    def rotate(
        self,
        control_id: str,
        ticks: int,
        base_state: BaseState,
        *,
        on_resolved: ResolvedHook,
        on_feedback: Optional[FeedbackHook] = None,
    ) -> None:
        """
        Record one rotation event.

        Args:
            control_id: Control the ticks belong to
            ticks: Signed tick delta
            base_state: Returns the value the accumulated delta applies to
            on_resolved: Called once per flush with (total_ticks, clamped value)
            on_feedback: Called on every tick with the clamped in-progress value
        """
        acc = self._accumulators.get(control_id)
        if acc is None:
            acc = RotationAccumulator()
            self._accumulators[control_id] = acc

        acc.ticks += ticks
        acc.base_state = base_state
        acc.on_resolved = on_resolved

        if on_feedback is not None:
            on_feedback(self.clamp(base_state() + acc.ticks))

        acc.cancel()
        loop = asyncio.get_running_loop()
        acc.timer = loop.call_later(self.delay_s, self._flush, control_id)

    def pending(self, control_id: str) -> int:
        """Accumulated ticks not yet flushed (0 when idle)."""
        acc = self._accumulators.get(control_id)
        return acc.ticks if acc is not None else 0

    def is_accumulating(self, control_id: str) -> bool:
        return control_id in self._accumulators

    def discard(self, control_id: str) -> None:
        """Drop a control's burst without flushing it."""
        acc = self._accumulators.pop(control_id, None)
        if acc is not None:
            acc.cancel()

    def cancel_all(self) -> None:
        for control_id in list(self._accumulators):
            self.discard(control_id)

    async def drain(self) -> None:
        """Wait for resolved hooks that returned coroutines."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _flush(self, control_id: str) -> None:
        acc = self._accumulators.get(control_id)
        if acc is None or acc.on_resolved is None or acc.base_state is None:
            return

        total = acc.ticks
        value = self.clamp(acc.base_state() + total)
        logger.debug(f"Flushing rotation for {control_id}: ticks={total} value={value}")

        try:
            result = acc.on_resolved(total, value)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        except Exception as exc:
            logger.error(f"Resolved rotation hook failed for {control_id}: {exc!r}")
        finally:
            acc.timer = None
            acc.ticks = 0
            if self._accumulators.get(control_id) is acc:
                del self._accumulators[control_id]

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Resolved rotation hook failed: {task.exception()!r}")
