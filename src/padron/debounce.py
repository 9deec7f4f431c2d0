"""Tareas programadas cancelables para el debounce de búsquedas.

Cancellable scheduled tasks for search debouncing.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class ScheduledTask:
    """Manija de una evaluación diferida.

    Una manija cancelada nunca ejecuta su callback, aunque el temporizador ya
    haya vencido y el callback esté por arrancar.

    English:
        Handle to a deferred evaluation. A cancelled handle never runs its
        callback, even if its timer already fired.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[Any]], label: str = "") -> None:
        self.delay = delay
        self.label = label
        self._callback = callback
        self._cancelled = False
        self._started = False
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def started(self) -> bool:
        return self._started

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()

    async def wait(self) -> None:
        """Espera a que la tarea termine o se cancele. / Wait until finished or cancelled."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._cancelled:
            return
        self._started = True
        await self._callback()


class Debouncer:
    """Mantiene como máximo una evaluación pendiente: la última gana.

    English: Keeps at most one pending evaluation; the last one wins.
    """

    def __init__(self) -> None:
        self._pending: Optional[ScheduledTask] = None

    @property
    def pending(self) -> Optional[ScheduledTask]:
        if self._pending is not None and (self._pending.cancelled or self._pending.done()):
            return None
        return self._pending

    def schedule(
        self,
        delay: float,
        callback: Callable[[], Awaitable[Any]],
        label: str = "",
    ) -> ScheduledTask:
        self.cancel()
        self._pending = ScheduledTask(delay, callback, label=label)
        return self._pending

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            logger.debug("debounce_cancelled", label=self._pending.label)
            self._pending.cancel()
        self._pending = None
