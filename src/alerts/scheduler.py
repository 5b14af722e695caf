"""Poll scheduler: run an async cycle on a fixed interval and on demand.

State machine::

    IDLE -> LOADING -> READY | READY_STALE -> LOADING -> ...

- At most one cycle is in flight; refresh requests made while LOADING are
  coalesced into the running cycle.
- Every cycle start and every ``stop()`` bumps a generation counter; a
  cycle whose generation is no longer the latest has its result dropped,
  so results are never applied out of order.
- ``stop()`` ends the polling loop without cancelling an in-flight cycle;
  that cycle runs to completion and its result is discarded. A cycle
  started after a restart waits for it, so the cycle body never overlaps
  itself.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PollState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    READY_STALE = "ready_stale"


@dataclass(frozen=True)
class LoadingState:
    """Externally visible scheduler status."""

    state: PollState
    error: str | None = None
    last_updated_at: datetime | None = None
    generation: int = 0

    @property
    def is_loading(self) -> bool:
        return self.state is PollState.LOADING

    @property
    def is_idle(self) -> bool:
        return self.state is PollState.IDLE

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "is_loading": self.is_loading,
            "error": self.error,
            "last_updated_at": (
                self.last_updated_at.isoformat() if self.last_updated_at else None
            ),
        }


class PollScheduler(Generic[T]):
    """
    Drives ``cycle`` every ``interval`` seconds and on demand.

    Usage:
        scheduler = PollScheduler("alerts", aggregator.aggregate, 10.0,
                                  on_result=overlay.apply_snapshot)
        scheduler.start()
        scheduler.request_refresh()
        await scheduler.stop()
    """

    def __init__(
        self,
        name: str,
        cycle: Callable[[], Awaitable[T]],
        interval: float,
        on_result: Callable[[T], object] | None = None,
        error_of: Callable[[T], str | None] | None = None,
    ) -> None:
        """
        Args:
            name: Label used in logs and task names.
            cycle: Coroutine function producing one result.
            interval: Seconds between the end of one cycle and the next.
            on_result: Called with every result that is not dropped.
            error_of: Returns an error message for a result that should
                put the scheduler in READY_STALE (e.g. total failure).
        """
        self._name = name
        self._cycle = cycle
        self._interval = interval
        self._on_result = on_result
        self._error_of = error_of

        self._state = PollState.IDLE
        self._error: str | None = None
        self._last_updated_at: datetime | None = None
        self._result: T | None = None

        self._generation = 0
        self._inflight: asyncio.Task | None = None
        self._inflight_generation = 0
        self._loop_task: asyncio.Task | None = None
        self._wake = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def latest(self) -> T | None:
        """Latest applied result, or None before the first cycle."""
        return self._result

    def get_loading_state(self) -> LoadingState:
        return LoadingState(
            state=self._state,
            error=self._error,
            last_updated_at=self._last_updated_at,
            generation=self._generation,
        )

    def start(self) -> None:
        """Start polling. The first cycle runs immediately."""
        if self._running:
            return
        self._running = True
        self._wake.clear()
        self._loop_task = asyncio.create_task(
            self._run_loop(), name=f"poll_{self._name}",
        )
        logger.info("Poll scheduler started", scheduler=self._name, interval=self._interval)

    async def stop(self) -> None:
        """Stop polling; an in-flight cycle finishes but its result is dropped."""
        if not self._running:
            return
        self._running = False
        self._generation += 1
        self._wake.set()

        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        self._state = PollState.IDLE
        logger.info("Poll scheduler stopped", scheduler=self._name)

    def request_refresh(self) -> bool:
        """
        Ask for an immediate cycle.

        Returns:
            False if a cycle is already in flight (the request is coalesced
            into it), True otherwise.
        """
        if self._active_cycle() is not None:
            logger.debug("Refresh coalesced into in-flight cycle", scheduler=self._name)
            return False

        if self._running:
            self._wake.set()
        else:
            self._start_cycle()
        return True

    async def refresh(self) -> T | None:
        """
        Run a cycle now, or join the one already in flight.

        Returns:
            The latest applied result after the cycle completes.
        """
        task = self._active_cycle() or self._start_cycle()
        await asyncio.shield(task)
        return self._result

    def _active_cycle(self) -> asyncio.Task | None:
        """The in-flight cycle, unless it has been superseded by stop()."""
        task = self._inflight
        if (
            task is None
            or task.done()
            or self._inflight_generation != self._generation
        ):
            return None
        return task

    def _start_cycle(self) -> asyncio.Task:
        previous = self._inflight
        self._generation += 1
        self._inflight_generation = self._generation
        self._state = PollState.LOADING
        self._inflight = asyncio.create_task(
            self._run_cycle(self._generation, previous),
            name=f"poll_{self._name}_cycle_{self._generation}",
        )
        return self._inflight

    async def _run_cycle(self, generation: int, previous: asyncio.Task | None) -> None:
        if previous is not None and not previous.done():
            # Superseded cycle still running after stop()
            await asyncio.wait({previous})
            if generation != self._generation:
                return

        error: str | None = None
        result: T | None = None
        try:
            result = await self._cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(
                "Poll cycle failed",
                scheduler=self._name,
                generation=generation,
                error=error,
            )

        if generation != self._generation:
            logger.debug(
                "Dropping stale poll result",
                scheduler=self._name,
                generation=generation,
                latest=self._generation,
            )
            return

        if error is None:
            self._result = result
            if self._error_of is not None:
                error = self._error_of(result)
            if self._on_result is not None:
                try:
                    self._on_result(result)
                except Exception as e:
                    error = f"failed to apply result: {e}"
                    logger.error(
                        "Poll result handler failed",
                        scheduler=self._name,
                        error=str(e),
                    )

        self._error = error
        self._state = PollState.READY if error is None else PollState.READY_STALE
        self._last_updated_at = datetime.now(timezone.utc)

    async def _run_loop(self) -> None:
        while self._running:
            await self.refresh()

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
