"""
Live replay of a precomputed event sequence.

The controller is a small state machine (idle, running, paused, finished)
advanced by a cancellable timer, one time unit per tick. It never computes
a schedule itself; it only applies events that a generator already produced.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from .errors import InvalidParameter
from .metrics import results_from_states
from .models import (
    IDLE,
    Event,
    Process,
    ProcessResult,
    ProcessStatus,
    RuntimeProcessState,
    apply_event,
)

logger = logging.getLogger(__name__)

# schedule(delay_seconds, callback) -> handle with cancel()
TickScheduler = Callable[[float, Callable[[], None]], Any]
Listener = Callable[["PlaybackController"], None]


def asyncio_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class PlaybackState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


def _check_speed(speed: float) -> float:
    if speed is None or not speed > 0:
        raise InvalidParameter(f"Playback speed must be > 0 (got {speed})")
    return float(speed)


class PlaybackController:
    def __init__(
        self,
        schedule: Optional[TickScheduler] = None,
        on_update: Optional[Listener] = None,
        speed: float = 1.0,
    ):
        self._schedule = schedule or asyncio_scheduler
        self._listeners: List[Listener] = []
        if on_update is not None:
            self._listeners.append(on_update)
        self._speed = _check_speed(speed)

        self._processes: List[Process] = []
        self._events: List[Event] = []
        self._states: List[RuntimeProcessState] = []
        self._index = 0
        self._state = PlaybackState.IDLE
        self._results: Optional[List[ProcessResult]] = None

        self._handle: Any = None
        # Bumped on every cancellation; a tick from an older generation is dropped.
        self._generation = 0

    # -- observation -----------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def period(self) -> float:
        return 1.0 / self._speed

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    @property
    def time_index(self) -> int:
        """Number of time units replayed so far."""
        return self._index

    @property
    def current_event(self) -> Optional[Event]:
        if self._index == 0:
            return None
        return self._events[self._index - 1]

    @property
    def live_states(self) -> List[RuntimeProcessState]:
        return list(self._states)

    @property
    def results(self) -> Optional[List[ProcessResult]]:
        """Final per-process results, available once playback has finished."""
        return self._results

    @property
    def cpu_state(self) -> Event:
        if self.current_event is None or all(s.completed for s in self._states):
            return IDLE
        return self.current_event

    def status_of(self, state: RuntimeProcessState) -> ProcessStatus:
        if state.completed:
            return ProcessStatus.COMPLETED
        cpu = self.cpu_state
        if cpu.is_running and cpu.pid == state.pid:
            return ProcessStatus.RUNNING
        if self._index < state.arrival_time:
            return ProcessStatus.NOT_ARRIVED
        return ProcessStatus.WAITING

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- control ---------------------------------------------------------

    def load(self, processes: Sequence[Process], events: Sequence[Event], start_paused: bool = False) -> None:
        self._cancel_pending()
        self._processes = list(processes)
        self._events = list(events)
        self._states = [RuntimeProcessState.from_process(p) for p in self._processes]
        self._index = 0
        self._results = None
        self._set_state(PlaybackState.PAUSED if start_paused else PlaybackState.RUNNING)
        if self._state is PlaybackState.RUNNING:
            self._schedule_next()
        self._publish()

    def set_speed(self, speed: float) -> None:
        self._speed = _check_speed(speed)
        if self._state is PlaybackState.RUNNING:
            self._cancel_pending()
            self._schedule_next()

    def pause(self) -> None:
        if self._state is PlaybackState.RUNNING:
            self._cancel_pending()
            self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        if self._state is PlaybackState.PAUSED:
            self._set_state(PlaybackState.RUNNING)
            self._schedule_next()

    def toggle_pause(self) -> None:
        if self._state is PlaybackState.PAUSED:
            self.resume()
        else:
            self.pause()

    def clear(self) -> None:
        self._cancel_pending()
        self._processes = []
        self._events = []
        self._states = []
        self._index = 0
        self._results = None
        self._set_state(PlaybackState.IDLE)
        self._publish()

    def tick(self) -> bool:
        """
        Apply one time unit. Returns False when the tick was dropped because
        playback is not running.
        """
        if self._state is not PlaybackState.RUNNING:
            return False

        if self._index >= len(self._events):
            self._finish()
            return True

        event = self._events[self._index]
        self._states = [apply_event(s, event, self._index) for s in self._states]
        self._index += 1
        self._publish()
        return True

    # -- internals -------------------------------------------------------

    def _finish(self) -> None:
        self._set_state(PlaybackState.FINISHED)
        if self._results is None:
            self._results = results_from_states(self._states, self._index)
        self._publish()

    def _set_state(self, new_state: PlaybackState) -> None:
        if new_state is not self._state:
            logger.debug("playback %s -> %s at t=%d", self._state.value, new_state.value, self._index)
        self._state = new_state

    def _schedule_next(self) -> None:
        generation = self._generation
        self._handle = self._schedule(self.period, lambda: self._on_timer(generation))

    def _on_timer(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self.tick()
        if self._state is PlaybackState.RUNNING:
            self._schedule_next()

    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _publish(self) -> None:
        for listener in list(self._listeners):
            listener(self)


async def play(controller: PlaybackController) -> Optional[List[ProcessResult]]:
    """
    Wait until the loaded sequence has been replayed (or the controller was
    cleared) and return the final results.
    """
    done = asyncio.Event()

    def on_update(c: PlaybackController) -> None:
        if c.state in (PlaybackState.FINISHED, PlaybackState.IDLE):
            done.set()

    controller.add_listener(on_update)
    try:
        if controller.state not in (PlaybackState.FINISHED, PlaybackState.IDLE):
            await done.wait()
    finally:
        controller.remove_listener(on_update)
    return controller.results
