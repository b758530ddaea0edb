import asyncio

import pytest

from schedviz.algorithms import generate_fcfs, generate_rr
from schedviz.errors import InvalidParameter
from schedviz.metrics import compute_process_results
from schedviz.models import IDLE, NOT_COMPLETED, NOT_STARTED, Event, Process, ProcessStatus, from_tokens
from schedviz.playback import PlaybackController, PlaybackState, play


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Collects scheduled ticks; tests fire them by hand."""

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and h.callback is not None]

    def fire(self):
        handle = self.pending[0]
        callback, handle.callback = handle.callback, None
        callback()

    def fire_all(self, limit=1000):
        fired = 0
        while self.pending and fired < limit:
            self.fire()
            fired += 1
        return fired


def _procs():
    return [
        Process(1, arrival_time=0, burst_time=5, priority=2),
        Process(2, arrival_time=1, burst_time=3, priority=1),
        Process(3, arrival_time=2, burst_time=8, priority=3),
    ]


def _controller(**kwargs):
    scheduler = FakeScheduler()
    return PlaybackController(schedule=scheduler, **kwargs), scheduler


def test_load_starts_running_with_one_pending_tick():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))

    assert controller.state is PlaybackState.RUNNING
    assert controller.time_index == 0
    assert [h.delay for h in scheduler.pending] == [1.0]
    assert [s.remaining_burst_time for s in controller.live_states] == [5, 3, 8]


def test_replays_to_completion_and_matches_metrics():
    procs = _procs()
    events = generate_rr(procs, quantum=2, context_switch=1)
    controller, scheduler = _controller()
    controller.load(procs, events)

    # One tick per event, plus the tick that notices the end.
    assert scheduler.fire_all() == len(events) + 1
    assert controller.state is PlaybackState.FINISHED
    assert controller.time_index == len(events)
    assert controller.results == compute_process_results(procs, events)
    assert all(s.completed and s.remaining_burst_time == 0 for s in controller.live_states)


def test_results_are_computed_once():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    scheduler.fire_all()
    results = controller.results

    assert controller.tick() is False
    assert controller.results is results


def test_step_updates_live_state():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    for _ in range(5):
        scheduler.fire()

    p1, p2, p3 = controller.live_states
    assert p1.started and p1.start_time == 0
    assert p1.completed and p1.end_time == 5
    assert not p2.started and p2.remaining_burst_time == 3
    assert controller.current_event == Event.running(1)


def test_pause_drops_ticks_and_resume_continues():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    scheduler.fire()
    scheduler.fire()

    controller.pause()
    assert controller.state is PlaybackState.PAUSED
    assert scheduler.pending == []
    assert controller.tick() is False
    assert controller.time_index == 2

    controller.resume()
    assert controller.state is PlaybackState.RUNNING
    scheduler.fire()
    assert controller.time_index == 3
    assert controller.live_states[0].remaining_burst_time == 2


def test_toggle_pause():
    controller, _ = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    controller.toggle_pause()
    assert controller.state is PlaybackState.PAUSED
    controller.toggle_pause()
    assert controller.state is PlaybackState.RUNNING


def test_start_paused():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()), start_paused=True)
    assert controller.state is PlaybackState.PAUSED
    assert scheduler.pending == []


def test_speed_change_reschedules_pending_tick():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    first = scheduler.pending[0]

    controller.set_speed(4)
    assert first.cancelled
    assert [h.delay for h in scheduler.pending] == [0.25]
    assert controller.speed == 4


def test_speed_must_be_positive():
    controller, _ = _controller()
    with pytest.raises(InvalidParameter):
        controller.set_speed(0)
    with pytest.raises(InvalidParameter):
        PlaybackController(schedule=FakeScheduler(), speed=-1)


def test_clear_cancels_and_ignores_stale_tick():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    scheduler.fire()
    stale = scheduler.pending[0]
    stale_callback = stale.callback

    controller.clear()
    assert stale.cancelled
    assert controller.state is PlaybackState.IDLE
    assert controller.events == []

    # A tick the timer already released must not apply a step after clear.
    stale_callback()
    assert controller.time_index == 0
    assert controller.live_states == []


def test_reload_discards_previous_run():
    controller, scheduler = _controller()
    controller.load(_procs(), generate_fcfs(_procs()))
    scheduler.fire()
    old = scheduler.pending[0]

    new_procs = [Process(9, 0, 2)]
    controller.load(new_procs, from_tokens(["p9", "p9"]))
    assert old.cancelled
    assert controller.time_index == 0
    assert [s.pid for s in controller.live_states] == [9]

    scheduler.fire_all()
    assert [r.pid for r in controller.results] == [9]


def test_empty_sequence_finishes_on_first_tick():
    controller, scheduler = _controller()
    controller.load([], [])
    scheduler.fire()
    assert controller.state is PlaybackState.FINISHED
    assert controller.results == []


def test_unfinished_processes_report_sentinels():
    procs = [Process(1, 0, 2), Process(2, 0, 1)]
    controller, scheduler = _controller()
    controller.load(procs, from_tokens(["p1", "p1"]))
    scheduler.fire_all()

    row = controller.results[1].as_dict()
    assert row["startTime"] == NOT_STARTED
    assert row["endTime"] == NOT_COMPLETED
    assert row["responseTime"] == 0


def test_process_status_and_cpu_state():
    procs = [Process(1, 0, 2), Process(2, 3, 1)]
    controller, scheduler = _controller()
    controller.load(procs, generate_fcfs(procs))
    assert controller.cpu_state == IDLE

    scheduler.fire()
    p1, p2 = controller.live_states
    assert controller.status_of(p1) is ProcessStatus.RUNNING
    assert controller.status_of(p2) is ProcessStatus.NOT_ARRIVED

    scheduler.fire()
    scheduler.fire()
    p1, p2 = controller.live_states
    assert controller.cpu_state == IDLE
    assert controller.status_of(p1) is ProcessStatus.COMPLETED
    assert controller.status_of(p2) is ProcessStatus.WAITING


def test_listener_sees_every_step():
    seen = []
    procs = [Process(1, 0, 2)]
    controller, scheduler = _controller(on_update=lambda c: seen.append((c.state, c.time_index)))
    controller.load(procs, generate_fcfs(procs))
    scheduler.fire_all()

    assert seen == [
        (PlaybackState.RUNNING, 0),
        (PlaybackState.RUNNING, 1),
        (PlaybackState.RUNNING, 2),
        (PlaybackState.FINISHED, 2),
    ]


def test_play_on_asyncio_loop():
    procs = _procs()
    events = generate_fcfs(procs, context_switch=1)

    async def main():
        controller = PlaybackController(speed=1000)
        controller.load(procs, events)
        return await play(controller)

    results = asyncio.run(main())
    assert results == compute_process_results(procs, events)


def test_play_returns_when_cleared():
    async def main():
        controller = PlaybackController(speed=0.5)
        controller.load(_procs(), generate_fcfs(_procs()))
        asyncio.get_running_loop().call_soon(controller.clear)
        return await play(controller)

    assert asyncio.run(main()) is None
