from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Tuple

from .errors import InvalidParameter
from .models import CONTEXT_SWITCH, IDLE, Event, Process, check_quantum, context_switch_units

logger = logging.getLogger(__name__)

# Selection key over (process, remaining burst). Smallest key wins.
SelectionKey = Callable[[Process, int], Tuple]


def _emit_run(events: List[Event], pid: int, last_pid: Optional[int], switch_units: int) -> None:
    """
    Append one unit of ``pid`` running, preceded by the context switch
    charge when the CPU was last occupied by a different process.
    """
    if last_pid is not None and last_pid != pid:
        events.extend([CONTEXT_SWITCH] * switch_units)
    events.append(Event.running(pid))


def _simulate(
    processes: Sequence[Process],
    key: SelectionKey,
    preemptive: bool,
    context_switch: float,
) -> List[Event]:
    """
    Unit-step simulation shared by every policy that picks the minimum of a
    key over the ready set.

    Non-preemptive policies keep the selected process until it completes;
    preemptive ones evaluate ``key`` again after every unit of execution.
    """
    switch_units = context_switch_units(context_switch)
    remaining = [p.burst_time for p in processes]
    events: List[Event] = []

    time = 0
    current: Optional[int] = None  # index into processes
    last_pid: Optional[int] = None

    while any(rt > 0 for rt in remaining):
        if preemptive or current is None:
            ready = [i for i, p in enumerate(processes) if p.arrival_time <= time and remaining[i] > 0]
            current = min(ready, key=lambda i: key(processes[i], remaining[i])) if ready else None

        if current is None:
            events.append(IDLE)
            last_pid = None
            time += 1
            continue

        pid = processes[current].pid
        before = len(events)
        _emit_run(events, pid, last_pid, switch_units)
        time += len(events) - before
        last_pid = pid

        remaining[current] -= 1
        if remaining[current] == 0:
            current = None

    return events


def _log_generated(name: str, processes: Sequence[Process], events: List[Event]) -> List[Event]:
    logger.debug("%s: %d processes scheduled over %d time units", name, len(processes), len(events))
    return events


def generate_fcfs(processes: Sequence[Process], context_switch: float = 0) -> List[Event]:
    """
    First-Come First-Serve (non-preemptive). Ties on arrival go to the lower pid.
    """
    events = _simulate(processes, lambda p, rem: (p.arrival_time, p.pid), False, context_switch)
    return _log_generated("FCFS", processes, events)


def generate_sjf(processes: Sequence[Process], context_switch: float = 0) -> List[Event]:
    """
    Shortest Job First (non-preemptive).

    At each decision point, among processes that have arrived and are not yet
    completed, choose the one with the smallest burst time.
    """
    events = _simulate(processes, lambda p, rem: (p.burst_time, p.arrival_time, p.pid), False, context_switch)
    return _log_generated("SJF", processes, events)


def generate_srtf(processes: Sequence[Process], context_switch: float = 0) -> List[Event]:
    """
    Shortest Remaining Time First (preemptive SJF).
    """
    events = _simulate(processes, lambda p, rem: (rem, p.arrival_time, p.pid), True, context_switch)
    return _log_generated("SRTF", processes, events)


def generate_priority(processes: Sequence[Process], context_switch: float = 0) -> List[Event]:
    """
    Static Priority scheduling (non-preemptive).

    Lower numeric priority value means higher priority. Among ready
    processes, choose the one with the smallest priority; break ties
    by earlier arrival time, then PID.
    """
    events = _simulate(processes, lambda p, rem: (p.priority, p.arrival_time, p.pid), False, context_switch)
    return _log_generated("Priority", processes, events)


def generate_priority_preemptive(processes: Sequence[Process], context_switch: float = 0) -> List[Event]:
    """
    Preemptive Priority: the highest-priority ready process is chosen again
    after every time unit.
    """
    events = _simulate(processes, lambda p, rem: (p.priority, p.arrival_time, p.pid), True, context_switch)
    return _log_generated("Priority (preemptive)", processes, events)


def generate_rr(processes: Sequence[Process], quantum: Optional[int] = None, context_switch: float = 0) -> List[Event]:
    """
    Round Robin scheduling with a fixed time quantum.

    Processes that arrive while another one runs join the tail of the ready
    queue ahead of a process whose quantum expires at the same instant.
    """
    check_quantum(quantum)
    switch_units = context_switch_units(context_switch)

    remaining = [p.burst_time for p in processes]
    arrival_order = sorted(range(len(processes)), key=lambda i: (processes[i].arrival_time, processes[i].pid))
    admitted = 0

    ready: Deque[int] = deque()
    events: List[Event] = []

    def enqueue_new_arrivals(current_time: int) -> None:
        nonlocal admitted
        while admitted < len(arrival_order) and processes[arrival_order[admitted]].arrival_time <= current_time:
            ready.append(arrival_order[admitted])
            admitted += 1

    time = 0
    current: Optional[int] = None
    used = 0  # units of the current quantum already consumed
    last_pid: Optional[int] = None

    enqueue_new_arrivals(time)

    while any(rt > 0 for rt in remaining):
        if current is None:
            if not ready:
                events.append(IDLE)
                last_pid = None
                time += 1
                enqueue_new_arrivals(time)
                continue
            current = ready.popleft()
            used = 0

        pid = processes[current].pid
        before = len(events)
        _emit_run(events, pid, last_pid, switch_units)
        time += len(events) - before
        last_pid = pid

        remaining[current] -= 1
        used += 1

        # Arrivals up to now go ahead of a process whose slice just expired.
        enqueue_new_arrivals(time)

        if remaining[current] == 0:
            current = None
        elif used == quantum:
            ready.append(current)
            current = None

    return _log_generated(f"Round Robin (q={quantum})", processes, events)


ALGORITHMS = {
    "fcfs": generate_fcfs,
    "sjf": generate_sjf,
    "srtf": generate_srtf,
    "rr": generate_rr,
    "priority": generate_priority,
    "priority-preemptive": generate_priority_preemptive,
}

ALGORITHM_NAMES = {
    "fcfs": "First Come First Serve",
    "sjf": "Shortest Job First",
    "srtf": "Shortest Remaining Time First",
    "rr": "Round Robin",
    "priority": "Priority Scheduling",
    "priority-preemptive": "Priority Scheduling (Preemptive)",
}


def normalize_algorithm(name: str) -> str:
    key = name.strip().lower()
    if key not in ALGORITHMS:
        raise InvalidParameter(
            f"Unknown algorithm '{name}' (choose from {', '.join(ALGORITHMS)})"
        )
    return key


def generate_events(
    name: str,
    processes: Sequence[Process],
    quantum: Optional[int] = None,
    context_switch: float = 0,
) -> List[Event]:
    """
    Dispatch to the requested policy. The quantum is only used by round-robin.
    """
    key = normalize_algorithm(name)
    context_switch_units(context_switch)
    if key == "rr":
        return generate_rr(processes, quantum=quantum, context_switch=context_switch)
    return ALGORITHMS[key](processes, context_switch=context_switch)
