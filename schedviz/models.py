from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .errors import InvalidParameter, InvalidProcess

NOT_STARTED = "Not Started"
NOT_COMPLETED = "Not Completed"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def process_problems(pid, arrival_time, burst_time, priority) -> List[str]:
    """
    Return a message for every field of a process that is not an integer
    or is out of range.
    """
    label = f"P{pid}"
    problems = []
    checks = [
        ("pid", pid, 1, "pid must be a positive integer"),
        ("arrival time", arrival_time, 0, "arrival time must be >= 0"),
        ("burst time", burst_time, 1, "burst time must be >= 1"),
        ("priority", priority, 1, "priority must be >= 1"),
    ]
    for name, value, minimum, message in checks:
        if not _is_int(value):
            problems.append(f"{label}: {name} must be an integer (got {value!r})")
        elif value < minimum:
            problems.append(f"{label}: {message}")
    return problems


@dataclass(frozen=True)
class Process:
    pid: int
    arrival_time: int
    burst_time: int
    priority: int = 1

    def __post_init__(self) -> None:
        problems = process_problems(self.pid, self.arrival_time, self.burst_time, self.priority)
        if problems:
            raise InvalidProcess(problems)


def context_switch_units(context_switch: float) -> int:
    """
    Whole time units charged per context switch. Fractions are truncated.
    """
    if context_switch is None:
        return 0
    if context_switch < 0 or math.isnan(context_switch):
        raise InvalidParameter(f"Context switch time must be >= 0 (got {context_switch})")
    return int(context_switch)


def check_quantum(quantum) -> int:
    """
    A round-robin quantum must be a whole number of time units, at least 1.
    """
    if not _is_int(quantum) or quantum < 1:
        raise InvalidParameter(f"Time quantum must be an integer >= 1 (got {quantum!r})")
    return quantum


@dataclass(frozen=True)
class SimulationConfig:
    quantum: int = 2
    context_switch: float = 0.0

    def __post_init__(self) -> None:
        check_quantum(self.quantum)
        context_switch_units(self.context_switch)

    @property
    def switch_units(self) -> int:
        return context_switch_units(self.context_switch)


class EventKind(Enum):
    IDLE = "idle"
    CONTEXT_SWITCH = "cs"
    RUNNING = "running"


@dataclass(frozen=True)
class Event:
    """
    What the CPU did during one time unit.
    """

    kind: EventKind
    pid: Optional[int] = None

    @classmethod
    def running(cls, pid: int) -> "Event":
        return cls(EventKind.RUNNING, pid)

    @property
    def is_running(self) -> bool:
        return self.kind is EventKind.RUNNING

    @property
    def token(self) -> str:
        if self.kind is EventKind.RUNNING:
            return f"p{self.pid}"
        return self.kind.value

    @classmethod
    def from_token(cls, token: str) -> "Event":
        if token == EventKind.IDLE.value:
            return IDLE
        if token == EventKind.CONTEXT_SWITCH.value:
            return CONTEXT_SWITCH
        if token.startswith("p") and token[1:].isdigit():
            return cls.running(int(token[1:]))
        raise ValueError(f"Unknown event token: {token!r}")

    def __str__(self) -> str:
        return self.token


IDLE = Event(EventKind.IDLE)
CONTEXT_SWITCH = Event(EventKind.CONTEXT_SWITCH)


def to_tokens(events: Iterable[Event]) -> List[str]:
    return [e.token for e in events]


def from_tokens(tokens: Iterable[str]) -> List[Event]:
    return [Event.from_token(t) for t in tokens]


@dataclass(frozen=True)
class RuntimeProcessState:
    pid: int
    arrival_time: int
    burst_time: int
    priority: int
    remaining_burst_time: int
    started: bool = False
    start_time: Optional[int] = None
    completed: bool = False
    end_time: Optional[int] = None

    @classmethod
    def from_process(cls, process: Process) -> "RuntimeProcessState":
        return cls(
            pid=process.pid,
            arrival_time=process.arrival_time,
            burst_time=process.burst_time,
            priority=process.priority,
            remaining_burst_time=process.burst_time,
        )


def apply_event(state: RuntimeProcessState, event: Event, time: int) -> RuntimeProcessState:
    """
    Advance one process by the event that occupied time unit ``time``.

    Only a running event for this pid changes anything; a completed
    process is left as it is.
    """
    if state.completed or not event.is_running or event.pid != state.pid:
        return state

    remaining = state.remaining_burst_time - 1
    changes: Dict[str, object] = {"remaining_burst_time": remaining}
    if not state.started:
        changes["started"] = True
        changes["start_time"] = time
    if remaining == 0:
        changes["completed"] = True
        changes["end_time"] = time + 1
    return replace(state, **changes)


class ProcessStatus(Enum):
    NOT_ARRIVED = "Not Arrived"
    WAITING = "Waiting"
    RUNNING = "Running"
    COMPLETED = "Completed"


@dataclass
class ScheduledSlice:
    """
    One run of identical consecutive events in the Gantt chart.
    """

    label: str
    start_time: int
    end_time: int

    @property
    def length(self) -> int:
        return self.end_time - self.start_time


def group_events(events: Iterable[Event]) -> List[ScheduledSlice]:
    slices: List[ScheduledSlice] = []
    for time, event in enumerate(events):
        token = event.token
        if slices and slices[-1].label == token and slices[-1].end_time == time:
            slices[-1].end_time = time + 1
        else:
            slices.append(ScheduledSlice(label=token, start_time=time, end_time=time + 1))
    return slices


@dataclass
class ProcessResult:
    pid: int
    arrival_time: int
    burst_time: int
    priority: int
    start_time: Optional[int]
    end_time: Optional[int]
    response_time: int
    turnaround_time: int
    waiting_time: int

    @property
    def completed(self) -> bool:
        return self.end_time is not None

    def as_dict(self) -> dict:
        return {
            "pid": self.pid,
            "arrivalTime": self.arrival_time,
            "burstTime": self.burst_time,
            "startTime": NOT_STARTED if self.start_time is None else self.start_time,
            "endTime": NOT_COMPLETED if self.end_time is None else self.end_time,
            "responseTime": self.response_time,
            "turnaroundTime": self.turnaround_time,
            "waitingTime": self.waiting_time,
        }


@dataclass
class MetricsSummary:
    avg_waiting_time: float = 0.0
    avg_turnaround_time: float = 0.0
    avg_response_time: float = 0.0
    cpu_throughput: float = 0.0
    cpu_utilization: float = 0.0
    total_time: int = 0

    def as_dict(self) -> dict:
        return {
            "avgWaitingTime": self.avg_waiting_time,
            "avgTurnaroundTime": self.avg_turnaround_time,
            "avgResponseTime": self.avg_response_time,
            "cpuThroughput": self.cpu_throughput,
            "cpuUtilization": self.cpu_utilization,
            "totalTime": self.total_time,
        }

    def value(self, metric: str) -> float:
        return self.as_dict()[metric]


@dataclass
class ComparisonEntry:
    policy: str
    summary: MetricsSummary
    events: List[Event] = field(default_factory=list)
    ranks: Dict[str, int] = field(default_factory=dict)
    score: float = 0.0
    is_best: bool = False
    is_worst: bool = False

    def as_dict(self) -> dict:
        data = self.summary.as_dict()
        data.update(
            steps=to_tokens(self.events),
            score=self.score,
            isBest=self.is_best,
            isWorst=self.is_worst,
        )
        return data
