"""
CPU scheduling simulator.

Generates per-time-unit event sequences for six scheduling policies,
derives process metrics from them, ranks policies against each other and
replays a schedule live under pause/resume and speed control.
"""

from .algorithms import ALGORITHMS, generate_events
from .compare import compare_policies, score_policies
from .errors import InsufficientPolicySelection, InvalidParameter, InvalidProcess, SchedulerError
from .metrics import evaluate
from .models import CONTEXT_SWITCH, IDLE, Event, Process
from .playback import PlaybackController, PlaybackState

__all__ = [
    "ALGORITHMS",
    "CONTEXT_SWITCH",
    "IDLE",
    "Event",
    "InsufficientPolicySelection",
    "InvalidParameter",
    "InvalidProcess",
    "PlaybackController",
    "PlaybackState",
    "Process",
    "SchedulerError",
    "compare_policies",
    "evaluate",
    "generate_events",
    "score_policies",
]
