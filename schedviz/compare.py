from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from .algorithms import generate_events, normalize_algorithm
from .errors import InsufficientPolicySelection
from .metrics import evaluate
from .models import ComparisonEntry, MetricsSummary, Process, check_quantum, context_switch_units

logger = logging.getLogger(__name__)

# metric -> (weight, lower_is_better)
METRIC_WEIGHTS = {
    "avgWaitingTime": (0.25, True),
    "avgTurnaroundTime": (0.25, True),
    "avgResponseTime": (0.20, True),
    "cpuThroughput": (0.15, False),
    "cpuUtilization": (0.15, False),
}

SCORE_TOLERANCE = 0.001


@dataclass
class PolicyScore:
    policy: str
    score: float
    ranks: Dict[str, int] = field(default_factory=dict)
    is_best: bool = False
    is_worst: bool = False


def rank_metric(summaries: Mapping[str, MetricsSummary], metric: str, lower_is_better: bool = True) -> Dict[str, int]:
    """
    Rank policies on one metric, 1 being best. Equal values keep the order
    the policies were given in and still get distinct ranks.
    """

    def sort_key(item):
        value = item[1].value(metric)
        return value if lower_is_better else -value

    ordered = sorted(summaries.items(), key=sort_key)
    return {policy: idx for idx, (policy, _) in enumerate(ordered, start=1)}


def score_policies(summaries: Mapping[str, MetricsSummary]) -> Dict[str, PolicyScore]:
    """
    Composite score per policy: the weighted sum of its per-metric ranks.
    Lower is better. Scores within ``SCORE_TOLERANCE`` of the extremes are
    flagged best/worst together.
    """
    scores = {policy: PolicyScore(policy=policy, score=0.0) for policy in summaries}
    if not scores:
        return scores

    for metric, (weight, lower_is_better) in METRIC_WEIGHTS.items():
        for policy, rank in rank_metric(summaries, metric, lower_is_better).items():
            scores[policy].ranks[metric] = rank
            scores[policy].score += rank * weight

    best = min(s.score for s in scores.values())
    worst = max(s.score for s in scores.values())
    for s in scores.values():
        s.is_best = abs(s.score - best) < SCORE_TOLERANCE
        s.is_worst = abs(s.score - worst) < SCORE_TOLERANCE
    return scores


def order_by_score(scores: Mapping[str, PolicyScore]) -> List[str]:
    """
    Policies from best to worst composite score (stable on ties).
    """
    return [s.policy for s in sorted(scores.values(), key=lambda s: s.score)]


def _unique_policies(policies: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for name in policies:
        key = normalize_algorithm(name)
        if key not in seen:
            seen.append(key)
    return seen


def compare_policies(
    processes: Sequence[Process],
    policies: Iterable[str],
    quantum: int = 2,
    context_switch: float = 0.0,
) -> Dict[str, ComparisonEntry]:
    """
    Run every requested policy on the same processes and score them against
    each other.
    """
    selected = _unique_policies(policies)
    if len(selected) < 2:
        raise InsufficientPolicySelection(
            f"Select at least two algorithms to compare (got {len(selected)})"
        )
    # The quantum only matters, and is only checked, when round-robin is compared.
    if "rr" in selected:
        check_quantum(quantum)
    context_switch_units(context_switch)

    entries: Dict[str, ComparisonEntry] = {}
    for policy in selected:
        events = generate_events(policy, processes, quantum=quantum, context_switch=context_switch)
        _, summary = evaluate(processes, events)
        entries[policy] = ComparisonEntry(policy=policy, summary=summary, events=events)

    scores = score_policies({policy: e.summary for policy, e in entries.items()})
    for policy, entry in entries.items():
        s = scores[policy]
        entry.ranks = s.ranks
        entry.score = s.score
        entry.is_best = s.is_best
        entry.is_worst = s.is_worst
        logger.info("%s: score %.2f%s%s", policy, s.score, " (best)" if s.is_best else "", " (worst)" if s.is_worst else "")

    return entries
