from __future__ import annotations

from typing import List, Sequence, Tuple

from .models import (
    Event,
    MetricsSummary,
    Process,
    ProcessResult,
    RuntimeProcessState,
    apply_event,
)

METRIC_LABELS = {
    "avgWaitingTime": "Average Waiting Time",
    "avgTurnaroundTime": "Average Turnaround Time",
    "avgResponseTime": "Average Response Time",
    "cpuThroughput": "CPU Throughput",
    "cpuUtilization": "CPU Utilization",
    "totalTime": "Total Time",
}


def replay(processes: Sequence[Process], events: Sequence[Event]) -> List[RuntimeProcessState]:
    """
    Run an event sequence against fresh runtime state, one time unit at a time.
    """
    states = [RuntimeProcessState.from_process(p) for p in processes]
    for time, event in enumerate(events):
        if event.is_running:
            states = [apply_event(s, event, time) for s in states]
    return states


def results_from_states(
    states: Sequence[RuntimeProcessState], total_time: int
) -> List[ProcessResult]:
    """
    Derive per-process results. A process that never completed is measured
    up to ``total_time``; one that never started has a response time of 0.
    """
    results: List[ProcessResult] = []
    for s in states:
        end = s.end_time if s.end_time is not None else total_time
        turnaround_time = end - s.arrival_time
        results.append(
            ProcessResult(
                pid=s.pid,
                arrival_time=s.arrival_time,
                burst_time=s.burst_time,
                priority=s.priority,
                start_time=s.start_time,
                end_time=s.end_time,
                response_time=0 if s.start_time is None else s.start_time - s.arrival_time,
                turnaround_time=turnaround_time,
                waiting_time=max(0, turnaround_time - s.burst_time),
            )
        )
    return results


def summarize(results: Sequence[ProcessResult], total_time: int) -> MetricsSummary:
    """
    Averages of the per-process metrics plus throughput and CPU utilization.
    """
    if not results:
        return MetricsSummary(total_time=total_time)

    n = len(results)
    completed = sum(1 for r in results if r.completed)
    total_burst = sum(r.burst_time for r in results)

    return MetricsSummary(
        avg_waiting_time=sum(r.waiting_time for r in results) / n,
        avg_turnaround_time=sum(r.turnaround_time for r in results) / n,
        avg_response_time=sum(r.response_time for r in results) / n,
        cpu_throughput=completed / total_time if total_time > 0 else 0.0,
        cpu_utilization=total_burst / total_time * 100 if total_time > 0 else 0.0,
        total_time=total_time,
    )


def compute_process_results(processes: Sequence[Process], events: Sequence[Event]) -> List[ProcessResult]:
    return results_from_states(replay(processes, events), len(events))


def evaluate(processes: Sequence[Process], events: Sequence[Event]) -> Tuple[List[ProcessResult], MetricsSummary]:
    """
    Per-process results and the aggregate summary for one event sequence.
    """
    results = compute_process_results(processes, events)
    return results, summarize(results, len(events))
