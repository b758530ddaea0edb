import pytest

from schedviz.algorithms import generate_fcfs, generate_rr, generate_srtf
from schedviz.metrics import compute_process_results, evaluate, summarize
from schedviz.models import NOT_COMPLETED, NOT_STARTED, Event, Process, from_tokens


def _procs():
    return [
        Process(1, arrival_time=0, burst_time=5, priority=2),
        Process(2, arrival_time=1, burst_time=3, priority=1),
        Process(3, arrival_time=2, burst_time=8, priority=3),
    ]


def _by_pid(results):
    return {r.pid: r for r in results}


def test_fcfs_process_metrics():
    results = _by_pid(compute_process_results(_procs(), generate_fcfs(_procs())))

    assert (results[1].start_time, results[1].end_time) == (0, 5)
    assert (results[1].waiting_time, results[1].turnaround_time, results[1].response_time) == (0, 5, 0)
    assert (results[2].start_time, results[2].end_time) == (5, 8)
    assert (results[2].waiting_time, results[2].turnaround_time, results[2].response_time) == (4, 7, 4)
    assert (results[3].start_time, results[3].end_time) == (8, 16)
    assert (results[3].waiting_time, results[3].turnaround_time, results[3].response_time) == (6, 14, 6)


def test_fcfs_summary():
    _, summary = evaluate(_procs(), generate_fcfs(_procs()))
    assert summary.avg_waiting_time == pytest.approx(10 / 3)
    assert summary.avg_turnaround_time == pytest.approx(26 / 3)
    assert summary.avg_response_time == pytest.approx(10 / 3)
    assert summary.cpu_throughput == pytest.approx(3 / 16)
    assert summary.cpu_utilization == pytest.approx(100.0)
    assert summary.total_time == 16


def test_rr_process_metrics():
    results = _by_pid(compute_process_results(_procs(), generate_rr(_procs(), quantum=2)))
    assert [(r.start_time, r.end_time, r.waiting_time, r.response_time) for r in results.values()] == [
        (0, 12, 7, 0),
        (2, 9, 5, 1),
        (4, 16, 6, 2),
    ]


def test_srtf_metrics():
    results, summary = evaluate(_procs(), generate_srtf(_procs()))
    assert [r.turnaround_time for r in results] == [8, 3, 14]
    assert summary.avg_waiting_time == pytest.approx(3.0)
    assert summary.avg_response_time == pytest.approx(2.0)


def test_context_switches_lower_utilization():
    events = generate_fcfs(_procs(), context_switch=2)
    _, summary = evaluate(_procs(), events)
    assert summary.total_time == 20
    assert summary.cpu_utilization == pytest.approx(80.0)
    assert summary.cpu_throughput == pytest.approx(3 / 20)


def test_empty_sequence_has_zero_metrics():
    results, summary = evaluate([], [])
    assert results == []
    assert summary.total_time == 0
    assert summary.cpu_throughput == 0
    assert summary.cpu_utilization == 0
    assert summary.avg_waiting_time == 0


def test_unfinished_process_is_measured_to_end_of_sequence():
    procs = [Process(1, 0, 2), Process(2, 0, 3)]
    results, summary = evaluate(procs, from_tokens(["p1", "p1", "idle"]))

    unfinished = _by_pid(results)[2]
    assert unfinished.start_time is None
    assert unfinished.end_time is None
    assert unfinished.turnaround_time == 3
    assert unfinished.waiting_time == 0
    assert unfinished.response_time == 0
    assert unfinished.as_dict()["startTime"] == NOT_STARTED
    assert unfinished.as_dict()["endTime"] == NOT_COMPLETED
    assert summary.cpu_throughput == pytest.approx(1 / 3)


def test_evaluate_is_idempotent_and_does_not_mutate_inputs():
    procs = _procs()
    events = generate_rr(procs, quantum=3, context_switch=1)
    snapshot = list(events)

    first = evaluate(procs, events)
    second = evaluate(procs, events)

    assert first == second
    assert events == snapshot
    assert procs == _procs()


def test_summarize_counts_only_completed_processes():
    procs = [Process(1, 0, 1), Process(2, 0, 1)]
    results = compute_process_results(procs, [Event.running(1)])
    assert summarize(results, 1).cpu_throughput == pytest.approx(1.0)


def test_result_dict_uses_external_keys():
    results = compute_process_results(_procs(), generate_fcfs(_procs()))
    assert results[1].as_dict() == {
        "pid": 2,
        "arrivalTime": 1,
        "burstTime": 3,
        "startTime": 5,
        "endTime": 8,
        "responseTime": 4,
        "turnaroundTime": 7,
        "waitingTime": 4,
    }
