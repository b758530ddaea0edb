from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Sequence

from rich import box
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .algorithms import ALGORITHM_NAMES, ALGORITHMS, generate_events, normalize_algorithm
from .compare import METRIC_WEIGHTS, compare_policies, order_by_score
from .errors import SchedulerError
from .gantt import build_rich_gantt
from .metrics import METRIC_LABELS, evaluate
from .models import (
    NOT_COMPLETED,
    NOT_STARTED,
    ComparisonEntry,
    Event,
    EventKind,
    MetricsSummary,
    Process,
    ProcessResult,
)
from .playback import PlaybackController, PlaybackState, play
from .workload_io import generate_random_workload, load_workload, save_workload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schedviz",
        description="CPU scheduling simulator (FCFS, SJF, SRTF, RR, Priority, Priority-Preemptive).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Log progress (-v for info, -vv for debug).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a scheduling algorithm on a workload file.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        help=f"Algorithm to use ({', '.join(ALGORITHMS)}).",
    )
    run_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    run_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=2,
        help="Time quantum for round-robin (ignored by the other algorithms, default: 2).",
    )
    run_parser.add_argument(
        "--context-switch",
        "-c",
        type=float,
        default=0.0,
        help="Context switch time; fractions are truncated to whole time units (default: 0).",
    )
    run_parser.add_argument(
        "--step",
        action="store_true",
        help="Replay the schedule live in the terminal, one time unit per tick.",
    )
    run_parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Time units per second when --step is used (default: 1).",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple algorithms on the same workload and rank them.",
    )
    compare_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=list(ALGORITHMS),
        help="Algorithms to compare, at least two (default: all).",
    )
    compare_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=2,
        help="Time quantum used for RR when included (default: 2).",
    )
    compare_parser.add_argument(
        "--context-switch",
        "-c",
        type=float,
        default=0.0,
        help="Context switch time (default: 0).",
    )

    generate_parser = subparsers.add_parser("generate", help="Write a random workload file.")
    generate_parser.add_argument("--count", "-n", type=int, default=5, help="Number of processes (default: 5).")
    generate_parser.add_argument(
        "--output",
        "-o",
        default="workload.json",
        help="Where to write the JSON workload (default: workload.json).",
    )
    generate_parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible workloads.")
    generate_parser.add_argument(
        "--no-priority",
        action="store_true",
        help="Give every process priority 1.",
    )

    return parser


def configure_logging(verbosity: int, console: Console) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fmt_time(value, sentinel: str) -> str:
    return sentinel if value is None else str(value)


def _process_table(results: Sequence[ProcessResult]) -> Table:
    headers = [
        "PID",
        "Arrive",
        "Burst",
        "Priority",
        "Start",
        "End",
        "Response",
        "Turnaround",
        "Wait",
    ]

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"PID", "Priority"} else "right"
        proc_table.add_column(h, justify=justify)

    for r in results:
        proc_table.add_row(
            f"P{r.pid}",
            str(r.arrival_time),
            str(r.burst_time),
            str(r.priority),
            _fmt_time(r.start_time, NOT_STARTED),
            _fmt_time(r.end_time, NOT_COMPLETED),
            str(r.response_time),
            str(r.turnaround_time),
            str(r.waiting_time),
        )
    return proc_table


def _summary_table(summary: MetricsSummary) -> Table:
    sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
    sys_table.add_column("Metric")
    sys_table.add_column("Value", justify="right")

    sys_table.add_row(METRIC_LABELS["avgWaitingTime"], f"{summary.avg_waiting_time:.2f}")
    sys_table.add_row(METRIC_LABELS["avgTurnaroundTime"], f"{summary.avg_turnaround_time:.2f}")
    sys_table.add_row(METRIC_LABELS["avgResponseTime"], f"{summary.avg_response_time:.2f}")
    sys_table.add_row(METRIC_LABELS["cpuThroughput"] + " (proc/time)", f"{summary.cpu_throughput:.2f}")
    sys_table.add_row(METRIC_LABELS["cpuUtilization"], f"{summary.cpu_utilization:.2f}%")
    sys_table.add_row(METRIC_LABELS["totalTime"], str(summary.total_time))
    return sys_table


def _print_result(
    console: Console,
    algorithm: str,
    quantum: int,
    events: List[Event],
    results: Sequence[ProcessResult],
    summary: MetricsSummary,
) -> None:
    console.print(f"[bold]Algorithm:[/bold] {ALGORITHM_NAMES[algorithm]}")
    if algorithm == "rr":
        console.print(f"[bold]Quantum:[/bold] {quantum}")

    console.print()

    panel, time_marks = build_rich_gantt(events)
    console.print(panel)
    if time_marks:
        console.print(time_marks)

    console.print()
    console.print(_process_table(results))
    console.print()
    console.print(_summary_table(summary))


def _live_table(controller: PlaybackController) -> Table:
    cpu = controller.cpu_state
    if cpu.is_running:
        cpu_label = f"Running Process P{cpu.pid}"
    elif cpu.kind is EventKind.CONTEXT_SWITCH:
        cpu_label = "Context Switch"
    else:
        cpu_label = "CPU Idle"

    table = Table(
        title=f"Live execution  t={controller.time_index}  {cpu_label}  ({controller.state.value})",
        box=box.SIMPLE_HEAVY,
    )
    table.add_column("PID", justify="center")
    table.add_column("Arrival", justify="right")
    table.add_column("Remaining Burst", justify="right")
    table.add_column("Status")

    styles = {"Completed": "green", "Running": "bold blue", "Waiting": "yellow", "Not Arrived": "dim"}
    for s in controller.live_states:
        status = controller.status_of(s).value
        table.add_row(
            f"P{s.pid}",
            str(s.arrival_time),
            str(s.remaining_burst_time),
            f"[{styles[status]}]{status}[/{styles[status]}]",
        )
    return table


async def _animate(
    console: Console, processes: Sequence[Process], events: List[Event], speed: float
) -> List[ProcessResult]:
    """
    Live, time-stepped replay of a computed schedule.
    """
    with Live(console=console, auto_refresh=False) as live:

        def refresh(c: PlaybackController) -> None:
            live.update(_live_table(c), refresh=True)

        controller = PlaybackController(on_update=refresh, speed=speed)
        controller.load(processes, events)
        try:
            return await play(controller)
        finally:
            if controller.state is not PlaybackState.FINISHED:
                controller.clear()


def _cmd_run(args: argparse.Namespace, console: Console) -> int:
    algorithm = normalize_algorithm(args.algorithm)
    processes = load_workload(Path(args.workload))
    events = generate_events(algorithm, processes, quantum=args.quantum, context_switch=args.context_switch)
    results, summary = evaluate(processes, events)

    if args.step:
        console.print(f"[bold]Simulating {ALGORITHM_NAMES[algorithm]}[/bold] (duration {len(events)} time units)")
        console.print("[dim]Press Ctrl+C to skip animation.[/dim]")
        try:
            asyncio.run(_animate(console, processes, events, args.speed))
        except KeyboardInterrupt:
            console.print("[yellow]Animation skipped.[/yellow]")

    _print_result(console, algorithm, args.quantum, events, results, summary)
    return 0


def _comparison_table(entries: Dict[str, ComparisonEntry]) -> Table:
    table = Table(title="Algorithm comparison", box=box.SIMPLE_HEAVY)
    table.add_column("")
    table.add_column("Algorithm")
    for metric in METRIC_WEIGHTS:
        table.add_column(METRIC_LABELS[metric], justify="right")
    table.add_column(METRIC_LABELS["totalTime"], justify="right")
    table.add_column("Score", justify="right")

    for policy in order_by_score(entries):
        entry = entries[policy]
        s = entry.summary
        marker = "[green]best[/green]" if entry.is_best else "[red]worst[/red]" if entry.is_worst else ""
        table.add_row(
            marker,
            ALGORITHM_NAMES[policy],
            f"{s.avg_waiting_time:.2f} (#{entry.ranks['avgWaitingTime']})",
            f"{s.avg_turnaround_time:.2f} (#{entry.ranks['avgTurnaroundTime']})",
            f"{s.avg_response_time:.2f} (#{entry.ranks['avgResponseTime']})",
            f"{s.cpu_throughput:.2f} (#{entry.ranks['cpuThroughput']})",
            f"{s.cpu_utilization:.2f}% (#{entry.ranks['cpuUtilization']})",
            str(s.total_time),
            f"{entry.score:.2f}",
        )
    return table


def _cmd_compare(args: argparse.Namespace, console: Console) -> int:
    processes = load_workload(Path(args.workload))
    entries = compare_policies(
        processes,
        args.algorithms,
        quantum=args.quantum,
        context_switch=args.context_switch,
    )

    console.print(_comparison_table(entries))
    console.print()

    for policy in order_by_score(entries):
        panel, time_marks = build_rich_gantt(entries[policy].events, title=ALGORITHM_NAMES[policy])
        console.print(panel)
        if time_marks:
            console.print(time_marks)
    return 0


def _cmd_generate(args: argparse.Namespace, console: Console) -> int:
    processes = generate_random_workload(args.count, seed=args.seed, with_priority=not args.no_priority)
    save_workload(Path(args.output), processes)
    console.print(f"Wrote {len(processes)} processes to [green]{args.output}[/green]")
    return 0


COMMANDS = {
    "run": _cmd_run,
    "compare": _cmd_compare,
    "generate": _cmd_generate,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    console = Console()
    configure_logging(args.verbose, console)

    try:
        return COMMANDS[args.command](args, console)
    except SchedulerError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 2
    except OSError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
