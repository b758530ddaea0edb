from __future__ import annotations

import csv
import json
import logging
import random
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import InvalidParameter, InvalidProcess
from .models import Process

logger = logging.getLogger(__name__)

# Accepted spellings per field; the first is the one written by save_workload.
_FIELD_ALIASES = {
    "pid": ("pid",),
    "arrival_time": ("arrivalTime", "arrival_time"),
    "burst_time": ("burstTime", "burst_time"),
    "priority": ("priority",),
}


def load_workload(path: str | Path) -> List[Process]:
    """
    Load a workload from a JSON or CSV file into a list of Process objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        processes = _load_json(path)
    elif suffix == ".csv":
        processes = _load_csv(path)
    else:
        raise InvalidParameter(f"Unsupported workload format: {suffix} (use .json or .csv)")

    logger.info("Loaded %d processes from %s", len(processes), path)
    return processes


def _load_json(path: Path) -> List[Process]:
    with path.open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise InvalidParameter(f"Malformed JSON workload {path}: {exc}") from exc

    if not isinstance(raw, list):
        raise InvalidParameter("JSON workload must be a list of process objects")

    return processes_from_mappings(raw)


def _load_csv(path: Path) -> List[Process]:
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        return processes_from_mappings(list(reader))


def _lookup(mapping, field: str):
    for key in _FIELD_ALIASES[field]:
        if key in mapping:
            return mapping[key]
    raise KeyError(field)


def processes_from_mappings(entries: Iterable) -> List[Process]:
    """
    Build processes from dict-like rows, reporting every invalid row in a
    single InvalidProcess.
    """
    processes: List[Process] = []
    problems: List[str] = []

    for idx, entry in enumerate(entries, start=1):
        try:
            pid = int(_lookup(entry, "pid"))
            arrival_time = int(_lookup(entry, "arrival_time"))
            burst_time = int(_lookup(entry, "burst_time"))
        except (KeyError, TypeError, ValueError):
            problems.append(f"row {idx}: missing or non-integer pid/arrival/burst in {entry!r}")
            continue

        try:
            priority_val = _lookup(entry, "priority")
        except KeyError:
            priority_val = None
        try:
            priority = int(priority_val) if priority_val not in (None, "") else 1
        except (TypeError, ValueError):
            problems.append(f"row {idx}: priority must be an integer (got {priority_val!r})")
            continue

        try:
            processes.append(
                Process(pid=pid, arrival_time=arrival_time, burst_time=burst_time, priority=priority)
            )
        except InvalidProcess as exc:
            problems.extend(f"row {idx}: {msg}" for msg in exc.problems)

    if problems:
        raise InvalidProcess(problems)
    return processes


def save_workload(path: str | Path, processes: Sequence[Process]) -> None:
    path = Path(path)
    data = [
        {
            "pid": p.pid,
            "arrivalTime": p.arrival_time,
            "burstTime": p.burst_time,
            "priority": p.priority,
        }
        for p in processes
    ]
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")


def generate_random_workload(
    count: int,
    seed: Optional[int] = None,
    with_priority: bool = True,
    first_pid: int = 1,
) -> List[Process]:
    """
    Random processes: arrival in 0..20, burst in 1..20 and, when wanted,
    priority in 1..10 (otherwise every priority is 1).
    """
    if count is None or count <= 0:
        raise InvalidParameter(f"Number of processes must be greater than 0 (got {count})")

    rng = random.Random(seed)
    processes = []
    for i in range(count):
        processes.append(
            Process(
                pid=first_pid + i,
                arrival_time=rng.randint(0, 20),
                burst_time=rng.randint(1, 20),
                priority=rng.randint(1, 10) if with_priority else 1,
            )
        )
    return processes
