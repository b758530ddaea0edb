from __future__ import annotations

from typing import List, Sequence


class SchedulerError(ValueError):
    """
    Base class for input validation failures. Always recoverable by fixing
    the input and trying again.
    """


class InvalidProcess(SchedulerError):
    """
    One or more processes failed validation.

    ``problems`` holds one message per offending field, each prefixed with
    the process it belongs to, so every bad row is reported at once.
    """

    def __init__(self, problems: Sequence[str]):
        self.problems: List[str] = list(problems)
        super().__init__("Invalid process input: " + "; ".join(self.problems))


class InvalidParameter(SchedulerError):
    pass


class InsufficientPolicySelection(SchedulerError):
    pass
