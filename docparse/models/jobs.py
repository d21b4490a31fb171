"""
Job model — one server-side parse job as seen by the client.

Lifecycle:
    created by submit() in QUEUED
      → mutated only by its own poll loop (through JobStateMachine)
      → immutable once it reaches COMPLETED | FAILED | CANCELLED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from docparse.models.requests import ParseRequest


class JobState(str, Enum):
    """
    Transitions: queued → running → completed | failed
                 any non-terminal → cancelled
    Terminal states are sinks.
    """
    QUEUED    = "queued"
    RUNNING   = "running"
    COMPLETED = "completed"
    FAILED    = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: frozenset[JobState] = frozenset(
    {JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED}
)


class InvalidJobTransition(Exception):
    """Raised for any transition out of a terminal state or any illegal edge."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class Job:
    job_id:          str
    request:         ParseRequest
    state:           JobState        = JobState.QUEUED
    created_at:      datetime        = field(default_factory=_utcnow)
    last_polled_at:  datetime | None = None
    progress:        float | None    = None     # 0.0 – 1.0
    failure_reason:  str | None      = None
    failure_message: str | None      = None
    request_id:      str | None      = None     # X-Request-ID of the submission
    polls:           int             = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "_initialised", True)

    def __setattr__(self, name: str, value) -> None:
        if self.__dict__.get("_initialised") and self.__dict__.get("state") in TERMINAL_STATES:
            raise InvalidJobTransition(
                f"Job {self.__dict__.get('job_id')} is {self.state.value}; "
                f"cannot modify {name!r}"
            )
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def __repr__(self) -> str:
        progress = f"{self.progress:.0%}" if self.progress is not None else "n/a"
        return f"Job(id={self.job_id!r}, state={self.state.value}, progress={progress})"
