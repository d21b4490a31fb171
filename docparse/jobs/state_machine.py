"""
Job State Machine — the only code path that mutates a Job.

    QUEUED ──► RUNNING ──► COMPLETED
       │          │
       │          └──────► FAILED
       ├─────────────────► COMPLETED | FAILED      (fast jobs skip RUNNING)
       └── any non-terminal ──► CANCELLED

Self-transitions on a non-terminal state are allowed and carry progress
updates. Anything leaving a terminal state raises InvalidJobTransition.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from docparse.models.jobs import InvalidJobTransition, Job, JobState

logger = logging.getLogger(__name__)

_ALLOWED: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED: frozenset({
        JobState.QUEUED, JobState.RUNNING, JobState.COMPLETED,
        JobState.FAILED, JobState.CANCELLED,
    }),
    JobState.RUNNING: frozenset({
        JobState.RUNNING, JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED,
    }),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED:    frozenset(),
    JobState.CANCELLED: frozenset(),
}


class JobStateMachine:
    """Stateless; one instance can drive any number of jobs."""

    @staticmethod
    def can_transition(current: JobState, target: JobState) -> bool:
        return target in _ALLOWED[current]

    def transition(
        self,
        job:             Job,
        target:          JobState,
        *,
        progress:        float | None = None,
        failure_reason:  str | None   = None,
        failure_message: str | None   = None,
    ) -> Job:
        current = job.state
        if not self.can_transition(current, target):
            raise InvalidJobTransition(
                f"Job {job.job_id}: illegal transition {current.value} → {target.value}"
            )

        # Job refuses writes once terminal, so the state is assigned last
        if progress is not None:
            job.progress = progress
        elif target is JobState.COMPLETED:
            job.progress = 1.0
        if failure_reason is not None:
            job.failure_reason = failure_reason
        if failure_message is not None:
            job.failure_message = failure_message
        job.state = target

        if target is not current:
            logger.info(
                "JobStateMachine | job=%s %s → %s",
                job.job_id, current.value, target.value,
            )
        return job

    def record_poll(self, job: Job) -> None:
        """Stamp a successful status fetch on a non-terminal job."""
        if job.is_terminal:
            raise InvalidJobTransition(f"Job {job.job_id} is {job.state.value}; no further polls")
        job.last_polled_at = datetime.now(timezone.utc)
        job.polls += 1
