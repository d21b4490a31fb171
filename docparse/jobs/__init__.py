from docparse.jobs.controller import ParseController
from docparse.jobs.poller import JobPoller, ProgressCallback
from docparse.jobs.state_machine import JobStateMachine

__all__ = ["JobPoller", "JobStateMachine", "ParseController", "ProgressCallback"]
