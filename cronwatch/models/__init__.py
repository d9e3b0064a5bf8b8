from cronwatch.models.activity import ActivityEntry
from cronwatch.models.admin import Admin
from cronwatch.models.base import Base
from cronwatch.models.job import Job, Severity
from cronwatch.models.maintainer import Maintainer
from cronwatch.models.run import ACTIVE_STATUSES, TERMINAL_STATUSES, Run, RunStatus

__all__ = [
    "Base",
    "Job",
    "Severity",
    "Run",
    "RunStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Maintainer",
    "Admin",
    "ActivityEntry",
]
