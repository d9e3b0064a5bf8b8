"""Domain errors raised by the registry, ledger and alerting services."""


class CronwatchError(Exception):
    """Base class for all cronwatch errors."""


class UnknownJob(CronwatchError):
    """Referenced job is not registered."""

    def __init__(self, job_name: str) -> None:
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is not registered")


class DuplicateJob(CronwatchError):
    """A job with this name already exists."""

    def __init__(self, job_name: str) -> None:
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' already exists")


class NotFound(CronwatchError):
    """Update or delete target does not exist."""


class PermissionDenied(CronwatchError):
    """Actor is not allowed to perform the operation."""


class InvalidCommand(CronwatchError):
    """Slash command text could not be parsed."""


class DeliveryFailure(CronwatchError):
    """A notification could not be delivered to one recipient."""

    def __init__(self, recipient: str, reason: str) -> None:
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Delivery to {recipient} failed: {reason}")


class StoreUnavailable(CronwatchError):
    """Transient persistence failure; the current tick is abandoned."""
