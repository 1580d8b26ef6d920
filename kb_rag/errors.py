"""KB RAG error hierarchy.

All project exceptions inherit from KBRagError so the CLI can catch them at
its top-level boundary:

    KBRagError
    ├── ConfigurationError
    ├── ProvisioningError
    └── PollError
        ├── PollTimeoutError
        ├── ResourceFailedError
        └── PollCancelledError
"""

from typing import Optional


class KBRagError(Exception):
    """Base class for all KB RAG errors."""


class ConfigurationError(KBRagError):
    """Required configuration is missing or invalid."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class ProvisioningError(KBRagError):
    """Creating a cloud resource failed for a reason other than already-exists."""

    def __init__(self, kind: str, name: str, cause: Optional[BaseException] = None):
        self.kind = kind
        self.name = name
        self.cause = cause
        message = f"Failed to create {kind} '{name}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class PollError(KBRagError):
    """Base class for activation polling failures."""


class PollTimeoutError(PollError):
    """Attempt budget exhausted before the resource reached a terminal state."""

    def __init__(self, resource: str, attempts: int, last_status: Optional[str] = None):
        self.resource = resource
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Timeout waiting for {resource} to become active "
            f"after {attempts} attempts (last status: {last_status or 'UNKNOWN'})"
        )


class ResourceFailedError(PollError):
    """The managed service reported an explicit failure status."""

    def __init__(self, resource: str, status: str):
        self.resource = resource
        self.status = status
        super().__init__(f"{resource} creation failed (status: {status})")


class PollCancelledError(PollError):
    """Polling was cancelled through its cancellation token."""

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Polling for {resource} was cancelled")
