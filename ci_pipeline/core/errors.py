"""
Errors
======
Exception hierarchy for the pipeline.

Precondition failures abort the whole run before any stage executes.
Stage failures are NOT exceptions: they are reported through
InvocationResult / StageResult status. Collection failures are recorded on
the ArtifactSet and logged.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class PreconditionError(PipelineError):
    """A requirement for starting the run is not met. Fatal for the run."""


class MissingSecretError(PreconditionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Required secret '{name}' is missing or empty")
        self.name = name


class InvalidSecretError(PreconditionError):
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Secret '{name}' is invalid: {reason}")
        self.name = name


class HostUnreachableError(PreconditionError):
    def __init__(self, role: str, hostname: str, port: int) -> None:
        super().__init__(f"{role} host {hostname}:{port} is unreachable")
        self.role = role
        self.hostname = hostname
        self.port = port


class CredentialProvisioningError(PreconditionError):
    """Writing the SSH key or config failed."""


class WorkspaceError(PipelineError):
    """The stage working tree could not be prepared. Fails the stage."""


class PipelineConfigError(PipelineError):
    """The YAML pipeline definition is malformed."""
