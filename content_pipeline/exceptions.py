class PipelineError(Exception):
    """Base class for errors raised by the content pipeline."""


class RoundValidationError(PipelineError):
    """A round produced output that does not satisfy its contract."""

    def __init__(self, round, field_path, reason, errors=None):
        self.round = round
        self.field_path = field_path
        self.reason = reason
        self.errors = errors or []
        super().__init__(f"[{round}] {field_path or '<root>'}: {reason}")


class RoundExecutionError(PipelineError):
    """A round executor failed (network, timeout, model or internal error)."""

    def __init__(self, message, round=None):
        self.round = round
        super().__init__(message)


class PipelineConfigurationError(RoundExecutionError):
    """A round cannot run because a credential or setting is missing."""


class StoreError(PipelineError):
    """The artifact store backend is unavailable or rejected a write."""


class RunNotFoundError(PipelineError):
    def __init__(self, run_id):
        self.run_id = run_id
        super().__init__(f"Pipeline run not found: {run_id}")


class RunAlreadyFinalizedError(PipelineError):
    def __init__(self, run_id, status):
        self.run_id = run_id
        self.status = status
        super().__init__(f"Pipeline run {run_id} is already {status}")


class ContextConflictError(PipelineError):
    """A round output was about to overwrite an existing context entry."""
