"""Pipeline error taxonomy.

Only some of these ever reach a job's ``error_message``. Provider errors are
recovered at the stage that raised them (rewrite falls back to a local plan,
a failed candidate is marked failed) and surface only when every recovery
path is exhausted.
"""


class MediaPipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigMissingError(MediaPipelineError):
    """No category profile exists for a niche."""

    def __init__(self, niche: str) -> None:
        super().__init__(f"No category profile configured for niche '{niche}'")
        self.niche = niche


class ProviderError(MediaPipelineError):
    """An external provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """An external provider call exceeded its time limit."""

    def __init__(self, provider: str, timeout_seconds: float) -> None:
        super().__init__(provider, f"timed out after {timeout_seconds:.0f}s")
        self.timeout_seconds = timeout_seconds


class FallbackNotViableError(MediaPipelineError):
    """Fallback composition cannot run because no product cutout exists."""


class PersistenceError(MediaPipelineError):
    """A job or candidate write failed; stage state can no longer be trusted."""


class ScoresAlreadySetError(MediaPipelineError):
    """A candidate that already carries QA scores was scored again."""

    def __init__(self, candidate_id: object) -> None:
        super().__init__(f"Candidate {candidate_id} already scored; scores are immutable")
        self.candidate_id = candidate_id


class JobNotFoundError(MediaPipelineError):
    """No job exists with the given id."""

    def __init__(self, job_id: object) -> None:
        super().__init__(f"Video job not found: {job_id}")
        self.job_id = job_id


class JobDeletedError(JobNotFoundError):
    """The job row was deleted while the job was running."""


class JobCancelledError(MediaPipelineError):
    """The job was cancelled between stages."""


class InvalidJobInputError(MediaPipelineError, ValueError):
    """A submission failed validation."""
