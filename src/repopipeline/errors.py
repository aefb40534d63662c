"""Domain errors for RepoPipeline."""


class PipelineError(RuntimeError):
    """Raised when the pipeline run cannot continue safely."""


class CheckoutError(PipelineError):
    """Raised when a repository cannot be checked out at the effective branch."""


class ArtifactNotFoundError(PipelineError):
    """Raised when a successful build leaves no publishable artifact."""
