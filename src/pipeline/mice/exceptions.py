"""Exceptions raised by the chained-equations imputation engine."""


class ImputationError(Exception):
    """Base class for imputation-related exceptions."""

    pass


class ConfigurationError(ImputationError):
    """Raised when variable specs or run settings are invalid or contradictory."""

    pass


class DependencyError(ImputationError):
    """Raised when a variable's predictors are not fully populated at training time."""

    pass


class SchemaMismatchError(ImputationError):
    """Raised when data columns disagree with the layout a bundle was trained on."""

    pass


class TrainingFailure(ImputationError):
    """Raised when the learning backend fails to fit or predict."""

    pass


class ChainFailure:
    """Record of a chain that was aborted, kept on the bundle for inspection."""

    def __init__(self, chain_id, error_type, message):
        self.chain_id = chain_id
        self.error_type = error_type
        self.message = message

    @classmethod
    def from_exception(cls, chain_id, exc):
        return cls(chain_id, type(exc).__name__, str(exc))

    def __repr__(self):
        return f"ChainFailure(chain_id={self.chain_id}, error_type={self.error_type!r}, message={self.message!r})"
