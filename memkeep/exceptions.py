"""Custom exception classes for memkeep."""

from typing import Optional, Type


class MemkeepError(Exception):
    """Base class for every error raised by memkeep.

    Attributes:
        message: Human readable description
        op: Name of the operation that failed (e.g. "add", "search"), if known
    """

    def __init__(self, message: str = "", op: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.op = op

    def __str__(self) -> str:
        if self.op:
            return f"memkeep: {self.op}: {self.message}"
        return self.message

    @property
    def root_cause(self) -> BaseException:
        """Innermost exception in the ``__cause__`` chain."""
        exc: BaseException = self
        while exc.__cause__ is not None:
            exc = exc.__cause__
        return exc


class InvalidConfigError(MemkeepError):
    """Configuration is malformed or names an unknown provider."""


class ConnectionFailedError(MemkeepError):
    """A collaborator could not be reached."""


class EmbeddingFailedError(MemkeepError):
    """The embedding provider failed to produce vectors."""


class DuplicateMemoryError(MemkeepError):
    """A near-duplicate memory exists. Informational; dedup resolves it by merging."""


class InvalidInputError(MemkeepError):
    """Caller supplied invalid arguments."""


class NotFoundError(MemkeepError):
    """No memory exists with the requested ID."""


class StorageOperationError(MemkeepError):
    """The vector store failed to complete an operation."""


class LLMOperationError(MemkeepError):
    """The text generation provider failed."""


class IllegalStateError(MemkeepError):
    """Operation invoked in a state that does not allow it (e.g. after close)."""


class OperationCancelledError(MemkeepError):
    """Operation context was cancelled or its deadline passed."""


def wrap_error(op: str, exc: BaseException, default: Type[MemkeepError] = StorageOperationError) -> MemkeepError:
    """Attach an operation name to a failure while keeping its kind.

    A ``MemkeepError`` keeps its class so callers can still ``except NotFoundError``
    after wrapping; any other exception is classified as ``default``. The caller
    is expected to chain with ``raise wrap_error(...) from exc``.

    Args:
        op: Operation name
        exc: Original failure
        default: Error kind for exceptions that are not ``MemkeepError``

    Returns:
        New error instance ready to raise
    """
    if isinstance(exc, MemkeepError):
        return type(exc)(exc.message, op=op)
    return default(str(exc) or type(exc).__name__, op=op)
