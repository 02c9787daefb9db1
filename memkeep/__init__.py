"""memkeep: long-term memory store for AI agents."""

import logging
import os
import sys

__version__ = "0.1.0"

# Configure logging to stderr (keep stdout clean for piping)
_log_level = os.environ.get("MEMKEEP_LOG_LEVEL", "WARNING").upper()
logging.basicConfig(
    level=getattr(logging, _log_level, logging.WARNING),
    format="%(levelname)s: %(name)s: %(message)s",
    stream=sys.stderr,
)

from memkeep.async_memory import AsyncMemoryClient  # noqa: E402
from memkeep.context import OperationContext  # noqa: E402
from memkeep.memory import MemoryClient, RetentionStatus  # noqa: E402
from memkeep.options import AddOptions, DeleteAllOptions, GetAllOptions, SearchOptions  # noqa: E402
from memkeep.schema import Memory  # noqa: E402

__all__ = [
    "AddOptions",
    "AsyncMemoryClient",
    "DeleteAllOptions",
    "GetAllOptions",
    "Memory",
    "MemoryClient",
    "OperationContext",
    "RetentionStatus",
    "SearchOptions",
]
