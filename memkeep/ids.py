"""Time-ordered unique ID generation."""

import threading
import time
from typing import Callable, Dict, Optional

# 2020-01-01T00:00:00Z in milliseconds
DEFAULT_EPOCH_MS = 1577836800000

NODE_BITS = 10
SEQUENCE_BITS = 12
MAX_NODE_ID = (1 << NODE_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1


class SnowflakeGenerator:
    """Snowflake-style 63-bit IDs: milliseconds | node | sequence.

    IDs from one generator are strictly increasing. If the wall clock steps
    backwards the generator keeps issuing from the last seen millisecond
    instead of reusing values.
    """

    def __init__(
        self,
        node_id: int = 1,
        epoch_ms: int = DEFAULT_EPOCH_MS,
        clock: Optional[Callable[[], int]] = None,
    ):
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"node_id must be between 0 and {MAX_NODE_ID}, got {node_id}")
        self.node_id = node_id
        self.epoch_ms = epoch_ms
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def generate(self) -> int:
        with self._lock:
            now_ms = max(self._clock(), self._last_ms)
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    # Sequence exhausted: borrow the next millisecond
                    now_ms = self._last_ms + 1
            else:
                self._sequence = 0
            self._last_ms = now_ms
            return ((now_ms - self.epoch_ms) << (NODE_BITS + SEQUENCE_BITS)) | (self.node_id << SEQUENCE_BITS) | self._sequence


_shared: Dict[int, SnowflakeGenerator] = {}
_shared_lock = threading.Lock()


def get_generator(node_id: int = 1) -> SnowflakeGenerator:
    """Return the process-wide generator for ``node_id``.

    Every client in a process draws from the same generator per node, so
    clients sharing a collection never issue the same ID. Separate processes
    writing to one collection need distinct node IDs.
    """
    with _shared_lock:
        generator = _shared.get(node_id)
        if generator is None:
            generator = SnowflakeGenerator(node_id=node_id)
            _shared[node_id] = generator
        return generator
