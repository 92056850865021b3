"""Exchange id generator — 64-bit snowflake-style ids rendered as strings.

Layout: 41 bits of milliseconds since 2023-11-14, 10 bits of node id
(settings.NODE_ID, one per running instance), 12 bits of sequence.

The generator keeps a logical clock that never moves backwards. When the
wall clock steps back, or 4096 ids are issued within one millisecond, the
logical clock simply advances by one millisecond instead of waiting for the
wall clock to catch up. Ids stay unique and strictly increasing per node;
under sustained bursts they can run slightly ahead of real time.
"""

import threading
import time

from config.settings import settings

_EPOCH_MS = 1_700_000_000_000
_NODE_BITS = 10
_SEQUENCE_BITS = 12
MAX_NODE_ID = (1 << _NODE_BITS) - 1
_MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class SnowflakeIdGenerator:
    def __init__(self, node_id: int = 0, clock=_wall_clock_ms) -> None:
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"node_id must be 0-{MAX_NODE_ID}, got {node_id}")
        self._node_id = node_id
        self._clock = clock
        self._logical_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now = self._clock()
            if now > self._logical_ms:
                self._logical_ms = now
                self._sequence = 0
            elif self._sequence < _MAX_SEQUENCE:
                self._sequence += 1
            else:
                self._logical_ms += 1
                self._sequence = 0
            return str(self._compose(self._logical_ms, self._sequence))

    def _compose(self, ms: int, sequence: int) -> int:
        return (
            (ms - _EPOCH_MS) << (_NODE_BITS + _SEQUENCE_BITS)
            | self._node_id << _SEQUENCE_BITS
            | sequence
        )


_default_generator = SnowflakeIdGenerator(node_id=settings.NODE_ID)


def generate_id() -> str:
    return _default_generator.next_id()
