"""Business identifiers.

Row ids are time-ordered snowflake-style strings so keyset pagination by id
follows creation order. Order numbers are the human-facing ORD-YYYYMMDD-XXXXXX.
"""

import secrets
import string
import threading
import time
from datetime import datetime

_EPOCH_MS = 1_700_000_000_000
_SEQUENCE_BITS = 12
_MACHINE_BITS = 10
_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


class IdGenerator:
    """41-bit ms timestamp | 10-bit machine id | 12-bit per-ms sequence."""

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << _MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << _MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._last_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = int(time.time() * 1000)
            if now_ms <= self._last_ms:
                # same millisecond (or clock moved back): stay on last_ms
                now_ms = self._last_ms
                self._sequence = (self._sequence + 1) & ((1 << _SEQUENCE_BITS) - 1)
                if self._sequence == 0:
                    now_ms += 1
            else:
                self._sequence = 0
            self._last_ms = now_ms
            value = (
                ((now_ms - _EPOCH_MS) << (_MACHINE_BITS + _SEQUENCE_BITS))
                | (self._machine_id << _SEQUENCE_BITS)
                | self._sequence
            )
            return str(value)


_default = IdGenerator()


def generate_id() -> str:
    return _default.next_id()


def generate_order_number(now: datetime) -> str:
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"ORD-{now:%Y%m%d}-{suffix}"
