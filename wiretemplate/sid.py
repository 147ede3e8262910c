"""Time-ordered 63-bit identifiers in the Sonyflake layout.

An identifier holds 39 bits of elapsed time in units of 10 ms since a start
time, 8 bits of sequence number and 16 bits of machine id.
"""

from __future__ import annotations

import ipaddress
import socket
import threading
import time
from collections.abc import Callable, Iterator
from datetime import datetime, timezone

from wiretemplate.util import int_to_base62

BIT_LEN_TIME = 39
BIT_LEN_SEQUENCE = 8
BIT_LEN_MACHINE_ID = 63 - BIT_LEN_TIME - BIT_LEN_SEQUENCE

DEFAULT_START_TIME = datetime(2014, 9, 1, tzinfo=timezone.utc)

_TIME_UNIT_NS = 10_000_000
_SEQUENCE_MASK = (1 << BIT_LEN_SEQUENCE) - 1
_MACHINE_ID_MAX = (1 << BIT_LEN_MACHINE_ID) - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(net) for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")
)


class SidError(Exception):
    """Raised when an identifier generator cannot be created or cannot produce an id."""


def _datetime_to_ns(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def _candidate_addresses() -> Iterator[str]:
    try:
        yield from socket.gethostbyname_ex(socket.gethostname())[2]
    except OSError:
        pass
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.254.254.254", 1))
            yield probe.getsockname()[0]
    except OSError:
        pass


def _lower_16_bit_private_ip() -> int:
    for text in _candidate_addresses():
        try:
            address = ipaddress.IPv4Address(text)
        except ValueError:
            continue
        if any(address in network for network in _PRIVATE_NETWORKS):
            packed = address.packed
            return (packed[2] << 8) + packed[3]
    raise SidError("sonyflake not created: no private ip address")


class Sid:
    """Thread-safe generator of unique, time-ordered identifiers."""

    def __init__(
        self,
        start_time: datetime | None = None,
        machine_id: int | None = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self._clock = clock
        start_ns = _datetime_to_ns(DEFAULT_START_TIME if start_time is None else start_time)
        if start_ns > clock():
            raise SidError("sonyflake not created: start time is in the future")
        self._start = start_ns // _TIME_UNIT_NS
        if machine_id is None:
            machine_id = _lower_16_bit_private_ip()
        if not 0 <= machine_id <= _MACHINE_ID_MAX:
            raise SidError(f"sonyflake not created: invalid machine id {machine_id}")
        self._machine_id = machine_id
        self._elapsed = 0
        self._sequence = _SEQUENCE_MASK
        self._lock = threading.Lock()

    def _current_elapsed(self) -> int:
        return self._clock() // _TIME_UNIT_NS - self._start

    def _sleep_for(self, overtime: int) -> None:
        delay_ns = overtime * _TIME_UNIT_NS - self._clock() % _TIME_UNIT_NS
        if delay_ns > 0:
            time.sleep(delay_ns / 1e9)

    def gen_uint64(self) -> int:
        """Return the next identifier as an integer."""
        with self._lock:
            current = self._current_elapsed()
            if self._elapsed < current:
                self._elapsed = current
                self._sequence = 0
            else:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    self._elapsed += 1
                    self._sleep_for(self._elapsed - current)
            if self._elapsed >= 1 << BIT_LEN_TIME:
                raise SidError("over the time limit")
            return (
                self._elapsed << (BIT_LEN_SEQUENCE + BIT_LEN_MACHINE_ID)
                | self._sequence << BIT_LEN_MACHINE_ID
                | self._machine_id
            )

    def gen_string(self) -> str:
        """Return the next identifier encoded in base62."""
        try:
            value = self.gen_uint64()
        except SidError as exc:
            raise SidError(f"failed to generate sonyflake ID: {exc}") from exc
        return int_to_base62(value)