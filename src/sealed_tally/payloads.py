"""Logical payloads sealed inside ciphertexts.

Both payloads encode to a fixed number of bytes so that the length of a
ciphertext never depends on the value it hides.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .errors import CounterOverflowError, MalformedCiphertextError

COUNTER_MAX = 2**64 - 1

_TALLY_STRUCT = struct.Struct(">QQ")


@dataclass(frozen=True)
class Ballot:
    """A single voter's choice: True for yes, False for no."""

    choice: bool

    type_name = "Ballot"

    def encode(self) -> bytes:
        return b"\x01" if self.choice else b"\x00"

    @classmethod
    def decode(cls, data: bytes) -> "Ballot":
        if data == b"\x01":
            return cls(choice=True)
        if data == b"\x00":
            return cls(choice=False)
        raise MalformedCiphertextError("ballot payload is not a single boolean byte")


@dataclass(frozen=True)
class TallyState:
    """Running yes/no counters of a poll."""

    yes: int = 0
    no: int = 0

    type_name = "TallyState"

    def record(self, choice: bool) -> "TallyState":
        """Return a new state with exactly one counter incremented by one."""
        if choice:
            if self.yes >= COUNTER_MAX:
                raise CounterOverflowError("yes counter is at its 64-bit limit")
            return TallyState(yes=self.yes + 1, no=self.no)
        if self.no >= COUNTER_MAX:
            raise CounterOverflowError("no counter is at its 64-bit limit")
        return TallyState(yes=self.yes, no=self.no + 1)

    def majority_yes(self) -> bool:
        # ties resolve to False
        return self.yes > self.no

    def encode(self) -> bytes:
        return _TALLY_STRUCT.pack(self.yes, self.no)

    @classmethod
    def decode(cls, data: bytes) -> "TallyState":
        if len(data) != _TALLY_STRUCT.size:
            raise MalformedCiphertextError(
                f"tally payload must be {_TALLY_STRUCT.size} bytes, got {len(data)}"
            )
        yes, no = _TALLY_STRUCT.unpack(data)
        return cls(yes=yes, no=no)


PAYLOAD_TYPES = {Ballot.type_name: Ballot, TallyState.type_name: TallyState}
