"""Error types raised by the tally protocol and the reference coordinator."""


class TallyError(Exception):
    pass


class ContextError(TallyError, ValueError):
    """The supplied encryption context is not a valid capability for its domain."""


class DomainMismatchError(TallyError, ValueError):
    """Ciphertexts from incompatible encryption domains were combined."""


class MalformedCiphertextError(TallyError, ValueError):
    """A ciphertext could not be unsealed as the expected payload type."""


class CounterOverflowError(TallyError, ValueError):
    """A tally counter would exceed its fixed 64-bit width."""


## --- coordinator errors ---------------------------------------------------


class BallotReplayError(TallyError):
    pass


class StaleTallyError(TallyError):
    """The caller's view of the tally sequence is behind the committed one."""

    def __init__(self, poll_id: str, expected: int, actual: int):
        super().__init__(
            f"poll {poll_id}: expected sequence {expected}, committed is {actual}"
        )
        self.poll_id = poll_id
        self.expected = expected
        self.actual = actual
