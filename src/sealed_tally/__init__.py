"""sealed_tally - confidential majority tally over sealed ballots

The protocol package exposes three transitions (initialize, apply_vote,
reveal) over ciphertexts bound to pool and shared encryption contexts, plus a
reference in-process substrate, voter-side sealing and a per-poll sequencer.
"""

from .contexts import Ciphertext, PoolContext, SharedContext
from .errors import (
    BallotReplayError,
    ContextError,
    CounterOverflowError,
    DomainMismatchError,
    MalformedCiphertextError,
    StaleTallyError,
    TallyError,
)
from .payloads import Ballot, TallyState
from .protocol import apply_vote, initialize, reveal
from .sequencer import PollSequencer
from .substrate import LocalCluster
from .voter import VoterKeys, derive_voter_keypair, new_ballot, seal_ballot, shared_context

__all__ = [
    "Ballot",
    "BallotReplayError",
    "Ciphertext",
    "ContextError",
    "CounterOverflowError",
    "DomainMismatchError",
    "LocalCluster",
    "MalformedCiphertextError",
    "PollSequencer",
    "PoolContext",
    "SharedContext",
    "StaleTallyError",
    "TallyError",
    "TallyState",
    "VoterKeys",
    "apply_vote",
    "derive_voter_keypair",
    "initialize",
    "new_ballot",
    "reveal",
    "seal_ballot",
    "shared_context",
]
