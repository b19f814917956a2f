"""Reference coordinator that serializes tally transitions per poll.

The protocol functions cannot detect two ``apply_vote`` calls racing on the
same prior tally. ``PollSequencer`` is the single writer that rules this out:
each poll has its own lock and a monotonic sequence number, and every ballot
ciphertext is marked consumed once it has been applied.

State lives in memory only; persisting it is up to the deployment.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from . import protocol
from .contexts import Ciphertext, PoolContext
from .errors import BallotReplayError, StaleTallyError
from .substrate import LocalCluster

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class PollRecord:
    poll_id: str
    question: str
    authority: str
    context: PoolContext = field(repr=False)
    tally: Ciphertext = field(repr=False)
    sequence: int = 0
    consumed: Set[str] = field(default_factory=set, repr=False)
    events: List[Dict[str, Any]] = field(default_factory=list, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _emit(self, event: str, **details: Any) -> Dict[str, Any]:
        entry = {"event": event, "poll_id": self.poll_id, "timestamp": utc_now_iso()}
        entry.update(details)
        self.events.append(entry)
        return entry


class PollSequencer:
    def __init__(self, cluster: LocalCluster):
        self.cluster = cluster
        self._polls: Dict[str, PollRecord] = {}
        self._polls_lock = threading.Lock()

    def create_poll(self, poll_id: str, question: str, authority: str) -> PollRecord:
        """Register a poll and seal its zero tally.

        Raises KeyError if the poll id is already taken.
        """
        context = self.cluster.pool_context(poll_id)
        with self._polls_lock:
            if poll_id in self._polls:
                raise KeyError(f"poll {poll_id} already exists")
            record = PollRecord(
                poll_id=poll_id,
                question=question,
                authority=authority,
                context=context,
                tally=protocol.initialize(context),
            )
            record._emit("poll_created", question=question, authority=authority)
            self._polls[poll_id] = record
        logger.info("created poll %s for authority %s", poll_id, authority)
        return record

    def get(self, poll_id: str) -> PollRecord:
        try:
            return self._polls[poll_id]
        except KeyError:
            raise KeyError(f"unknown poll {poll_id}") from None

    def snapshot(self, poll_id: str) -> Tuple[int, Ciphertext]:
        record = self.get(poll_id)
        with record.lock:
            return record.sequence, record.tally

    def cast_vote(
        self,
        poll_id: str,
        ballot: Ciphertext,
        expected_sequence: Optional[int] = None,
    ) -> int:
        """Apply one ballot as the next transition of the poll.

        When ``expected_sequence`` is given it must equal the committed
        sequence, otherwise ``StaleTallyError`` is raised. Returns the new
        sequence number.
        """
        record = self.get(poll_id)
        digest = ballot.digest() if isinstance(ballot, Ciphertext) else None
        with record.lock:
            if expected_sequence is not None and expected_sequence != record.sequence:
                raise StaleTallyError(poll_id, expected_sequence, record.sequence)
            if digest is not None and digest in record.consumed:
                raise BallotReplayError(f"ballot {digest[:12]} already counted in poll {poll_id}")
            record.tally = protocol.apply_vote(ballot, record.tally)
            record.sequence += 1
            record.consumed.add(digest)
            record._emit("vote_cast", sequence=record.sequence)
            sequence = record.sequence
        logger.info("poll %s advanced to sequence %d", poll_id, sequence)
        return sequence

    def reveal(self, poll_id: str, requester: str) -> bool:
        """Reveal the current majority; only the poll authority may ask."""
        record = self.get(poll_id)
        if requester != record.authority:
            raise PermissionError(f"only the authority of poll {poll_id} can reveal it")
        with record.lock:
            outcome = protocol.reveal(record.tally)
            record._emit("result_revealed", sequence=record.sequence, output=outcome)
        return outcome

    def events(self, poll_id: str) -> List[Dict[str, Any]]:
        record = self.get(poll_id)
        with record.lock:
            return list(record.events)

    def polls(self) -> List[str]:
        with self._polls_lock:
            return sorted(self._polls)
