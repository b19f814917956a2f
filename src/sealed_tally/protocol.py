"""The three legal transitions over a poll's encrypted tally.

- initialize: seal a zero tally under the poll's pool context
- apply_vote: fold one voter-sealed ballot into the tally
- reveal: declassify only whether yes outnumbers no

All three are pure: they keep no state between calls and take the current
tally ciphertext as an argument. Callers must serialize ``apply_vote`` per
poll; two calls reading the same prior tally lose one of the votes.
"""

import logging

from .contexts import Ciphertext, PoolContext, SharedContext, same_pool
from .errors import ContextError, DomainMismatchError, MalformedCiphertextError
from .payloads import Ballot, TallyState

logger = logging.getLogger(__name__)


def _require_pool_context(context) -> PoolContext:
    if not isinstance(context, PoolContext):
        raise ContextError(f"expected a pool context, got {type(context).__name__}")
    context.cluster.verify_capability(context)
    return context


def _require_tally(tally) -> Ciphertext:
    if not isinstance(tally, Ciphertext):
        raise MalformedCiphertextError(f"expected a tally Ciphertext, got {type(tally).__name__}")
    if not isinstance(tally.context, PoolContext):
        raise DomainMismatchError(
            f"tally must be pool-owned, found domain {tally.domain_tag!r}"
        )
    return tally


def initialize(pool_context: PoolContext) -> Ciphertext:
    """Seal a fresh ``{yes: 0, no: 0}`` tally under ``pool_context``."""
    context = _require_pool_context(pool_context)
    tally = context.cluster.seal(context, TallyState())
    logger.info("initialized tally for poll %s", context.poll_id)
    return tally


def apply_vote(ballot: Ciphertext, tally: Ciphertext) -> Ciphertext:
    """Return a new tally with exactly one counter incremented by the ballot.

    The ballot must be sealed under a shared context of the same poll and pool
    as the tally. The result is sealed under the tally's own pool context.
    """
    tally = _require_tally(tally)
    if not isinstance(ballot, Ciphertext):
        raise MalformedCiphertextError(f"expected a ballot Ciphertext, got {type(ballot).__name__}")
    if not isinstance(ballot.context, SharedContext):
        raise DomainMismatchError(
            f"ballot must be sealed under a shared context, found {ballot.domain_tag!r}"
        )
    if not same_pool(ballot.context, tally.context):
        raise DomainMismatchError(
            f"ballot for poll {ballot.poll_id} cannot be applied to tally of poll {tally.poll_id}"
        )

    owner = tally.context
    with owner.cluster.evaluate() as ev:
        vote = ev.unseal(ballot, Ballot)
        stats = ev.unseal(tally, TallyState)
        updated = ev.apply(lambda s, v: s.record(v.choice), stats, vote)
        result = ev.seal(owner, updated)
    logger.debug("applied ballot to tally of poll %s", owner.poll_id)
    return result


def reveal(tally: Ciphertext) -> bool:
    """Declassify ``yes > no`` for the tally; ties are False.

    The counters themselves never leave the protected evaluation.
    """
    tally = _require_tally(tally)
    with tally.context.cluster.evaluate() as ev:
        stats = ev.unseal(tally, TallyState)
        majority = ev.apply(TallyState.majority_yes, stats)
        outcome = ev.declassify(majority)
    logger.info("revealed result for poll %s", tally.poll_id)
    return outcome
