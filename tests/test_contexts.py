import json

import pytest

from sealed_tally import (
    Ciphertext,
    DomainMismatchError,
    MalformedCiphertextError,
    apply_vote,
    initialize,
    reveal,
    voter,
)
from sealed_tally.contexts import POOL_DOMAIN, same_pool


def test_persisted_tally_can_be_rebound_to_its_pool(pool_ctx, seal_ballot):
    tally = apply_vote(seal_ballot(True), initialize(pool_ctx))
    stored = json.loads(json.dumps(tally.to_dict()))
    assert stored["domain"] == POOL_DOMAIN
    assert stored["poll_id"] == "poll-420"

    restored = Ciphertext.from_dict(stored, pool_ctx)
    assert restored == tally
    assert reveal(restored) is True


def test_tally_cannot_be_rebound_to_other_poll(cluster, pool_ctx):
    stored = initialize(pool_ctx).to_dict()
    with pytest.raises(DomainMismatchError):
        Ciphertext.from_dict(stored, cluster.pool_context("poll-421"))


def test_ballot_cannot_be_rebound_as_pool_ciphertext(pool_ctx, seal_ballot):
    stored = seal_ballot(True).to_dict()
    with pytest.raises(DomainMismatchError):
        Ciphertext.from_dict(stored, pool_ctx)


def test_ballot_roundtrip_through_json(pool_ctx, seal_ballot):
    ballot = seal_ballot(False)
    restored = Ciphertext.ballot_from_dict(json.loads(json.dumps(ballot.to_dict())))
    assert restored.context == ballot.context
    assert restored.digest() == ballot.digest()
    assert reveal(apply_vote(restored, initialize(pool_ctx))) is False


def test_ballot_claiming_another_voter_fails_to_unseal(pool_ctx, seal_ballot):
    data = seal_ballot(True).to_dict()
    impostor = voter.VoterKeys.generate().public_key.hex()
    data["voter"] = impostor
    data["domain"] = "shared:" + impostor
    forged = Ciphertext.ballot_from_dict(data)
    with pytest.raises(MalformedCiphertextError):
        apply_vote(forged, initialize(pool_ctx))


@pytest.mark.parametrize("voter_key", ["00" * 32, "ab" * 16], ids=["low-order", "short"])
def test_ballot_with_unusable_voter_key_is_malformed(pool_ctx, seal_ballot, voter_key):
    data = seal_ballot(True).to_dict()
    data["voter"] = voter_key
    data["domain"] = "shared:" + voter_key
    forged = Ciphertext.ballot_from_dict(data)
    with pytest.raises(MalformedCiphertextError):
        apply_vote(forged, initialize(pool_ctx))


def test_ballot_with_mismatched_domain_tag_is_rejected(seal_ballot):
    data = seal_ballot(True).to_dict()
    data["domain"] = POOL_DOMAIN
    with pytest.raises(DomainMismatchError):
        Ciphertext.ballot_from_dict(data)


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d.pop("voter"),
        lambda d: d.update(pool="zz"),
        lambda d: d.update(nonce="!!not-base64!!"),
        lambda d: d.pop("body"),
        lambda d: d.pop("type"),
    ],
)
def test_ballot_from_dict_rejects_malformed_fields(seal_ballot, mutate):
    data = seal_ballot(True).to_dict()
    mutate(data)
    with pytest.raises(MalformedCiphertextError):
        Ciphertext.ballot_from_dict(data)


def test_ballot_from_dict_requires_an_object():
    with pytest.raises(MalformedCiphertextError):
        Ciphertext.ballot_from_dict(None)


def test_shared_contexts_of_same_poll_share_pool(pool_ctx, seal_ballot):
    a = seal_ballot(True).context
    b = seal_ballot(False).context
    assert a.domain_tag != b.domain_tag
    assert same_pool(a, b)
    assert same_pool(a, pool_ctx)


def test_pool_context_repr_hides_token(pool_ctx):
    assert pool_ctx.token.hex() not in repr(pool_ctx)
