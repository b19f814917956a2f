import pytest

from sealed_tally import ContextError, TallyState, initialize
from sealed_tally.payloads import Ballot


def test_handles_are_revoked_when_evaluation_exits(cluster, pool_ctx):
    tally = initialize(pool_ctx)
    with cluster.evaluate() as ev:
        stats = ev.unseal(tally, TallyState)
        assert ev.declassify(ev.apply(lambda s: s == TallyState(yes=0, no=0), stats))
    assert ev.open is False
    with pytest.raises(RuntimeError):
        ev.declassify(ev.apply(lambda s: s.yes == 0, stats))


def test_handles_do_not_show_or_branch_on_values(cluster, pool_ctx):
    with cluster.evaluate() as ev:
        stats = ev.unseal(initialize(pool_ctx), TallyState)
        assert repr(stats) == "<Protected>"
        with pytest.raises(TypeError):
            bool(ev.apply(TallyState.majority_yes, stats))


def test_only_booleans_can_be_declassified(cluster, pool_ctx):
    with cluster.evaluate() as ev:
        stats = ev.unseal(initialize(pool_ctx), TallyState)
        with pytest.raises(TypeError):
            ev.declassify(stats)
        yes = ev.apply(lambda s: s.yes, stats)
        with pytest.raises(TypeError):
            ev.declassify(yes)
        assert ev.declassify(ev.apply(TallyState.majority_yes, stats)) is False


def test_handles_cannot_cross_evaluations(cluster, pool_ctx):
    tally = initialize(pool_ctx)
    with cluster.evaluate() as first:
        stats = first.unseal(tally, TallyState)
        with cluster.evaluate() as second:
            with pytest.raises(RuntimeError):
                second.apply(TallyState.majority_yes, stats)
            with pytest.raises(RuntimeError):
                second.seal(pool_ctx, stats)


def test_handles_are_revoked_on_error(cluster, pool_ctx):
    with pytest.raises(ZeroDivisionError):
        with cluster.evaluate() as ev:
            stats = ev.unseal(initialize(pool_ctx), TallyState)
            ev.apply(lambda s: 1 / s.yes, stats)
    with pytest.raises(RuntimeError):
        ev.seal(pool_ctx, stats)


def test_resealing_inside_evaluation(cluster, pool_ctx):
    with cluster.evaluate() as ev:
        stats = ev.unseal(initialize(pool_ctx), TallyState)
        bumped = ev.apply(lambda s: s.record(True).record(True), stats)
        sealed = ev.seal(pool_ctx, bumped)
    with cluster.evaluate() as ev:
        opened = ev.unseal(sealed, TallyState)
        assert ev.declassify(ev.apply(lambda s: s == TallyState(yes=2, no=0), opened))


def test_ballot_roundtrip_under_shared_context(cluster, seal_ballot):
    ballot = seal_ballot(True)
    with cluster.evaluate() as ev:
        opened = ev.unseal(ballot, Ballot)
        assert ev.declassify(ev.apply(lambda b: b == Ballot(choice=True), opened))


def test_foreign_cluster_cannot_open_ballot(pool_ctx, seal_ballot):
    from sealed_tally import LocalCluster

    other = LocalCluster()
    with other.evaluate() as ev:
        with pytest.raises(ContextError):
            ev.unseal(seal_ballot(True), Ballot)


def test_pool_context_requires_poll_id(cluster):
    with pytest.raises(ContextError):
        cluster.pool_context("")


def test_payload_codecs_are_fixed_width():
    assert len(TallyState(yes=0, no=0).encode()) == len(TallyState(yes=10**9, no=3).encode()) == 16
    assert TallyState.decode(TallyState(yes=7, no=3).encode()) == TallyState(yes=7, no=3)
    assert Ballot.decode(Ballot(choice=False).encode()) == Ballot(choice=False)


def test_handles_expose_no_plaintext_accessor(cluster, pool_ctx):
    with cluster.evaluate() as ev:
        stats = ev.unseal(initialize(pool_ctx), TallyState)
        assert not hasattr(stats, "get")
        assert not hasattr(stats, "value")
