import os
import sys

import pytest


# Ensure repository src directory is on sys.path for tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from sealed_tally import LocalCluster, voter  # noqa: E402


@pytest.fixture
def cluster():
    return LocalCluster()


@pytest.fixture
def pool_ctx(cluster):
    return cluster.pool_context("poll-420")


@pytest.fixture
def seal_ballot(pool_ctx):
    """Seal a fresh voter ballot for the default poll."""

    def _seal(choice, ctx=None):
        ctx = ctx or pool_ctx
        return voter.new_ballot(choice, ctx.poll_id, ctx.pool_public_key)

    return _seal
