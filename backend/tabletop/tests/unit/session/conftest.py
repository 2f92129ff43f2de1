import random

import pytest

from tabletop.session.membership import MembershipController
from tabletop.session.phase import PhaseStateMachine
from tabletop.session.replicator import SharedStateReplicator


@pytest.fixture
def phase():
    return PhaseStateMachine(random.Random(7))


@pytest.fixture
def membership(phase):
    return MembershipController(phase)


@pytest.fixture
def replicator():
    return SharedStateReplicator(random.Random(7))
