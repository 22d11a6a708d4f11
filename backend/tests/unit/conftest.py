"""
Shared fixtures for worklist unit tests
"""
import pytest

from calldesk.domain.services.countdown import CountdownNotifier
from calldesk.domain.services.scheduled_call_cache import ScheduledCallCache
from calldesk.domain.services.scheduled_call_repository import ScheduledCallRepository
from calldesk.domain.services.worklist import Worklist
from calldesk.infrastructure.stores.memory import InMemoryLeadStore, InMemoryScheduledCallStore

from tests.unit.helpers import FakeClock, FakeSleep, make_lead


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def lead_store():
    return InMemoryLeadStore([make_lead("L1", "Ada"), make_lead("L2", "Grace"), make_lead("L3", "Linus")])


@pytest.fixture
def call_store(clock):
    return InMemoryScheduledCallStore(clock=clock)


@pytest.fixture
def worklist(lead_store, call_store, clock, fake_sleep):
    cache = ScheduledCallCache(clock=clock)
    repository = ScheduledCallRepository(call_store, cache, sleep=fake_sleep)
    return Worklist(
        lead_store,
        repository,
        notifier=CountdownNotifier(),
        clock=clock,
        sleep=fake_sleep
    )
