from __future__ import annotations

import pytest

from classlog.coordinator import MutationCoordinator
from classlog.repositories.memory_backend import MemoryBackend
from classlog.store import EntityStore

from tests.fakes import FakeSpreadsheet, make_clock


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend(clock=make_clock())


@pytest.fixture()
def store(backend: MemoryBackend) -> EntityStore:
    s = EntityStore(backend)
    s.open("u1")
    return s


@pytest.fixture()
def coordinator(store: EntityStore) -> MutationCoordinator:
    return MutationCoordinator(store)


@pytest.fixture()
def amy(store: EntityStore) -> str:
    return store.add_student("Amy", "Level 1")


@pytest.fixture()
def spreadsheet() -> FakeSpreadsheet:
    return FakeSpreadsheet()
