from __future__ import annotations

import pytest

from secledger import events
from secledger.store import JsonFileStore, set_store


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "security.json")


@pytest.fixture(autouse=True)
def _reset_globals():
    events.clear()
    yield
    events.clear()
    set_store(None)
