"""Shared test fixtures for pytest."""

from unittest.mock import AsyncMock, Mock

import pytest

from library.db import LibraryDB
from tests.factories import make_artist_record, make_release_record


@pytest.fixture
def mock_library_db():
    """Create a mock library database with an empty store.

    insert() hands out increasing ids; get_by_id() returns None so engines
    fall back to the record they inserted.
    """
    db = AsyncMock(spec=LibraryDB)
    ids = iter(range(100, 10_000))
    db.find_by_normalized_name = AsyncMock(return_value=None)
    db.insert = AsyncMock(side_effect=lambda record: next(ids))
    db.get_by_id = AsyncMock(return_value=None)
    db.connect = AsyncMock()
    db.close = AsyncMock()
    db.is_available = AsyncMock(return_value=True)
    db._conn = Mock()
    return db


@pytest.fixture
def sample_artist_record():
    """Create a sample stored artist."""
    return make_artist_record(
        id=1, name="Radiohead", alternate_names=["On A Friday"], tags=["rock"],
    )


@pytest.fixture
def sample_release_record():
    """Create a sample stored release."""
    return make_release_record(id=10, name="OK Computer", artist_name="Radiohead", artist_id=1)
