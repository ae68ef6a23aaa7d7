"""Integration test fixtures.

Provides a real LibraryDB backed by a temporary SQLite file, and an app
client wired to it with in-process provider adapters.
"""

import pytest
import pytest_asyncio

from config.settings import LookupPolicy, Settings
from library.db import LibraryDB
from library.models import ArtistRecord, ExternalIds, ReleaseRecord
from tests.factories import FakeAdapter, hit, make_registry


# ---------------------------------------------------------------------------
# Seed data -- representative stored records
# ---------------------------------------------------------------------------

SEED_ARTISTS = [
    ArtistRecord(
        name="Radiohead",
        alternate_names=["On A Friday"],
        external_ids=ExternalIds(discogs="3840", musicbrainz="a74b1b7f-71a5-4011-9441-d0b5e4122711"),
        tags=["rock", "alternative"],
    ),
    ArtistRecord(name="The Beatles", sort_name="Beatles, The"),
    ArtistRecord(name="Stereolab"),
]

SEED_RELEASES = [
    ReleaseRecord(name="OK Computer", artist_name="Radiohead"),
    ReleaseRecord(name="Abbey Road", artist_name="The Beatles"),
    ReleaseRecord(name="Greatest Hits", artist_name="Queen"),
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def empty_library_db(tmp_path):
    """Real LibraryDB on a fresh SQLite file."""
    db = LibraryDB(db_path=tmp_path / "library.db")
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def library_db(empty_library_db):
    """Real LibraryDB seeded with a few artists and releases."""
    for record in [*SEED_ARTISTS, *SEED_RELEASES]:
        await empty_library_db.insert(record)
    return empty_library_db


@pytest.fixture
def test_settings(monkeypatch):
    """Settings with no real tokens, telemetry disabled, every provider queried."""
    for var in ("DISCOGS_TOKEN", "LASTFM_API_KEY", "SENTRY_DSN", "POSTHOG_API_KEY"):
        monkeypatch.setenv(var, "")
    return Settings(
        lookup_policy=LookupPolicy.FAN_OUT_ALL,
        discogs_token=None,
        lastfm_api_key=None,
        spotify_client_id=None,
        spotify_client_secret=None,
        sentry_dsn=None,
        posthog_api_key=None,
        enable_telemetry=False,
        library_db_path="test_library.db",
    )


@pytest.fixture
def provider_adapters():
    """In-process adapters standing in for Discogs and MusicBrainz."""
    return [
        FakeAdapter(
            "musicbrainz",
            artist_response=hit("musicbrainz", "Portishead", provider_id="8f6bd1e4", sort_name="Portishead"),
            release_response=hit("musicbrainz", "Dummy", artist_name="Portishead", provider_id="76df3287"),
        ),
        FakeAdapter(
            "discogs",
            artist_response=hit(
                "discogs",
                "Portishead",
                provider_id="3957",
                profile="Trip hop group from Bristol",
                alternate_names=["Portis Head"],
            ),
            release_response=hit("discogs", "Dummy", artist_name="Portishead", provider_id="11303"),
        ),
    ]


@pytest_asyncio.fixture
async def app_client(empty_library_db, provider_adapters, test_settings):
    """httpx AsyncClient with a real LibraryDB and in-process providers."""
    from httpx import ASGITransport, AsyncClient
    from main import app
    from core.dependencies import get_library_db, get_posthog_client, get_provider_registry
    from config.settings import get_settings

    registry = make_registry(*provider_adapters)
    app.dependency_overrides[get_library_db] = lambda: empty_library_db
    app.dependency_overrides[get_provider_registry] = lambda: registry
    app.dependency_overrides[get_posthog_client] = lambda: None
    app.dependency_overrides[get_settings] = lambda: test_settings

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
