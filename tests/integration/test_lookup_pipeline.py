"""Integration tests for the lookup pipeline with a real LibraryDB."""

import pytest

from library.models import EntityType

pytestmark = pytest.mark.integration


class TestArtistLookup:
    @pytest.mark.asyncio
    async def test_added_with_merged_metadata(self, app_client, empty_library_db):
        resp = await app_client.post("/api/v1/lookup/artist", json={"name": "Portishead"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "added"
        record = body["record"]
        assert record["name"] == "Portishead"
        assert record["profile"] == "Trip hop group from Bristol"
        assert record["external_ids"]["musicbrainz"] == "8f6bd1e4"
        assert record["external_ids"]["discogs"] == "3957"
        assert record["alternate_names"] == ["Portis Head"]
        assert body["providers_queried"] == ["musicbrainz", "discogs"]

        stored = await empty_library_db.get_by_id(record["id"])
        assert stored.name == "Portishead"

    @pytest.mark.asyncio
    async def test_idempotent(self, app_client, empty_library_db, provider_adapters):
        first = await app_client.post("/api/v1/lookup/artist", json={"name": "Portishead"})
        second = await app_client.post("/api/v1/lookup/artist", json={"name": "portishead"})

        assert first.json()["status"] == "added"
        assert second.json()["status"] == "found"
        assert second.json()["record"]["id"] == first.json()["record"]["id"]
        assert await empty_library_db.count(EntityType.ARTIST) == 1
        assert all(len(adapter.calls) == 1 for adapter in provider_adapters)

    @pytest.mark.asyncio
    async def test_found_by_alternate_name(self, app_client):
        await app_client.post("/api/v1/lookup/artist", json={"name": "Portishead"})

        resp = await app_client.post(
            "/api/v1/lookup/artist",
            json={"name": "Portis Head", "do_find_if_not_in_database": False},
        )

        assert resp.json()["status"] == "found"
        assert resp.json()["record"]["name"] == "Portishead"

    @pytest.mark.asyncio
    async def test_not_found_without_provider_search(self, app_client, empty_library_db):
        resp = await app_client.post(
            "/api/v1/lookup/artist",
            json={"name": "Portishead", "do_find_if_not_in_database": False},
        )

        assert resp.json()["status"] == "not_found"
        assert await empty_library_db.count() == 0


class TestReleaseLookup:
    @pytest.mark.asyncio
    async def test_release_links_artist(self, app_client, empty_library_db):
        resp = await app_client.post(
            "/api/v1/lookup/release", json={"name": "Dummy", "artist_name": "Portishead"}
        )

        body = resp.json()
        assert body["status"] == "added"
        release = body["record"]
        assert release["artist_name"] == "Portishead"
        assert release["external_ids"]["discogs"] == "11303"

        artist = await empty_library_db.get_by_id(release["artist_id"])
        assert artist.entity_type == EntityType.ARTIST
        assert artist.name == "Portishead"

    @pytest.mark.asyncio
    async def test_release_reuses_existing_artist(self, app_client, empty_library_db):
        artist = (await app_client.post("/api/v1/lookup/artist", json={"name": "Portishead"})).json()

        release = (
            await app_client.post(
                "/api/v1/lookup/release", json={"name": "Dummy", "artist_name": "Portishead"}
            )
        ).json()

        assert release["record"]["artist_id"] == artist["record"]["id"]
        assert await empty_library_db.count(EntityType.ARTIST) == 1


class TestBatchLookup:
    @pytest.mark.asyncio
    async def test_batch_creates_each_record_once(self, app_client, empty_library_db, provider_adapters):
        resp = await app_client.post(
            "/api/v1/lookup/batch",
            json={
                "artists": [{"name": "Portishead"}, {"name": "PORTISHEAD"}],
                "releases": [
                    {"name": "Dummy", "artist_name": "Portishead"},
                    {"name": "dummy", "artist_name": "portishead"},
                ],
            },
        )

        assert resp.status_code == 200
        body = resp.json()
        assert len(body["added_ids"]) == 2
        assert await empty_library_db.count(EntityType.ARTIST) == 1
        assert await empty_library_db.count(EntityType.RELEASE) == 1
        musicbrainz = provider_adapters[0]
        assert [c[0] for c in musicbrainz.calls].count("search_artist") == 1
        assert [c[0] for c in musicbrainz.calls].count("search_release") == 1
