"""Unit tests for providers/musicbrainz.py."""

import datetime as dt
from unittest.mock import AsyncMock

import pytest

from core.exceptions import ProviderTimeoutError
from providers.musicbrainz import MusicBrainzAdapter, lucene_escape
from tests.factories import make_provider_config

ARTIST_SEARCH = {
    "artists": [
        {"id": "a74b1b7f-71a5-4011-9441-d0b5e4122711", "name": "Radiohead", "score": 100},
    ]
}

ARTIST_DETAIL = {
    "id": "a74b1b7f-71a5-4011-9441-d0b5e4122711",
    "name": "Radiohead",
    "sort-name": "Radiohead",
    "type": "Group",
    "disambiguation": "",
    "life-span": {"begin": "1985"},
    "aliases": [{"name": "On a Friday"}, {"name": "レディオヘッド"}],
    "genres": [{"name": "alternative rock"}],
    "tags": [{"name": "british"}, {"name": "Alternative Rock"}],
    "relations": [
        {"type": "official homepage", "url": {"resource": "https://www.radiohead.com/"}},
        {"type": "discogs", "url": {"resource": "https://www.discogs.com/artist/3840"}},
    ],
}

RELEASE_GROUP_SEARCH = {
    "release-groups": [
        {"id": "b1392450", "title": "OK Computer", "primary-type": "Album"},
    ]
}

RELEASE_GROUP_DETAIL = {
    "id": "b1392450",
    "title": "OK Computer",
    "primary-type": "Album",
    "first-release-date": "1997-05-21",
    "artist-credit": [{"name": "Radiohead", "joinphrase": ""}],
    "genres": [{"name": "art rock"}],
    "tags": [],
    "relations": [],
}


@pytest.fixture
def adapter():
    return MusicBrainzAdapter(make_provider_config("musicbrainz"))


class TestLuceneEscape:
    def test_escapes_quotes_and_backslashes(self):
        assert lucene_escape('The "Band"') == 'The \\"Band\\"'
        assert lucene_escape("AC\\DC") == "AC\\\\DC"


class TestConfiguration:
    def test_enabled_without_credentials(self, adapter):
        assert adapter.is_enabled is True

    def test_disabled_by_config(self):
        assert MusicBrainzAdapter(make_provider_config("musicbrainz", enabled=False)).is_enabled is False


class TestSearchArtist:
    @pytest.mark.asyncio
    async def test_maps_artist_with_relations(self, adapter):
        adapter.http.get_json = AsyncMock(side_effect=[ARTIST_SEARCH, ARTIST_DETAIL])

        response = await adapter.search_artist("Radiohead")

        result = response.results[0]
        assert result.name == "Radiohead"
        assert result.provider_id == "a74b1b7f-71a5-4011-9441-d0b5e4122711"
        assert result.sort_name == "Radiohead"
        assert result.entity_kind == "Group"
        assert result.profile is None
        assert result.alternate_names == ["On a Friday", "レディオヘッド"]
        assert result.tags == ["alternative rock", "british"]
        assert result.urls == [
            "https://musicbrainz.org/artist/a74b1b7f-71a5-4011-9441-d0b5e4122711",
            "https://www.radiohead.com/",
            "https://www.discogs.com/artist/3840",
        ]
        assert result.date == dt.date(1985, 1, 1)
        assert result.image_urls == []

    @pytest.mark.asyncio
    async def test_lucene_query_and_includes(self, adapter):
        adapter.http.get_json = AsyncMock(side_effect=[ARTIST_SEARCH, ARTIST_DETAIL])

        await adapter.search_artist('Sunn "O"', result_count=2)

        search_call, detail_call = adapter.http.get_json.await_args_list
        assert search_call.args == ("/artist",)
        assert search_call.kwargs["params"] == {
            "query": 'artist:"Sunn \\"O\\""',
            "limit": 2,
            "fmt": "json",
        }
        assert detail_call.kwargs["params"]["inc"] == "aliases+tags+genres+url-rels"

    @pytest.mark.asyncio
    async def test_detail_404_uses_search_hit(self, adapter):
        adapter.http.get_json = AsyncMock(side_effect=[ARTIST_SEARCH, None])

        response = await adapter.search_artist("Radiohead")

        assert response.results[0].name == "Radiohead"
        assert response.results[0].tags == []

    @pytest.mark.asyncio
    async def test_no_hits(self, adapter):
        adapter.http.get_json = AsyncMock(return_value={"artists": []})

        response = await adapter.search_artist("Nonexistent")

        assert response.results == []
        assert response.is_success is False
        assert response.error is None

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure(self, adapter):
        adapter.http.get_json = AsyncMock(
            side_effect=ProviderTimeoutError("musicbrainz request timed out: /artist")
        )

        response = await adapter.search_artist("Radiohead")

        assert response.is_success is False
        assert "timed out" in response.error


class TestSearchRelease:
    @pytest.mark.asyncio
    async def test_maps_release_group(self, adapter):
        adapter.http.get_json = AsyncMock(side_effect=[RELEASE_GROUP_SEARCH, RELEASE_GROUP_DETAIL])

        response = await adapter.search_release("Radiohead", "OK Computer")

        result = response.results[0]
        assert result.name == "OK Computer"
        assert result.artist_name == "Radiohead"
        assert result.entity_kind == "Album"
        assert result.date == dt.date(1997, 5, 21)
        assert result.tags == ["art rock"]
        assert result.urls == ["https://musicbrainz.org/release-group/b1392450"]

        params = adapter.http.get_json.await_args_list[0].kwargs["params"]
        assert params["query"] == 'releasegroup:"OK Computer" AND artist:"Radiohead"'

    @pytest.mark.asyncio
    async def test_without_artist_hint(self, adapter):
        adapter.http.get_json = AsyncMock(side_effect=[RELEASE_GROUP_SEARCH, RELEASE_GROUP_DETAIL])

        await adapter.search_release(None, "OK Computer")

        params = adapter.http.get_json.await_args_list[0].kwargs["params"]
        assert params["query"] == 'releasegroup:"OK Computer"'

    @pytest.mark.asyncio
    async def test_joined_artist_credit(self, adapter):
        detail = {
            **RELEASE_GROUP_DETAIL,
            "artist-credit": [
                {"name": "Simon", "joinphrase": " & "},
                {"artist": {"name": "Garfunkel"}, "joinphrase": ""},
            ],
        }
        adapter.http.get_json = AsyncMock(side_effect=[RELEASE_GROUP_SEARCH, detail])

        response = await adapter.search_release("Simon & Garfunkel", "OK Computer")

        assert response.results[0].artist_name == "Simon & Garfunkel"

    @pytest.mark.asyncio
    async def test_falls_back_to_hint_without_credit(self, adapter):
        detail = {**RELEASE_GROUP_DETAIL, "artist-credit": []}
        adapter.http.get_json = AsyncMock(side_effect=[RELEASE_GROUP_SEARCH, detail])

        response = await adapter.search_release("Radiohead", "OK Computer")

        assert response.results[0].artist_name == "Radiohead"
