"""Lookup API router."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from posthog import Posthog

from core.cache import set_skip_cache
from core.dependencies import get_artist_engine, get_posthog_client, get_release_engine
from core.exceptions import LookupServiceError
from core.telemetry import LookupTelemetry, get_cache_stats, init_cache_stats
from lookup.engine import ArtistLookupEngine, LookupEngine, ReleaseLookupEngine
from lookup.models import (
    ArtistLookupRequest,
    ArtistLookupResponse,
    BatchLookupRequest,
    BatchLookupResponse,
    LookupResult,
    LookupStatus,
    ReleaseLookupRequest,
    ReleaseLookupResponse,
    SearchQuery,
)
from lookup.run_context import RunContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lookup", tags=["lookup"])


def _start_request(skip_cache: bool) -> LookupTelemetry:
    init_cache_stats()
    if skip_cache:
        set_skip_cache(True)
    return LookupTelemetry()


def _send_telemetry(
    posthog_client: Posthog | None,
    telemetry: LookupTelemetry,
    properties: dict,
) -> None:
    if posthog_client:
        telemetry.send_to_posthog(posthog_client, properties)


async def _lookup(
    engine: LookupEngine,
    query: SearchQuery,
    do_find: bool,
    run_context: RunContext | None,
    telemetry: LookupTelemetry,
) -> LookupResult:
    return await engine.get_by_name(
        query,
        run_context=run_context,
        do_find_if_not_in_database=do_find,
        telemetry=telemetry,
    )


async def _lookup_batch_item(
    engine: LookupEngine,
    query: SearchQuery,
    do_find: bool,
    run_context: RunContext,
    telemetry: LookupTelemetry,
) -> LookupResult:
    """One batch item; a failure yields a negative result instead of aborting the batch."""
    try:
        return await _lookup(engine, query, do_find, run_context, telemetry)
    except LookupServiceError as e:
        logger.error(f"Batch lookup for '{query.name}' failed: {e.message}")
        return LookupResult(status=LookupStatus.NOT_FOUND, message=e.message)


@router.post(
    "/artist",
    response_model=ArtistLookupResponse,
    summary="Resolve an artist name to a canonical artist record",
    description="""
    Looks the artist up in the local library first. When it is not stored and
    `do_find_if_not_in_database` is set, queries the enabled metadata providers,
    merges the accepted results and stores the new artist.

    Quote the name (`"Diana Ross"`) to accept only exact name matches.
    """,
    responses={
        200: {"description": "Lookup completed (found, added or not found)"},
        500: {"description": "Internal server error"},
    },
)
async def lookup_artist(
    request: ArtistLookupRequest,
    engine: ArtistLookupEngine = Depends(get_artist_engine),
    posthog_client: Posthog | None = Depends(get_posthog_client),
    skip_cache: bool = False,
):
    """Resolve a single artist."""
    telemetry = _start_request(skip_cache)
    try:
        query = SearchQuery.parse(request.name, result_count=request.result_count)
        result = await _lookup(engine, query, request.do_find_if_not_in_database, None, telemetry)
    except Exception as e:
        logger.error(f"Artist lookup failed: {e}")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    _send_telemetry(
        posthog_client,
        telemetry,
        {"entity_type": "artist", "status": result.status.value, "exact": query.exact},
    )
    return ArtistLookupResponse(
        status=result.status,
        record=result.record,
        message=result.message,
        providers_queried=result.providers_queried,
        cache_stats=get_cache_stats(),
    )


@router.post(
    "/release",
    response_model=ReleaseLookupResponse,
    summary="Resolve a release title to a canonical release record",
    description="""
    Same flow as artist lookup, scoped by the release's artist. A newly added
    release is linked to its artist, which is resolved (and added if needed)
    in the same run.
    """,
    responses={
        200: {"description": "Lookup completed (found, added or not found)"},
        500: {"description": "Internal server error"},
    },
)
async def lookup_release(
    request: ReleaseLookupRequest,
    engine: ReleaseLookupEngine = Depends(get_release_engine),
    posthog_client: Posthog | None = Depends(get_posthog_client),
    skip_cache: bool = False,
):
    """Resolve a single release."""
    telemetry = _start_request(skip_cache)
    try:
        query = SearchQuery.parse(
            request.name, artist_name=request.artist_name, result_count=request.result_count
        )
        result = await _lookup(engine, query, request.do_find_if_not_in_database, None, telemetry)
    except Exception as e:
        logger.error(f"Release lookup failed: {e}")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    _send_telemetry(
        posthog_client,
        telemetry,
        {"entity_type": "release", "status": result.status.value, "exact": query.exact},
    )
    return ReleaseLookupResponse(
        status=result.status,
        record=result.record,
        message=result.message,
        providers_queried=result.providers_queried,
        cache_stats=get_cache_stats(),
    )


@router.post(
    "/batch",
    response_model=BatchLookupResponse,
    summary="Resolve many artists and releases in one run",
    description="""
    All items share one run context: a name resolved by one item is reused by
    later items instead of being searched and inserted again. Artists are
    resolved before releases. A failing item yields a `not_found` result and
    never aborts the batch.
    """,
)
async def lookup_batch(
    request: BatchLookupRequest,
    artist_engine: ArtistLookupEngine = Depends(get_artist_engine),
    release_engine: ReleaseLookupEngine = Depends(get_release_engine),
    posthog_client: Posthog | None = Depends(get_posthog_client),
    skip_cache: bool = False,
):
    """Resolve a batch of lookups with a shared run context."""
    telemetry = _start_request(skip_cache)
    run_context = RunContext()

    artist_results = await asyncio.gather(
        *(
            _lookup_batch_item(
                artist_engine,
                SearchQuery.parse(item.name, result_count=item.result_count),
                item.do_find_if_not_in_database,
                run_context,
                telemetry,
            )
            for item in request.artists
        )
    )
    release_results = await asyncio.gather(
        *(
            _lookup_batch_item(
                release_engine,
                SearchQuery.parse(
                    item.name, artist_name=item.artist_name, result_count=item.result_count
                ),
                item.do_find_if_not_in_database,
                run_context,
                telemetry,
            )
            for item in request.releases
        )
    )

    _send_telemetry(
        posthog_client,
        telemetry,
        {
            "entity_type": "batch",
            "artists_count": len(request.artists),
            "releases_count": len(request.releases),
            "added_count": len(run_context.added_ids),
        },
    )
    return BatchLookupResponse(
        artists=[
            ArtistLookupResponse(
                status=r.status,
                record=r.record,
                message=r.message,
                providers_queried=r.providers_queried,
            )
            for r in artist_results
        ],
        releases=[
            ReleaseLookupResponse(
                status=r.status,
                record=r.record,
                message=r.message,
                providers_queried=r.providers_queried,
            )
            for r in release_results
        ],
        added_ids=run_context.added_ids,
        cache_stats=get_cache_stats(),
    )
