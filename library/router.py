"""Library router: read access to stored canonical records."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from core.dependencies import get_library_db
from core.exceptions import StoreError
from core.normalize import normalize_name
from library.db import LibraryDB
from library.models import ArtistRecord, EntityType, ReleaseRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/library", tags=["library"])


@router.get(
    "/{entity_type}/find",
    response_model=ArtistRecord | ReleaseRecord,
    summary="Find a stored record by name",
    description="""
    Matches the normalized primary name, any alternate name, or the sort name.
    Releases are matched within the given artist.

    Example request:
    ```
    GET /api/v1/library/release/find?name=OK+Computer&artist=Radiohead
    ```
    """,
    responses={
        200: {"description": "Record found"},
        404: {"description": "No stored record has this name"},
        500: {"description": "Internal server error"},
    },
)
async def find_record(
    entity_type: EntityType,
    name: str = Query(..., min_length=1, description="Artist name or release title"),
    artist: str | None = Query(None, description="Artist scope for release lookups"),
    db: LibraryDB = Depends(get_library_db),
):
    """Find a stored record by normalized name."""
    scope = normalize_name(artist) if entity_type == EntityType.RELEASE else ""
    try:
        record = await db.find_by_normalized_name(entity_type, name, scope)
    except StoreError as e:
        logger.error(f"Library find failed: {e.message}")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    if record is None:
        raise HTTPException(status_code=404, detail=f"No {entity_type} named '{name}'")
    return record


@router.get(
    "/records/{record_id}",
    response_model=ArtistRecord | ReleaseRecord,
    summary="Get a stored record by id",
    responses={
        200: {"description": "Record found"},
        404: {"description": "Unknown record id"},
        500: {"description": "Internal server error"},
    },
)
async def get_record(record_id: int, db: LibraryDB = Depends(get_library_db)):
    """Get a stored record by id."""
    try:
        record = await db.get_by_id(record_id)
    except StoreError as e:
        logger.error(f"Library get failed: {e.message}")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    if record is None:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return record
