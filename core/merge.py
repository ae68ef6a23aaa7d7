"""Deterministic merge of provider results into one canonical record.

merge_results is a pure function: the same inputs, in the same order, always
produce a field-identical record. It never sets timestamps; the store does.
"""

from collections.abc import Iterable, Sequence

from library.models import CanonicalRecord, EntityType, ExternalIds, record_class
from providers.models import ProviderName, ProviderResult, dedupe_names, dedupe_urls

SCALAR_FIELDS = ("name", "sort_name", "profile", "date")
RELEASE_SCALAR_FIELDS = ("artist_name",)


def order_by_priority(
    results: Sequence[ProviderResult],
    priority: Sequence[ProviderName | str] | None = None,
) -> list[ProviderResult]:
    """Stable-sort results by configured provider priority.

    Providers missing from the priority list sort after listed ones; ties keep
    input order.
    """
    if not priority:
        return list(results)
    rank = {str(p): i for i, p in enumerate(priority)}
    indexed = sorted(
        enumerate(results),
        key=lambda pair: (rank.get(str(pair[1].provider), len(rank)), pair[0]),
    )
    return [result for _, result in indexed]


def _first_value(values: Iterable):
    for value in values:
        if value not in (None, "", []):
            return value
    return None


def _is_empty(value) -> bool:
    return value is None or value == ""


def merge_results(
    entity_type: EntityType,
    results: Sequence[ProviderResult],
    existing: CanonicalRecord | None = None,
    priority: Sequence[ProviderName | str] | None = None,
    refresh: bool = False,
) -> CanonicalRecord | None:
    """Combine provider results, and optionally an existing record, into one record.

    Scalar fields take the first non-empty value in priority order. Each
    provider's identifier fills only that provider's slot. Collections are
    unioned: names and tags deduplicated case-insensitively, URLs and images
    exactly. Names that lose the primary-name pick are kept as alternate names.

    With an existing record, its populated scalars and identifiers are kept
    and only empty ones are filled, unless refresh is True, in which case
    provider values win wherever a provider has one.

    Args:
        entity_type: Artist or release
        results: Provider results, highest priority first unless priority is given
        existing: Existing local record to fill gaps in
        priority: Optional provider priority order to sort results by
        refresh: Let provider values overwrite populated existing fields

    Returns:
        The merged record, or None if no name is available from any input
    """
    ordered = order_by_priority(results, priority)
    model = record_class(entity_type)

    fields = SCALAR_FIELDS + (RELEASE_SCALAR_FIELDS if entity_type == EntityType.RELEASE else ())
    merged: dict = existing.model_dump() if existing is not None else {}

    for field_name in fields:
        provider_value = _first_value(getattr(r, field_name) for r in ordered)
        current = merged.get(field_name)
        if provider_value is not None and (refresh or _is_empty(current)):
            merged[field_name] = provider_value

    if _is_empty(merged.get("name")):
        return None

    external_ids = existing.external_ids if existing is not None else ExternalIds()
    for provider in ProviderName:
        provider_id = _first_value(r.provider_id for r in ordered if r.provider == provider)
        if provider_id is not None and (refresh or _is_empty(external_ids.get(provider))):
            external_ids = external_ids.with_id(provider, provider_id)
    merged["external_ids"] = external_ids.model_dump()

    thumbnail = _first_value(r.thumbnail_url for r in ordered) or _first_value(
        url for r in ordered for url in r.image_urls
    )
    if thumbnail is not None and (refresh or _is_empty(merged.get("thumbnail_url"))):
        merged["thumbnail_url"] = thumbnail

    existing_alternates = existing.alternate_names if existing is not None else []
    alternates = dedupe_names(
        [
            *existing_alternates,
            *(r.name for r in ordered if r.name),
            *(name for r in ordered for name in r.alternate_names),
        ]
    )
    primary = merged["name"].casefold()
    merged["alternate_names"] = [n for n in alternates if n.casefold() != primary]

    merged["tags"] = dedupe_names(
        [*(existing.tags if existing is not None else []), *(t for r in ordered for t in r.tags)]
    )
    merged["urls"] = dedupe_urls(
        [*(existing.urls if existing is not None else []), *(u for r in ordered for u in r.urls)]
    )
    merged["image_urls"] = dedupe_urls(
        [
            *(existing.image_urls if existing is not None else []),
            *(
                url
                for r in ordered
                for url in ([r.thumbnail_url] if r.thumbnail_url else []) + r.image_urls
            ),
        ]
    )

    merged["entity_type"] = entity_type
    return model.model_validate(merged)
