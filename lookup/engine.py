"""Artist and release lookup engines.

Each call runs the same state machine:

    local lookup -> skip if provider search not requested -> run context check
    -> provider fan-out -> merge and persist -> not found

Provider failures, rejected hits and misses all end as a NOT_FOUND result.
Only store failures propagate to the caller.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from config.settings import LookupPolicy, Settings, get_settings
from core.exceptions import DuplicateRecordError, StoreError
from core.merge import merge_results
from core.normalize import accept_hit, is_compilation_artist, name_keys, normalize_name
from core.sentry import capture_exception
from core.telemetry import LookupTelemetry
from library.db import LibraryDB
from library.models import CanonicalRecord, EntityType, ReleaseRecord
from lookup.models import LookupResult, SearchQuery
from lookup.run_context import RunContext, RunKey
from providers.base import ProviderAdapter
from providers.models import ProviderName, ProviderResponse, ProviderResult
from providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class LookupEngine(ABC):
    """Shared lookup state machine; subclasses pick the entity type and provider call."""

    entity_type: EntityType

    def __init__(
        self,
        db: LibraryDB,
        providers: ProviderRegistry,
        settings: Settings | None = None,
    ):
        """Initialize the engine.

        Args:
            db: Canonical record store
            providers: Adapters in priority order
            settings: Application settings (policy, result count, name rules)
        """
        settings = settings or get_settings()
        self.db = db
        self.providers = providers
        self.policy = settings.lookup_policy
        self.result_count = settings.provider_result_count
        self.dont_search = {normalize_name(n) for n in settings.dont_search_artists}
        self.name_replacements = {
            normalize_name(variant): canonical
            for canonical, variants in settings.artist_name_replace.items()
            for variant in variants
        }

    # -------------------------------------------------------------------------
    # Entity-specific hooks
    # -------------------------------------------------------------------------

    def _scope(self, query: SearchQuery) -> str:
        return ""

    def _prepare_query(self, query: SearchQuery) -> SearchQuery:
        return query

    def _skip_reason(self, query: SearchQuery) -> str | None:
        return None

    @abstractmethod
    async def _search(self, adapter: ProviderAdapter, query: SearchQuery) -> ProviderResponse:
        """Run this engine's search on one adapter."""

    def _matches(self, query: SearchQuery, result: ProviderResult) -> bool:
        return bool(result.name) and accept_hit(
            query.name, result.name, result.alternate_names, query.exact
        )

    async def _complete_record(
        self,
        record: CanonicalRecord,
        query: SearchQuery,
        run_context: RunContext,
        telemetry: LookupTelemetry,
    ) -> CanonicalRecord:
        return record

    def replace_artist_name(self, name: str | None) -> str | None:
        """Map a configured artist name variant to its canonical name."""
        if not name:
            return name
        canonical = self.name_replacements.get(normalize_name(name))
        if canonical and canonical != name:
            logger.debug(f"Replacing artist name '{name}' with '{canonical}'")
            return canonical
        return name

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def database_query_for_name(
        self,
        name: str,
        sort_name: str | None = None,
        scope: str | None = None,
    ) -> CanonicalRecord | None:
        """Find a stored record by normalized name, alternate name or sort name."""
        record = await self.db.find_by_normalized_name(self.entity_type, name, scope or "")
        if record is None and sort_name:
            record = await self.db.find_by_normalized_name(self.entity_type, sort_name, scope or "")
        return record

    async def get_by_name(
        self,
        query: SearchQuery | str,
        run_context: RunContext | None = None,
        do_find_if_not_in_database: bool = False,
        telemetry: LookupTelemetry | None = None,
    ) -> LookupResult:
        """Resolve a name to a canonical record.

        Args:
            query: Query, or raw text where a quoted name requests an exact match
            run_context: Batch context shared by all calls of one run
            do_find_if_not_in_database: Search providers when there is no local match
            telemetry: Step timings and API call counts for the current request

        Returns:
            FOUND with a stored or run-remembered record, ADDED with a newly
            inserted record, or NOT_FOUND with a message

        Raises:
            StoreError: If the store cannot be read or written
        """
        if isinstance(query, str):
            query = SearchQuery.parse(query, result_count=self.result_count)
        query = self._prepare_query(query)
        telemetry = telemetry or LookupTelemetry()

        if not normalize_name(query.name):
            return LookupResult.not_found(f"Empty {self.entity_type} name")

        with telemetry.track_step("local_lookup"):
            existing = await self.database_query_for_name(query.name, scope=self._scope(query))
        if existing is not None:
            logger.debug(f"Found {self.entity_type} '{query.name}' in database: {existing.id}")
            return LookupResult.found(existing)

        if not do_find_if_not_in_database:
            return LookupResult.not_found(
                f"{self.entity_type.capitalize()} '{query.name}' not in database"
            )

        skip_reason = self._skip_reason(query)
        if skip_reason:
            logger.debug(skip_reason)
            return LookupResult.not_found(skip_reason)

        if run_context is None:
            run_context = RunContext()
        key = query.key(self.entity_type)

        async with run_context.claim(key):
            remembered = run_context.get(key)
            if remembered is not None:
                logger.debug(f"{self.entity_type} '{query.name}' already resolved in this run")
                return LookupResult.found(remembered, message="Resolved earlier in this run")

            with telemetry.track_step("provider_fan_out"):
                accepted, queried = await self._fan_out(query, telemetry)
            if not accepted:
                message = (
                    "No metadata providers are enabled"
                    if not queried
                    else f"No provider returned an acceptable {self.entity_type} for '{query.name}'"
                )
                return LookupResult.not_found(message, providers_queried=queried)

            with telemetry.track_step("merge_persist"):
                record = merge_results(self.entity_type, accepted, priority=self.providers.priority)
            if record is None:
                return LookupResult.not_found(
                    f"Provider results for '{query.name}' had no name",
                    providers_queried=queried,
                )
            record = await self._complete_record(record, query, run_context, telemetry)
            with telemetry.track_step("merge_persist"):
                result = await self._add_unique(record, run_context, extra_keys=[key])

        result.providers_queried = queried
        return result

    async def perform_provider_search(
        self,
        query: SearchQuery | str,
        run_context: RunContext | None = None,
        telemetry: LookupTelemetry | None = None,
    ) -> LookupResult:
        """Query providers and merge accepted hits, without local lookup or persistence.

        Returns:
            FOUND with an unsaved record (id None) or NOT_FOUND
        """
        if isinstance(query, str):
            query = SearchQuery.parse(query, result_count=self.result_count)
        query = self._prepare_query(query)
        telemetry = telemetry or LookupTelemetry()

        with telemetry.track_step("provider_fan_out"):
            accepted, queried = await self._fan_out(query, telemetry)
        record = merge_results(self.entity_type, accepted, priority=self.providers.priority)
        if record is None:
            return LookupResult.not_found(
                f"No provider returned an acceptable {self.entity_type} for '{query.name}'",
                providers_queried=queried,
            )
        return LookupResult.found(record, providers_queried=queried)

    async def add(self, record: CanonicalRecord, run_context: RunContext | None = None) -> LookupResult:
        """Insert a caller-built record unless one of its names is already taken.

        Returns:
            ADDED with the stored record, or FOUND with the record holding the name
        """
        if record.entity_type != self.entity_type:
            raise ValueError(f"{type(self).__name__} cannot add a {record.entity_type} record")
        if run_context is None:
            run_context = RunContext()
        key: RunKey = (self.entity_type.value, record.scope, normalize_name(record.name))
        async with run_context.claim(key):
            remembered = run_context.get(key)
            if remembered is not None:
                return LookupResult.found(remembered, message="Resolved earlier in this run")
            return await self._add_unique(record, run_context)

    # -------------------------------------------------------------------------
    # Provider fan-out
    # -------------------------------------------------------------------------

    async def _query_provider(
        self,
        adapter: ProviderAdapter,
        query: SearchQuery,
        telemetry: LookupTelemetry,
    ) -> ProviderResponse:
        """Call one adapter, bounded by its timeout; never raises except on cancellation."""
        telemetry.record_api_call(str(adapter.name))
        try:
            return await asyncio.wait_for(self._search(adapter, query), timeout=adapter.timeout)
        except TimeoutError:
            logger.warning(f"{adapter.name} {self.entity_type} search timed out for '{query.name}'")
            return ProviderResponse.failure(adapter.name, f"{adapter.name} timed out")
        except Exception as e:
            logger.error(f"{adapter.name} {self.entity_type} search raised {type(e).__name__}: {e}")
            capture_exception(e, {"provider": str(adapter.name), "query": query.name})
            return ProviderResponse.failure(adapter.name, f"{type(e).__name__}: {e}")

    def _accept(self, query: SearchQuery, response: ProviderResponse) -> ProviderResult | None:
        """First hit of a successful response that answers the query, if any."""
        if not response.is_success:
            if response.error:
                logger.debug(f"{response.provider} unavailable: {response.error}")
            return None
        for result in response.results:
            if self._matches(query, result):
                return result
            logger.debug(f"Rejected {response.provider} hit '{result.name}' for '{query.name}'")
        return None

    async def _fan_out(
        self,
        query: SearchQuery,
        telemetry: LookupTelemetry,
    ) -> tuple[list[ProviderResult], list[ProviderName]]:
        """Query enabled providers according to the lookup policy.

        Returns:
            Tuple of (accepted results in priority order, providers queried)
        """
        adapters = self.providers.enabled()
        queried = [adapter.name for adapter in adapters]

        if self.policy == LookupPolicy.FAN_OUT_ALL:
            responses = await asyncio.gather(
                *(self._query_provider(adapter, query, telemetry) for adapter in adapters)
            )
            accepted = [hit for hit in (self._accept(query, r) for r in responses) if hit]
            logger.info(
                f"{self.entity_type} '{query.name}': {len(accepted)}/{len(adapters)} providers accepted"
            )
            return accepted, queried

        queried = []
        for adapter in adapters:
            queried.append(adapter.name)
            hit = self._accept(query, await self._query_provider(adapter, query, telemetry))
            if hit is not None:
                logger.info(f"{self.entity_type} '{query.name}' accepted from {adapter.name}")
                return [hit], queried
        return [], queried

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def _find_existing(self, record: CanonicalRecord) -> CanonicalRecord | None:
        for key in name_keys(record.name, record.alternate_names):
            existing = await self.db.find_by_normalized_name(self.entity_type, key, record.scope)
            if existing is not None:
                return existing
        return None

    async def _add_unique(
        self,
        record: CanonicalRecord,
        run_context: RunContext,
        extra_keys: list[RunKey] | None = None,
    ) -> LookupResult:
        """Check every name key against the store, then insert. Caller holds the key lock."""
        extra_keys = extra_keys or []

        existing = await self._find_existing(record)
        if existing is not None:
            logger.info(
                f"{self.entity_type} '{record.name}' matches stored {existing.id} '{existing.name}'"
            )
            run_context.remember(existing, extra_keys)
            return LookupResult.found(existing)

        try:
            record_id = await self.db.insert(record)
        except DuplicateRecordError:
            logger.warning(f"Duplicate insert for {self.entity_type} '{record.name}', re-reading store")
            existing = await self._find_existing(record)
            if existing is None:
                raise StoreError(
                    f"{self.entity_type} '{record.name}' reported duplicate but not found"
                ) from None
            run_context.remember(existing, extra_keys)
            return LookupResult.found(existing)

        stored = await self.db.get_by_id(record_id) or record.model_copy(update={"id": record_id})
        run_context.remember(stored, extra_keys, added=True)
        return LookupResult.added(stored)


class ArtistLookupEngine(LookupEngine):
    """Resolves artist names."""

    entity_type = EntityType.ARTIST

    def _prepare_query(self, query: SearchQuery) -> SearchQuery:
        name = self.replace_artist_name(query.name)
        return query if name == query.name else query.model_copy(update={"name": name})

    def _skip_reason(self, query: SearchQuery) -> str | None:
        if normalize_name(query.name) in self.dont_search or is_compilation_artist(query.name):
            return f"Artist '{query.name}' is never searched against providers"
        return None

    async def _search(self, adapter: ProviderAdapter, query: SearchQuery) -> ProviderResponse:
        return await adapter.search_artist(query.name, query.result_count)


class ReleaseLookupEngine(LookupEngine):
    """Resolves release titles, scoped by artist.

    With an artist engine, each new release's artist is resolved (and created
    if needed) in the same run and linked through artist_id.
    """

    entity_type = EntityType.RELEASE

    def __init__(
        self,
        db: LibraryDB,
        providers: ProviderRegistry,
        settings: Settings | None = None,
        artist_engine: ArtistLookupEngine | None = None,
    ):
        super().__init__(db, providers, settings)
        self.artist_engine = artist_engine

    def _scope(self, query: SearchQuery) -> str:
        return normalize_name(query.artist_name)

    def _prepare_query(self, query: SearchQuery) -> SearchQuery:
        artist_name = self.replace_artist_name(query.artist_name)
        if artist_name == query.artist_name:
            return query
        return query.model_copy(update={"artist_name": artist_name})

    async def _search(self, adapter: ProviderAdapter, query: SearchQuery) -> ProviderResponse:
        return await adapter.search_release(query.artist_name, query.name, query.result_count)

    def _matches(self, query: SearchQuery, result: ProviderResult) -> bool:
        if not super()._matches(query, result):
            return False
        # A same-titled release by another artist is a different entity
        if query.artist_name and result.artist_name:
            return accept_hit(query.artist_name, result.artist_name, exact=query.exact)
        return True

    async def _complete_record(
        self,
        record: CanonicalRecord,
        query: SearchQuery,
        run_context: RunContext,
        telemetry: LookupTelemetry,
    ) -> CanonicalRecord:
        assert isinstance(record, ReleaseRecord)
        # The caller's artist defines the uniqueness scope the release was looked up in
        artist_name = query.artist_name or record.artist_name
        update: dict = {"artist_name": artist_name}

        if self.artist_engine is not None and artist_name and not is_compilation_artist(artist_name):
            artist_result = await self.artist_engine.get_by_name(
                SearchQuery(name=artist_name, result_count=query.result_count),
                run_context=run_context,
                do_find_if_not_in_database=True,
                telemetry=telemetry,
            )
            if artist_result.is_success:
                assert artist_result.record is not None
                update["artist_id"] = artist_result.record.id
            else:
                logger.info(f"Release '{record.name}': artist '{artist_name}' not resolved")

        return record.model_copy(update=update)
