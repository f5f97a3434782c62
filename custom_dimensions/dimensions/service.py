"""
Custom Dimensions Service

Public operations for managing Custom Dimensions and fetching their reports.

Custom Dimensions cannot be deleted, only deactivated: a deactivated dimension
keeps its slot so the data already stored in it keeps one meaning. Creating
dimensions carelessly can use up a site's slots quickly.
"""

from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custom_dimensions.config import get_settings
from custom_dimensions.dimensions.configuration import ConfigurationStore
from custom_dimensions.dimensions.exceptions import PersistenceFailure
from custom_dimensions.dimensions.extraction import (
    ExtractionRule,
    get_supported_dimensions,
    validate_extractions,
)
from custom_dimensions.dimensions.index import (
    IndexAllocator,
    SlotLockRegistry,
    get_installed_slot_count,
)
from custom_dimensions.dimensions.scope import Scope, get_public_scopes, validate_scope
from custom_dimensions.dimensions.validators import validate_active, validate_name
from custom_dimensions.reports.archive import ArchiveReader, build_record_name, validate_period
from custom_dimensions.reports.datatable import DataTable
from custom_dimensions.reports.filters import (
    add_dimension_metadata,
    add_segment_metadata,
    add_subtable_segment_metadata,
    remove_user_if_needed,
)
from custom_dimensions.serving.auth import Principal
from custom_dimensions.serving.cache import TrackerCache

logger = structlog.get_logger(__name__)


class CustomDimensionsService:
    """
    Manage and read Custom Dimensions on behalf of one caller.

    Args:
        session_factory: Creates sessions against the configuration database
        principal: The caller, used for every access check
        tracker_cache: Caches to invalidate after configuration changes
        archive: Reader for archived reports
        locks: Shared per (site, scope) allocation locks
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        principal: Principal,
        tracker_cache: TrackerCache,
        archive: ArchiveReader,
        locks: SlotLockRegistry,
    ):
        self.session_factory = session_factory
        self.principal = principal
        self.tracker_cache = tracker_cache
        self.archive = archive
        self.locks = locks
        self.settings = get_settings().dimensions

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def get_custom_dimension(
        self,
        dimension_id: int,
        site_id: int,
        period: str,
        date: str,
        segment: Optional[str] = None,
        expanded: bool = False,
        subtable_id: Optional[int] = None,
    ) -> DataTable:
        """
        Report of an active dimension. Requires view access.

        Subtable rows are annotated with a segment combining the parent row's
        value and their own label; otherwise rows get the dimension's segment
        and the table the dimension's metadata. The ``nb_users`` column is
        dropped when no row counts a user.
        """
        self.principal.check_user_has_view_access(site_id)
        validate_period(period)

        async with self._read_session() as store:
            dimension = await store.check_active(dimension_id, site_id)

        record = build_record_name(dimension_id)
        table = await self.archive.fetch(
            record, site_id, period, date, segment, expanded=expanded, subtable_id=subtable_id
        )

        if subtable_id is not None and table.get_rows_count():
            parent = await self.archive.fetch(record, site_id, period, date, segment)
            for row in parent.rows:
                if row.subtable_id == subtable_id:
                    table.filter(add_subtable_segment_metadata, dimension_id, row.label)
                    break
        else:
            table.filter(add_segment_metadata, dimension_id)

        table.filter(add_dimension_metadata, dimension)
        table.filter(remove_user_if_needed)
        return table

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def configure_new_custom_dimension(
        self,
        site_id: int,
        name: str,
        scope: Any,
        active: Any,
        extractions: Optional[Sequence[Any]] = None,
        case_sensitive: bool = True,
    ) -> int:
        """
        Create a dimension in the next free slot of ``scope``. Requires admin access.

        Returns:
            The id of the new dimension

        Raises:
            NoSlotsAvailable: When the site has no free slot left in ``scope``
        """
        self.principal.check_user_has_admin_access(site_id)

        name, active, rules = self._validate_config(name, active, extractions)
        scope = validate_scope(scope)

        dimension_id = await self._allocate_and_store(site_id, name, scope, active, rules, case_sensitive)

        await self.tracker_cache.invalidate(site_id)
        return dimension_id

    async def configure_existing_custom_dimension(
        self,
        dimension_id: int,
        site_id: int,
        name: str,
        active: Any,
        extractions: Optional[Sequence[Any]] = None,
        case_sensitive: Optional[bool] = None,
    ) -> None:
        """
        Replace the name, active flag and extractions of a dimension. Requires admin access.

        Every value is overwritten; pass the current ones to keep them.
        """
        self.principal.check_user_has_admin_access(site_id)

        async with self._read_session() as store:
            await store.check_exists(dimension_id, site_id)

        name, active, rules = self._validate_config(name, active, extractions)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await ConfigurationStore(session).configure_existing_dimension(
                        dimension_id, site_id, name, active, rules, case_sensitive
                    )
        except SQLAlchemyError as e:
            raise self._persistence_failure(e) from e

        await self.tracker_cache.invalidate(site_id)

    async def get_configured_custom_dimensions(self, site_id: int) -> List[Dict[str, Any]]:
        """All dimensions of a site, active or not. Requires admin access."""
        self.principal.check_user_has_admin_access(site_id)

        async with self._read_session() as store:
            dimensions = await store.get_custom_dimensions_for_site(site_id)
        return [d.to_dict() for d in dimensions]

    async def get_available_scopes(self, site_id: int) -> List[Dict[str, Any]]:
        """
        Public scopes with their slot usage. Requires admin access.

        Deactivated dimensions count as used.
        """
        self.principal.check_user_has_admin_access(site_id)

        scopes = []
        async with self._read_session() as store:
            for scope in get_public_scopes():
                configs = await store.get_custom_dimensions_having_scope(site_id, scope)
                installed = get_installed_slot_count(scope)
                scopes.append(
                    {
                        "name": scope.value,
                        "numSlotsAvailable": installed,
                        "numSlotsUsed": len(configs),
                        "numSlotsLeft": installed - len(configs),
                    }
                )
        return scopes

    async def get_available_extraction_dimensions(self) -> List[Dict[str, str]]:
        """Source dimensions usable in extractions. Requires admin access to some site."""
        self.principal.check_user_has_some_admin_access()

        return [
            {"value": value, "name": name}
            for value, name in get_supported_dimensions().items()
        ]

    # ------------------------------------------------------------------
    # Tracker snapshots
    # ------------------------------------------------------------------

    async def get_tracker_site_snapshot(self, site_id: int) -> List[Dict[str, Any]]:
        """Active dimensions of a site with their log table column, as cached for ingestion"""

        async def load() -> List[Dict[str, Any]]:
            async with self._read_session() as store:
                dimensions = await store.get_custom_dimensions_for_site(site_id)
            return [
                {**d.to_dict(), "column": d.identity.column_name}
                for d in dimensions
                if d.active
            ]

        return await self.tracker_cache.get_site(site_id, load)

    async def get_tracker_general_snapshot(self) -> Dict[str, Any]:
        """Dimension id to slot mapping for every site, as cached for ingestion"""

        async def load() -> Dict[str, Any]:
            async with self._read_session() as store:
                slot_map = await store.get_slot_map()
            # JSON object keys are strings
            return {str(k): v for k, v in slot_map.items()}

        return await self.tracker_cache.get_general(load)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_config(self, name: Any, active: Any, extractions: Optional[Sequence[Any]]):
        name = validate_name(name, self.settings.name_max_length)
        active = validate_active(active)
        rules = validate_extractions(extractions, self.settings.max_extractions)
        return name, active, rules

    async def _allocate_and_store(
        self,
        site_id: int,
        name: str,
        scope: Scope,
        active: bool,
        rules: List[ExtractionRule],
        case_sensitive: bool,
    ) -> int:
        """
        Pick the next index and insert the dimension in one transaction.

        Serialized per (site, scope) in this process. A unique constraint
        violation means another process took the index; the transaction is
        rolled back, so nothing stays reserved, and allocation starts over.
        """
        attempts = self.settings.allocation_retries
        async with self.locks.hold(site_id, scope):
            for attempt in range(1, attempts + 1):
                try:
                    async with self.session_factory() as session:
                        async with session.begin():
                            index = await IndexAllocator(session).get_next_index(site_id, scope)
                            return await ConfigurationStore(session).configure_new_dimension(
                                site_id, name, scope, index, active, rules, case_sensitive
                            )
                except IntegrityError as e:
                    logger.warning(
                        "Custom dimension index taken concurrently, retrying",
                        site_id=site_id,
                        scope=scope.value,
                        attempt=attempt,
                    )
                    if attempt == attempts:
                        raise self._persistence_failure(e) from e
                except SQLAlchemyError as e:
                    raise self._persistence_failure(e) from e

        # attempts >= 1 is enforced by settings
        raise PersistenceFailure("Could not allocate a custom dimension index")

    def _read_session(self) -> "_StoreSession":
        return _StoreSession(self.session_factory)

    @staticmethod
    def _persistence_failure(error: SQLAlchemyError) -> PersistenceFailure:
        logger.error(
            "Custom dimension persistence failed",
            error=str(error),
            error_type=type(error).__name__,
        )
        return PersistenceFailure(
            "The custom dimension configuration could not be stored",
            details={"error_type": type(error).__name__},
        )


class _StoreSession:
    """``async with`` a read-only ConfigurationStore; database errors become PersistenceFailure"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> ConfigurationStore:
        self.session = self.session_factory()
        return ConfigurationStore(self.session)

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.session.close()
        if exc is not None and isinstance(exc, SQLAlchemyError):
            raise CustomDimensionsService._persistence_failure(exc) from exc
        return False
