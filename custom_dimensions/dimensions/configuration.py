"""
Configuration Store

Authoritative mapping from dimension id to site, scope, slot index and
configuration. Works on a caller-provided session; committing is the caller's
job so allocation and insert can share one transaction.
"""

from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from custom_dimensions.database.models import CustomDimension, Scope
from custom_dimensions.dimensions.entities import Dimension
from custom_dimensions.dimensions.exceptions import Inactive, NotFound
from custom_dimensions.dimensions.extraction import ExtractionRule

logger = structlog.get_logger(__name__)


def _serialize_extractions(extractions: Iterable[ExtractionRule]) -> List[dict]:
    return [rule.to_dict() for rule in extractions]


class ConfigurationStore:
    """
    Data access for configured custom dimensions.

    Example:
        store = ConfigurationStore(session)
        dimension_id = await store.configure_new_dimension(
            1, "Category", Scope.ACTION, 1, True, []
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def configure_new_dimension(
        self,
        site_id: int,
        name: str,
        scope: Scope,
        index: int,
        active: bool,
        extractions: Iterable[ExtractionRule],
        case_sensitive: bool = True,
    ) -> int:
        """
        Insert a dimension, minting its id and binding ``index`` permanently.

        An IntegrityError surfaces here when another writer took the index first.
        """
        record = CustomDimension(
            site_id=site_id,
            name=name,
            scope=scope,
            slot_index=index,
            active=active,
            extractions=_serialize_extractions(extractions),
            case_sensitive=case_sensitive,
        )
        self.session.add(record)
        await self.session.flush()

        logger.info(
            "Custom dimension configured",
            dimension_id=record.dimension_id,
            site_id=site_id,
            scope=scope.value,
            index=index,
        )
        return record.dimension_id

    async def configure_existing_dimension(
        self,
        dimension_id: int,
        site_id: int,
        name: str,
        active: bool,
        extractions: Iterable[ExtractionRule],
        case_sensitive: Optional[bool] = None,
    ) -> Dimension:
        """Replace name, active flag and extractions; id, site, scope and index stay."""
        record = await self._get_record(dimension_id, site_id)
        if record is None:
            raise self._not_found(dimension_id, site_id)

        record.name = name
        record.active = active
        record.extractions = _serialize_extractions(extractions)
        if case_sensitive is not None:
            record.case_sensitive = case_sensitive
        await self.session.flush()

        logger.info(
            "Custom dimension updated",
            dimension_id=dimension_id,
            site_id=site_id,
            active=active,
        )
        return Dimension.from_record(record)

    async def get_custom_dimensions_for_site(self, site_id: int) -> List[Dimension]:
        """All dimensions of a site, every scope, active or not, by id"""
        result = await self.session.execute(
            select(CustomDimension)
            .where(CustomDimension.site_id == site_id)
            .order_by(CustomDimension.dimension_id)
        )
        return [Dimension.from_record(r) for r in result.scalars().all()]

    async def get_custom_dimensions_having_scope(self, site_id: int, scope: Scope) -> List[Dimension]:
        result = await self.session.execute(
            select(CustomDimension)
            .where(CustomDimension.site_id == site_id, CustomDimension.scope == scope)
            .order_by(CustomDimension.dimension_id)
        )
        return [Dimension.from_record(r) for r in result.scalars().all()]

    async def get_custom_dimension(self, dimension_id: int, site_id: int) -> Optional[Dimension]:
        record = await self._get_record(dimension_id, site_id)
        return Dimension.from_record(record) if record is not None else None

    async def get_slot_map(self) -> Dict[int, dict]:
        """Every dimension id mapped to the slot it writes into"""
        result = await self.session.execute(
            select(
                CustomDimension.dimension_id,
                CustomDimension.site_id,
                CustomDimension.scope,
                CustomDimension.slot_index,
                CustomDimension.active,
            ).order_by(CustomDimension.dimension_id)
        )
        return {
            row.dimension_id: {
                "idsite": row.site_id,
                "scope": Scope(row.scope).value,
                "index": row.slot_index,
                "active": bool(row.active),
            }
            for row in result.all()
        }

    async def exists(self, dimension_id: int, site_id: int) -> bool:
        return await self._get_record(dimension_id, site_id) is not None

    async def is_active(self, dimension_id: int, site_id: int) -> bool:
        record = await self._get_record(dimension_id, site_id)
        return record is not None and bool(record.active)

    async def check_exists(self, dimension_id: int, site_id: int) -> Dimension:
        """
        Raises:
            NotFound: When the id does not belong to a dimension of the site
        """
        dimension = await self.get_custom_dimension(dimension_id, site_id)
        if dimension is None:
            raise self._not_found(dimension_id, site_id)
        return dimension

    async def check_active(self, dimension_id: int, site_id: int) -> Dimension:
        """
        Raises:
            NotFound: When the dimension does not exist for the site
            Inactive: When it exists but is deactivated
        """
        dimension = await self.check_exists(dimension_id, site_id)
        if not dimension.active:
            raise Inactive(
                f"CustomDimension {dimension_id} is not active for website {site_id}",
                field="idDimension",
                details={"dimension_id": dimension_id, "site_id": site_id},
            )
        return dimension

    async def _get_record(self, dimension_id: int, site_id: int) -> Optional[CustomDimension]:
        result = await self.session.execute(
            select(CustomDimension).where(
                CustomDimension.dimension_id == dimension_id,
                CustomDimension.site_id == site_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _not_found(dimension_id: int, site_id: int) -> NotFound:
        return NotFound(
            f"CustomDimension {dimension_id} does not exist for website {site_id}",
            field="idDimension",
            details={"dimension_id": dimension_id, "site_id": site_id},
        )
