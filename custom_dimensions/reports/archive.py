"""
Archive access

Reports are pre-aggregated by the archiving job; this module only reads them.
"""

from typing import Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custom_dimensions.database.models import ArchivedReport
from custom_dimensions.dimensions.exceptions import InvalidPeriod
from custom_dimensions.reports.datatable import DataTable, Row

logger = structlog.get_logger(__name__)

PERIODS = ("day", "week", "month", "year", "range")


def build_record_name(dimension_id: int) -> str:
    """Archive record holding the report of a dimension"""
    return f"CustomDimensions_customDimension{dimension_id}"


def validate_period(period: str) -> str:
    if period not in PERIODS:
        raise InvalidPeriod(
            f"Invalid period '{period}'. Allowed periods are: {', '.join(PERIODS)}",
            field="period",
        )
    return period


class ArchiveReader(Protocol):
    async def fetch(
        self,
        record_name: str,
        site_id: int,
        period: str,
        date: str,
        segment: Optional[str] = None,
        expanded: bool = False,
        subtable_id: Optional[int] = None,
    ) -> DataTable:
        ...


class DatabaseArchiveReader:
    """Reads archived report tables from the ``archive_reports`` table"""
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
    
    async def fetch(
        self,
        record_name: str,
        site_id: int,
        period: str,
        date: str,
        segment: Optional[str] = None,
        expanded: bool = False,
        subtable_id: Optional[int] = None,
    ) -> DataTable:
        """
        Load a root table, or the subtable ``subtable_id``.
        
        Missing archives yield an empty table. With ``expanded`` every row's
        subtable is attached, recursively.
        """
        validate_period(period)
        async with self.session_factory() as session:
            table = await self._load(session, record_name, site_id, period, date, segment or "", subtable_id)
            if expanded:
                await self._expand(session, table, record_name, site_id, period, date, segment or "")
        
        logger.debug(
            "Archive fetched",
            record=record_name,
            site_id=site_id,
            period=period,
            date=date,
            rows=table.get_rows_count(),
        )
        return table
    
    async def _load(
        self,
        session: AsyncSession,
        record_name: str,
        site_id: int,
        period: str,
        date: str,
        segment: str,
        subtable_id: Optional[int],
    ) -> DataTable:
        query = select(ArchivedReport.rows).where(
            ArchivedReport.record_name == record_name,
            ArchivedReport.site_id == site_id,
            ArchivedReport.period == period,
            ArchivedReport.date_label == date,
            ArchivedReport.segment == segment,
        )
        if subtable_id is None:
            query = query.where(ArchivedReport.subtable_id.is_(None))
        else:
            query = query.where(ArchivedReport.subtable_id == subtable_id)
        
        rows = (await session.execute(query)).scalar_one_or_none()
        return DataTable(rows=[Row.from_dict(r) for r in rows or []])
    
    async def _expand(
        self,
        session: AsyncSession,
        table: DataTable,
        record_name: str,
        site_id: int,
        period: str,
        date: str,
        segment: str,
    ) -> None:
        for row in table.rows:
            if row.subtable_id is None:
                continue
            row.subtable = await self._load(session, record_name, site_id, period, date, segment, row.subtable_id)
            await self._expand(session, row.subtable, record_name, site_id, period, date, segment)
