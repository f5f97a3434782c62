"""
Database Models

Configuration and storage schema for Custom Dimensions:

Configuration:
- CustomDimension: one row per configured dimension, bound to a physical slot

Physical slots:
- log_visit / log_link_visit_action: event tables carrying the
  custom_dimension_N columns a dimension writes into. The number of
  columns per table is the installed slot count of the matching scope.

Archives:
- ArchivedReport: pre-aggregated report tables produced by the archiving job
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    Index,
    Integer,
    String,
    Table,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class Scope(str, Enum):
    """Granularity a custom dimension applies to"""
    VISIT = "visit"
    ACTION = "action"


# =============================================================================
# PHYSICAL SLOT TABLES
# =============================================================================

SLOT_COLUMN_PREFIX = "custom_dimension_"
DEFAULT_INSTALLED_SLOTS = 5

JSONType = JSON().with_variant(JSONB(), "postgresql")


def slot_column_name(index: int) -> str:
    """Name of the log table column backing slot ``index``"""
    return f"{SLOT_COLUMN_PREFIX}{index}"


def _slot_columns(count: int) -> List[Column]:
    return [Column(slot_column_name(i), String(255)) for i in range(1, count + 1)]


log_visit = Table(
    "log_visit",
    Base.metadata,
    Column("idvisit", Integer, primary_key=True, autoincrement=True),
    Column("idsite", Integer, nullable=False),
    Column("visit_last_action_time", DateTime, nullable=False, server_default=func.now()),
    *_slot_columns(DEFAULT_INSTALLED_SLOTS),
)

log_link_visit_action = Table(
    "log_link_visit_action",
    Base.metadata,
    Column("idlink_va", Integer, primary_key=True, autoincrement=True),
    Column("idsite", Integer, nullable=False),
    Column("idvisit", Integer, nullable=False),
    Column("server_time", DateTime, nullable=False, server_default=func.now()),
    *_slot_columns(DEFAULT_INSTALLED_SLOTS),
)

SCOPE_LOG_TABLES = {
    Scope.VISIT: log_visit,
    Scope.ACTION: log_link_visit_action,
}


# =============================================================================
# CONFIGURATION
# =============================================================================

class CustomDimension(Base):
    """
    Custom Dimension Configuration Table
    
    ``dimension_id``, ``site_id``, ``scope`` and ``slot_index`` are written once
    at creation. The unique constraint on (site_id, scope, slot_index) is what
    makes concurrent slot allocation safe across processes.
    """
    __tablename__ = "custom_dimensions"
    
    dimension_id: Mapped[int] = mapped_column(
        "idcustomdimension", Integer, primary_key=True, autoincrement=True
    )
    site_id: Mapped[int] = mapped_column("idsite", Integer, nullable=False)
    scope: Mapped[Scope] = mapped_column(
        SQLEnum(
            Scope,
            name="custom_dimension_scope",
            native_enum=False,
            values_callable=lambda scopes: [s.value for s in scopes],
        ),
        nullable=False,
    )
    slot_index: Mapped[int] = mapped_column("index", Integer, nullable=False)
    
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Ordered list of {"dimension": ..., "pattern": ...}
    extractions: Mapped[List[dict]] = mapped_column(JSONType, default=list, nullable=False)
    case_sensitive: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
    
    __table_args__ = (
        UniqueConstraint("idsite", "scope", "index", name="uq_custom_dimensions_site_scope_index"),
        Index("ix_custom_dimensions_site", "idsite"),
    )


# =============================================================================
# ARCHIVES
# =============================================================================

class ArchivedReport(Base):
    """
    Archived Report Table
    
    Pre-aggregated report tables written by the archiving job. Root tables have
    no ``subtable_id``; each row may point at a subtable through ``idsubdatatable``.
    """
    __tablename__ = "archive_reports"
    
    archive_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_name: Mapped[str] = mapped_column(String(255), nullable=False)
    site_id: Mapped[int] = mapped_column("idsite", Integer, nullable=False)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    date_label: Mapped[str] = mapped_column(String(30), nullable=False)
    segment: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    subtable_id: Mapped[Optional[int]] = mapped_column(Integer)
    
    # [{"label": ..., "columns": {...}, "idsubdatatable": ...}, ...]
    rows: Mapped[List[dict]] = mapped_column(JSONType, default=list, nullable=False)
    
    computed_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    
    __table_args__ = (
        UniqueConstraint(
            "record_name", "idsite", "period", "date_label", "segment", "subtable_id",
            name="uq_archive_reports_record",
        ),
        Index("ix_archive_reports_lookup", "record_name", "idsite", "period", "date_label"),
    )
