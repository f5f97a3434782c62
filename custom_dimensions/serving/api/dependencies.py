"""
FastAPI dependencies wiring the service to its collaborators.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custom_dimensions.database.connection import get_session_factory
from custom_dimensions.dimensions.index import SlotLockRegistry
from custom_dimensions.dimensions.service import CustomDimensionsService
from custom_dimensions.reports.archive import ArchiveReader, DatabaseArchiveReader
from custom_dimensions.serving.auth import Principal, get_principal
from custom_dimensions.serving.cache import TrackerCache

# One registry per process so every request allocating in a (site, scope) shares its lock
_slot_locks = SlotLockRegistry()


def get_slot_locks() -> SlotLockRegistry:
    return _slot_locks


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def get_tracker_cache() -> TrackerCache:
    return TrackerCache()


def get_archive_reader(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
) -> ArchiveReader:
    return DatabaseArchiveReader(session_factory)


def get_service(
    principal: Principal = Depends(get_principal),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    tracker_cache: TrackerCache = Depends(get_tracker_cache),
    archive: ArchiveReader = Depends(get_archive_reader),
    locks: SlotLockRegistry = Depends(get_slot_locks),
) -> CustomDimensionsService:
    return CustomDimensionsService(
        session_factory=session_factory,
        principal=principal,
        tracker_cache=tracker_cache,
        archive=archive,
        locks=locks,
    )
