"""
Index Allocator

Every (site, scope) pair owns a fixed number of physical slots: the
``custom_dimension_N`` columns of the scope's log table. A slot, once bound to
a dimension, stays bound to it even when the dimension is deactivated.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Set, Tuple
from weakref import WeakValueDictionary

import structlog
from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncSession

from custom_dimensions.database.models import (
    SCOPE_LOG_TABLES,
    SLOT_COLUMN_PREFIX,
    CustomDimension,
    Scope,
)
from custom_dimensions.dimensions.exceptions import NoSlotsAvailable
from custom_dimensions.dimensions.scope import validate_scope

logger = structlog.get_logger(__name__)

_SLOT_COLUMN = re.compile(rf"^{SLOT_COLUMN_PREFIX}(\d+)$")


class LogTable:
    """Physical storage of one scope"""
    
    def __init__(self, scope: Scope):
        self.scope = validate_scope(scope)
        self.table: Table = SCOPE_LOG_TABLES[self.scope]
    
    def get_installed_indexes(self) -> List[int]:
        """Slot numbers that have a column in the log table, ascending"""
        indexes = []
        for column in self.table.columns:
            match = _SLOT_COLUMN.match(column.name)
            if match:
                indexes.append(int(match.group(1)))
        return sorted(indexes)


def get_installed_slot_count(scope: Scope) -> int:
    """Capacity of a scope, fixed by the schema"""
    return len(LogTable(scope).get_installed_indexes())


class SlotLockRegistry:
    """
    Per (site, scope) asyncio locks serializing allocate-then-persist.
    
    Only guards callers in this process; the unique constraint on
    (idsite, scope, index) is what protects against other processes.
    A lock lives only while some caller holds or waits on it.
    """
    
    def __init__(self):
        self._locks: "WeakValueDictionary[Tuple[int, Scope], asyncio.Lock]" = WeakValueDictionary()
    
    def __len__(self) -> int:
        return len(self._locks)
    
    def get_lock(self, site_id: int, scope: Scope) -> asyncio.Lock:
        key = (site_id, scope)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock
    
    @asynccontextmanager
    async def hold(self, site_id: int, scope: Scope) -> AsyncIterator[None]:
        lock = self.get_lock(site_id, scope)
        async with lock:
            yield


class IndexAllocator:
    """
    Assigns slot indexes within a (site, scope).
    
    Example:
        allocator = IndexAllocator(session)
        index = await allocator.get_next_index(1, Scope.VISIT)
    """
    
    def __init__(self, session: AsyncSession):
        self.session = session
    
    def get_installed_slot_count(self, scope: Scope) -> int:
        return get_installed_slot_count(scope)
    
    async def get_used_indexes(self, site_id: int, scope: Scope) -> Set[int]:
        """Indexes bound to any dimension of the site and scope, active or not"""
        result = await self.session.execute(
            select(CustomDimension.slot_index).where(
                CustomDimension.site_id == site_id,
                CustomDimension.scope == scope,
            )
        )
        return set(result.scalars().all())
    
    async def get_next_index(self, site_id: int, scope: Scope) -> int:
        """
        Smallest installed index not yet used by the site in this scope.
        
        Raises:
            NoSlotsAvailable: When every installed index is taken
        """
        scope = validate_scope(scope)
        used = await self.get_used_indexes(site_id, scope)
        installed = LogTable(scope).get_installed_indexes()
        
        for index in installed:
            if index not in used:
                logger.debug(
                    "Allocated custom dimension index",
                    site_id=site_id,
                    scope=scope.value,
                    index=index,
                )
                return index
        
        logger.warning(
            "No custom dimension slots left",
            site_id=site_id,
            scope=scope.value,
            installed=len(installed),
        )
        raise NoSlotsAvailable(
            f"All Custom Dimensions for website {site_id} in scope '{scope.value}' are already used",
            field="scope",
            details={"site_id": site_id, "scope": scope.value, "installed": len(installed)},
        )
