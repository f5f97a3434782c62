"""
Unit Tests - Slot Allocation
"""
import asyncio
import gc

import pytest
from sqlalchemy.exc import IntegrityError

from custom_dimensions.database.models import DEFAULT_INSTALLED_SLOTS
from custom_dimensions.dimensions.configuration import ConfigurationStore
from custom_dimensions.dimensions.exceptions import NoSlotsAvailable
from custom_dimensions.dimensions.index import (
    IndexAllocator,
    LogTable,
    SlotLockRegistry,
    get_installed_slot_count,
)
from custom_dimensions.dimensions.scope import Scope


async def _allocate(session, site_id, scope, name="Dimension", active=True):
    index = await IndexAllocator(session).get_next_index(site_id, scope)
    await ConfigurationStore(session).configure_new_dimension(site_id, name, scope, index, active, [])
    return index


class TestLogTable:
    """Tests for installed slot discovery"""
    
    @pytest.mark.parametrize("scope", [Scope.VISIT, Scope.ACTION])
    def test_installed_indexes(self, scope):
        assert LogTable(scope).get_installed_indexes() == list(range(1, DEFAULT_INSTALLED_SLOTS + 1))
    
    def test_installed_slot_count(self):
        assert get_installed_slot_count(Scope.VISIT) == 5
        assert get_installed_slot_count(Scope.ACTION) == 5


class TestIndexAllocator:
    """Tests for IndexAllocator"""
    
    async def test_first_index_is_one(self, test_db):
        assert await IndexAllocator(test_db).get_next_index(1, Scope.VISIT) == 1
    
    async def test_sequential_allocation(self, test_db):
        indexes = [await _allocate(test_db, 1, Scope.ACTION) for _ in range(5)]
        
        assert indexes == [1, 2, 3, 4, 5]
    
    async def test_exhausted_scope_raises(self, test_db):
        for _ in range(5):
            await _allocate(test_db, 1, Scope.VISIT)
        
        with pytest.raises(NoSlotsAvailable) as exc_info:
            await IndexAllocator(test_db).get_next_index(1, Scope.VISIT)
        
        assert exc_info.value.code == "no_slots_available"
        assert exc_info.value.status_code == 409
    
    async def test_smallest_free_index_reused(self, test_db):
        store = ConfigurationStore(test_db)
        await store.configure_new_dimension(1, "a", Scope.VISIT, 1, True, [])
        await store.configure_new_dimension(1, "c", Scope.VISIT, 3, True, [])
        
        assert await IndexAllocator(test_db).get_next_index(1, Scope.VISIT) == 2
    
    async def test_deactivated_dimension_keeps_slot(self, test_db):
        await _allocate(test_db, 1, Scope.VISIT, active=False)
        
        assert await IndexAllocator(test_db).get_next_index(1, Scope.VISIT) == 2
    
    async def test_scopes_allocate_independently(self, test_db):
        for _ in range(5):
            await _allocate(test_db, 1, Scope.VISIT)
        
        assert await IndexAllocator(test_db).get_next_index(1, Scope.ACTION) == 1
    
    async def test_sites_allocate_independently(self, test_db):
        for _ in range(5):
            await _allocate(test_db, 1, Scope.VISIT)
        
        assert await IndexAllocator(test_db).get_next_index(2, Scope.VISIT) == 1
    
    async def test_used_indexes(self, test_db):
        await _allocate(test_db, 1, Scope.ACTION)
        await _allocate(test_db, 1, Scope.ACTION, active=False)
        
        assert await IndexAllocator(test_db).get_used_indexes(1, Scope.ACTION) == {1, 2}
    
    async def test_duplicate_index_violates_constraint(self, test_db):
        store = ConfigurationStore(test_db)
        await store.configure_new_dimension(1, "first", Scope.VISIT, 1, True, [])
        
        with pytest.raises(IntegrityError):
            await store.configure_new_dimension(1, "second", Scope.VISIT, 1, True, [])


class TestSlotLockRegistry:
    """Tests for SlotLockRegistry"""
    
    async def test_same_key_shares_lock(self):
        registry = SlotLockRegistry()
        
        lock = registry.get_lock(1, Scope.VISIT)
        
        assert registry.get_lock(1, Scope.VISIT) is lock
        assert registry.get_lock(1, Scope.ACTION) is not lock
    
    async def test_hold_serializes_same_key(self):
        registry = SlotLockRegistry()
        order = []
        
        async def worker(name):
            async with registry.hold(1, Scope.VISIT):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                order.append(f"{name}-end")
        
        await asyncio.gather(worker("a"), worker("b"))
        
        assert order == ["a-start", "a-end", "b-start", "b-end"]
    
    async def test_released_locks_are_dropped(self):
        registry = SlotLockRegistry()
        
        for site_id in range(100):
            async with registry.hold(site_id, Scope.VISIT):
                assert registry.get_lock(site_id, Scope.VISIT).locked()
        gc.collect()
        
        assert len(registry) == 0
