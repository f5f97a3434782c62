"""
Unit Tests - Cache Layer
"""
import asyncio

from custom_dimensions.serving.cache import CacheManager, TrackerCache


class TestCacheManager:
    """Tests for CacheManager"""
    
    async def test_set_and_get(self, fake_redis):
        cache = CacheManager("test", client=fake_redis)
        
        await cache.set("key", {"a": 1})
        
        assert await cache.get("key") == {"a": 1}
        assert "test:key" in fake_redis.store
    
    async def test_miss_returns_none(self, fake_redis):
        assert await CacheManager("test", client=fake_redis).get("missing") is None
    
    async def test_delete(self, fake_redis):
        cache = CacheManager("test", client=fake_redis)
        await cache.set("key", 1)
        
        assert await cache.delete("key") is True
        assert await cache.delete("key") is False
    
    async def test_incr(self, fake_redis):
        cache = CacheManager("test", client=fake_redis)
        
        assert await cache.incr("counter") == 1
        assert await cache.incr("counter") == 2
        assert await cache.get("counter") == 2


class TestTrackerCacheReads:
    """Tests for TrackerCache snapshot reads"""
    
    async def test_loader_called_once(self, tracker_cache):
        calls = []
        
        async def loader():
            calls.append(1)
            return [{"idcustomdimension": 1}]
        
        assert await tracker_cache.get_site(1, loader) == [{"idcustomdimension": 1}]
        assert await tracker_cache.get_site(1, loader) == [{"idcustomdimension": 1}]
        assert len(calls) == 1
    
    async def test_empty_snapshot_is_cached(self, tracker_cache):
        calls = []
        
        async def loader():
            calls.append(1)
            return []
        
        await tracker_cache.get_site(1, loader)
        await tracker_cache.get_site(1, loader)
        
        assert len(calls) == 1
    
    async def test_invalidate_forces_reload(self, tracker_cache):
        snapshots = iter([["old"], ["new"]])
        
        async def loader():
            return next(snapshots)
        
        await tracker_cache.get_general(loader)
        await tracker_cache.invalidate(1)
        
        assert await tracker_cache.get_general(loader) == ["new"]
    
    async def test_snapshot_stored_after_invalidation_is_not_served(self, tracker_cache):
        loaded = asyncio.Event()
        release = asyncio.Event()
        
        async def slow_loader():
            loaded.set()
            await release.wait()
            return ["old"]
        
        async def fresh_loader():
            return ["new"]
        
        reader = asyncio.create_task(tracker_cache.get_site(1, slow_loader))
        await loaded.wait()
        await tracker_cache.invalidate(1)
        release.set()
        
        assert await reader == ["old"]
        assert await tracker_cache.get_site(1, fresh_loader) == ["new"]
        assert await tracker_cache.get_site(1, slow_loader) == ["new"]
    
    async def test_unavailable_redis_falls_back_to_loader(self, tracker_cache, fake_redis):
        fake_redis.fail = True
        
        async def loader():
            return {"1": {"idsite": 1}}
        
        assert await tracker_cache.get_general(loader) == {"1": {"idsite": 1}}
        assert await tracker_cache.get_site(1, loader) == {"1": {"idsite": 1}}
    
    async def test_uninitialized_client_falls_back_to_loader(self):
        async def loader():
            return []
        
        assert await TrackerCache().get_site(1, loader) == []


class TestTrackerCacheInvalidation:
    """Tests for TrackerCache.invalidate"""
    
    async def test_invalidate_reports_success(self, tracker_cache, fake_redis):
        fake_redis.store["tracker:site:5"] = "[]"
        
        assert await tracker_cache.invalidate(5) is True
        assert fake_redis.deleted == ["tracker:site:5", "tracker:general:all"]
        assert fake_redis.store["tracker:site:5:generation"] == "1"
        assert fake_redis.store["tracker:general:all:generation"] == "1"
    
    async def test_invalidate_swallows_connection_errors(self, tracker_cache, fake_redis):
        fake_redis.fail = True
        
        assert await tracker_cache.invalidate(5) is False
    
    async def test_uninitialized_client_is_not_fatal(self):
        assert await TrackerCache().invalidate(5) is False
