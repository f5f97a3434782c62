"""
Unit Tests - HTTP API
"""
import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from custom_dimensions.config import get_settings
from custom_dimensions.main import create_app
from custom_dimensions.serving.api.dependencies import (
    get_db_session_factory,
    get_slot_locks,
    get_tracker_cache,
)
from custom_dimensions.serving.auth import issue_token

BASE = "/api/v1/sites/1/custom-dimensions"


@pytest.fixture
async def client(session_factory, tracker_cache, slot_locks):
    app = create_app()
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[get_tracker_cache] = lambda: tracker_cache
    app.dependency_overrides[get_slot_locks] = lambda: slot_locks
    
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {issue_token(admin)}"}


@pytest.fixture
def viewer_headers(viewer):
    return {"Authorization": f"Bearer {issue_token(viewer)}"}


async def _create(client, headers, **overrides):
    body = {"name": "Category", "scope": "visit", "active": "1", "extractions": []}
    body.update(overrides)
    return await client.post(BASE, json=body, headers=headers)


class TestAuthentication:
    """Tests for bearer token handling"""
    
    async def test_missing_token(self, client):
        response = await client.get(BASE)
        
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthenticated"
        assert response.headers["WWW-Authenticate"] == "Bearer"
    
    async def test_invalid_token(self, client):
        response = await client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
        
        assert response.status_code == 401
    
    async def test_expired_token(self, client, admin):
        token = issue_token(admin, expires_in=-60)
        
        response = await client.get(BASE, headers={"Authorization": f"Bearer {token}"})
        
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token has expired"
    
    async def test_missing_access(self, client, viewer_headers):
        response = await _create(client, viewer_headers)
        
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "unauthorized"


class TestCustomDimensionEndpoints:
    """Tests for the configuration endpoints"""
    
    async def test_create_and_list(self, client, admin_headers):
        created = await _create(client, admin_headers, extractions=[{"dimension": "urlparam", "pattern": "cat"}])
        listed = await client.get(BASE, headers=admin_headers)
        
        assert created.status_code == 201
        dimension_id = created.json()["idcustomdimension"]
        assert listed.status_code == 200
        assert listed.json() == [
            {
                "idcustomdimension": dimension_id,
                "idsite": 1,
                "name": "Category",
                "index": 1,
                "scope": "visit",
                "active": True,
                "extractions": [{"dimension": "urlparam", "pattern": "cat"}],
                "case_sensitive": True,
            }
        ]
        assert "X-Request-ID" in created.headers
    
    async def test_invalid_extraction(self, client, admin_headers):
        response = await _create(client, admin_headers, extractions=[{"dimension": "url", "pattern": "(a)(b)"}])
        
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_extraction"
        assert error["field"] == "extractions"
        assert error["details"] == {"reason": "capture_group_count", "position": 0}
    
    async def test_invalid_scope(self, client, admin_headers):
        response = await _create(client, admin_headers, scope="conversion")
        
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_scope"
    
    async def test_no_slots_left(self, client, admin_headers):
        for i in range(5):
            assert (await _create(client, admin_headers, name=f"Dimension {i}")).status_code == 201
        
        response = await _create(client, admin_headers, name="One too many")
        
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "no_slots_available"
    
    async def test_update(self, client, admin_headers):
        dimension_id = (await _create(client, admin_headers)).json()["idcustomdimension"]
        
        response = await client.put(
            f"{BASE}/{dimension_id}",
            json={"name": "Renamed", "active": "0", "extractions": []},
            headers=admin_headers,
        )
        listed = (await client.get(BASE, headers=admin_headers)).json()
        
        assert response.status_code == 204
        assert listed[0]["name"] == "Renamed"
        assert listed[0]["active"] is False
    
    async def test_update_unknown(self, client, admin_headers):
        response = await client.put(
            f"{BASE}/999",
            json={"name": "Renamed", "active": "1"},
            headers=admin_headers,
        )
        
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"
    
    async def test_scopes(self, client, admin_headers):
        await _create(client, admin_headers, scope="action")
        
        response = await client.get(f"{BASE}/scopes", headers=admin_headers)
        
        assert response.status_code == 200
        assert response.json()[1] == {
            "name": "action",
            "numSlotsAvailable": 5,
            "numSlotsUsed": 1,
            "numSlotsLeft": 4,
        }
    
    async def test_extraction_dimensions(self, client, admin_headers):
        response = await client.get("/api/v1/custom-dimensions/extraction-dimensions", headers=admin_headers)
        
        assert response.status_code == 200
        assert response.json()[0] == {"value": "url", "name": "Page URL"}


class TestReportEndpoint:
    """Tests for report retrieval over HTTP"""
    
    async def test_empty_report(self, client, admin_headers):
        dimension_id = (await _create(client, admin_headers)).json()["idcustomdimension"]
        
        response = await client.get(
            f"{BASE}/{dimension_id}/report",
            params={"period": "day", "date": "2024-01-01"},
            headers=admin_headers,
        )
        
        assert response.status_code == 200
        assert response.json()["rows"] == []
        assert response.json()["metadata"]["index"] == 1
    
    async def test_inactive_dimension(self, client, admin_headers):
        dimension_id = (await _create(client, admin_headers, active=0)).json()["idcustomdimension"]
        
        response = await client.get(
            f"{BASE}/{dimension_id}/report",
            params={"period": "day", "date": "2024-01-01"},
            headers=admin_headers,
        )
        
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "inactive"
    
    async def test_invalid_period(self, client, admin_headers):
        response = await client.get(
            f"{BASE}/1/report",
            params={"period": "decade", "date": "2024-01-01"},
            headers=admin_headers,
        )
        
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_period"


class TestHealth:
    """Tests for the liveness probe"""
    
    async def test_liveness(self, client):
        response = await client.get("/api/v1/health/live")
        
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}


class TestMalformedToken:
    """Tests for signed tokens with unusable claims"""
    
    async def test_non_numeric_site_claim(self, client):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "mallory", "view": ["abc"]},
            settings.security.jwt_secret_key.get_secret_value(),
            algorithm=settings.security.jwt_algorithm,
        )
        
        response = await client.get(BASE, headers={"Authorization": f"Bearer {token}"})
        
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthenticated"
