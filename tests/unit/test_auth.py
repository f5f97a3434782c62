"""
Unit Tests - Access Checks
"""
import jwt
import pytest

from custom_dimensions.config import get_settings
from custom_dimensions.dimensions.exceptions import Unauthenticated, Unauthorized
from custom_dimensions.serving.auth import Principal, decode_token, issue_token


def _sign(claims):
    settings = get_settings()
    return jwt.encode(
        claims,
        settings.security.jwt_secret_key.get_secret_value(),
        algorithm=settings.security.jwt_algorithm,
    )


class TestPrincipal:
    """Tests for Principal access checks"""
    
    def test_admin_implies_view(self):
        principal = Principal(user_id="u", admin_sites=frozenset({1}))
        
        principal.check_user_has_view_access(1)
        principal.check_user_has_admin_access(1)
    
    def test_view_does_not_imply_admin(self):
        principal = Principal(user_id="u", view_sites=frozenset({1}))
        
        with pytest.raises(Unauthorized):
            principal.check_user_has_admin_access(1)
        with pytest.raises(Unauthorized):
            principal.check_user_has_some_admin_access()
    
    def test_superuser_has_all_access(self):
        principal = Principal(user_id="root", superuser=True)
        
        principal.check_user_has_admin_access(42)
        principal.check_user_has_some_admin_access()


class TestTokenClaims:
    """Tests for turning token claims into a Principal"""
    
    def test_round_trip(self, admin):
        assert decode_token(issue_token(admin)) == admin
    
    def test_missing_subject(self):
        with pytest.raises(Unauthenticated):
            Principal.from_claims({"view": [1]})
    
    @pytest.mark.parametrize("claims", [
        {"sub": "u", "view": ["abc"]},
        {"sub": "u", "admin": 5},
        {"sub": "u", "admin": [None]},
    ])
    def test_malformed_site_claims(self, claims):
        with pytest.raises(Unauthenticated) as exc_info:
            decode_token(_sign(claims))
        
        assert exc_info.value.message == "Invalid token payload"
        assert exc_info.value.status_code == 401
