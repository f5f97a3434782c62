"""
Access checks

Access rights come from a bearer JWT issued by the authorization service.
Claims used:

- ``sub``: user id
- ``superuser``: full access to every site
- ``view``: site ids the user may view
- ``admin``: site ids the user administers (implies view)
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from custom_dimensions.config import get_settings
from custom_dimensions.dimensions.exceptions import Unauthenticated, Unauthorized

logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The caller and the sites it may view or administer"""
    user_id: str
    superuser: bool = False
    view_sites: FrozenSet[int] = field(default_factory=frozenset)
    admin_sites: FrozenSet[int] = field(default_factory=frozenset)
    
    def has_view_access(self, site_id: int) -> bool:
        return self.superuser or site_id in self.view_sites or site_id in self.admin_sites
    
    def has_admin_access(self, site_id: int) -> bool:
        return self.superuser or site_id in self.admin_sites
    
    def check_user_has_view_access(self, site_id: int) -> None:
        if not self.has_view_access(site_id):
            raise Unauthorized(
                f"You can't access this resource as it requires 'view' access for the website id = {site_id}.",
                details={"required": "view", "site_id": site_id},
            )
    
    def check_user_has_admin_access(self, site_id: int) -> None:
        if not self.has_admin_access(site_id):
            raise Unauthorized(
                f"You can't access this resource as it requires 'admin' access for the website id = {site_id}.",
                details={"required": "admin", "site_id": site_id},
            )
    
    def check_user_has_some_admin_access(self) -> None:
        if not (self.superuser or self.admin_sites):
            raise Unauthorized(
                "You can't access this resource as it requires 'admin' access for at least one website.",
                details={"required": "some_admin"},
            )
    
    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Principal":
        user_id = claims.get("sub")
        if not user_id:
            raise Unauthenticated("Invalid token payload")
        try:
            view_sites = frozenset(int(s) for s in claims.get("view", []))
            admin_sites = frozenset(int(s) for s in claims.get("admin", []))
        except (TypeError, ValueError) as e:
            raise Unauthenticated("Invalid token payload") from e
        return cls(
            user_id=str(user_id),
            superuser=bool(claims.get("superuser", False)),
            view_sites=view_sites,
            admin_sites=admin_sites,
        )


def decode_token(token: str) -> Principal:
    """
    Decode and verify a bearer token.
    
    Raises:
        Unauthenticated: If the token is expired, tampered with or malformed
    """
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.security.jwt_secret_key.get_secret_value(),
            algorithms=[settings.security.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise Unauthenticated("Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token", error=str(e))
        raise Unauthenticated("Invalid authentication credentials") from e
    return Principal.from_claims(claims)


def issue_token(principal: Principal, expires_in: Optional[int] = None) -> str:
    """Encode a principal; used by tooling and tests."""
    settings = get_settings()
    claims: Dict[str, Any] = {
        "sub": principal.user_id,
        "superuser": principal.superuser,
        "view": sorted(principal.view_sites),
        "admin": sorted(principal.admin_sites),
    }
    if expires_in is not None:
        claims["exp"] = int(time.time()) + expires_in
    return jwt.encode(
        claims,
        settings.security.jwt_secret_key.get_secret_value(),
        algorithm=settings.security.jwt_algorithm,
    )


async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """FastAPI dependency resolving the caller from the Authorization header"""
    if credentials is None:
        raise Unauthenticated("Authentication required")
    return decode_token(credentials.credentials)
