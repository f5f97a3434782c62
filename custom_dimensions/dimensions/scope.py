"""
Custom Dimension Scopes

The set of scopes is closed: a dimension is either recorded once per visit or
once per action.
"""

from typing import Any, List

from custom_dimensions.database.models import Scope
from custom_dimensions.dimensions.exceptions import InvalidScope

__all__ = ["Scope", "validate_scope", "get_public_scopes"]


def get_public_scopes() -> List[Scope]:
    """Scopes callers may configure dimensions in"""
    return [Scope.VISIT, Scope.ACTION]


def validate_scope(value: Any) -> Scope:
    """
    Resolve ``value`` to a public scope.
    
    Raises:
        InvalidScope: If the value does not name a public scope
    """
    if isinstance(value, Scope):
        scope = value
    else:
        try:
            scope = Scope(str(value).strip().lower()) if value is not None else None
        except ValueError:
            scope = None
    
    if scope is None or scope not in get_public_scopes():
        allowed = ", ".join(s.value for s in get_public_scopes())
        raise InvalidScope(
            f"Invalid value '{value}' for 'scope' specified. Available scopes are: {allowed}",
            field="scope",
        )
    return scope
