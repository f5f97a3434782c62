"""
Name and activation flag validation.
"""

from typing import Any, Optional

from custom_dimensions.config import get_settings
from custom_dimensions.dimensions.exceptions import InvalidActiveFlag, InvalidName

_ACTIVE_VALUES = {
    True: True,
    False: False,
    1: True,
    0: False,
    "1": True,
    "0": False,
}


def validate_name(name: Any, max_length: Optional[int] = None) -> str:
    """
    Check a dimension name is a non-empty string within the length limit.
    
    Returns:
        The name, unchanged
    """
    if max_length is None:
        max_length = get_settings().dimensions.name_max_length
    
    if not isinstance(name, str) or not name.strip():
        raise InvalidName("The name of the dimension must not be empty", field="name")
    if len(name) > max_length:
        raise InvalidName(
            f"The name of the dimension is too long, maximum {max_length} characters allowed",
            field="name",
            details={"max_length": max_length, "length": len(name)},
        )
    return name


def validate_active(value: Any) -> bool:
    """
    Coerce an activation flag given as bool, 0/1 or "0"/"1".
    
    Raises:
        InvalidActiveFlag: For anything else
    """
    # float 1.0 hashes like 1; only accept the listed types
    if isinstance(value, (bool, int, str)):
        try:
            return _ACTIVE_VALUES[value]
        except KeyError:
            pass
    raise InvalidActiveFlag(
        f"Invalid value '{value}' for 'active' specified. Allowed values: '0' or '1'",
        field="active",
    )
