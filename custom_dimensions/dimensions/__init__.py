"""
Custom Dimensions Core Module

Scope and input validation, extraction rules, slot allocation and the
configuration store.
"""
from .configuration import ConfigurationStore
from .entities import Dimension, DimensionConfig, DimensionIdentity
from .exceptions import (
    CustomDimensionsError,
    ExtractionErrorReason,
    Inactive,
    InvalidActiveFlag,
    InvalidExtraction,
    InvalidName,
    InvalidPeriod,
    InvalidScope,
    NoSlotsAvailable,
    NotFound,
    PersistenceFailure,
    Unauthenticated,
    Unauthorized,
)
from .extraction import (
    ExtractionRule,
    SourceDimension,
    extract_value,
    get_supported_dimensions,
    register_source_dimension,
    validate_extractions,
)
from .index import IndexAllocator, LogTable, SlotLockRegistry, get_installed_slot_count
from .scope import Scope, get_public_scopes, validate_scope
from .validators import validate_active, validate_name

__all__ = [
    "ConfigurationStore",
    "Dimension",
    "DimensionConfig",
    "DimensionIdentity",
    "CustomDimensionsError",
    "ExtractionErrorReason",
    "Inactive",
    "InvalidActiveFlag",
    "InvalidExtraction",
    "InvalidName",
    "InvalidPeriod",
    "InvalidScope",
    "NoSlotsAvailable",
    "NotFound",
    "PersistenceFailure",
    "Unauthenticated",
    "Unauthorized",
    "ExtractionRule",
    "SourceDimension",
    "extract_value",
    "get_supported_dimensions",
    "register_source_dimension",
    "validate_extractions",
    "IndexAllocator",
    "LogTable",
    "SlotLockRegistry",
    "get_installed_slot_count",
    "Scope",
    "get_public_scopes",
    "validate_scope",
    "validate_active",
    "validate_name",
]
