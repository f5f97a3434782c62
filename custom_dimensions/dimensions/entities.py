"""
Dimension entities

A dimension is split into the identity written once at creation and the
configuration that may be replaced later.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from custom_dimensions.database.models import CustomDimension, Scope, slot_column_name
from custom_dimensions.dimensions.extraction import ExtractionRule


@dataclass(frozen=True)
class DimensionIdentity:
    """Immutable binding of a dimension to its physical slot"""
    dimension_id: int
    site_id: int
    scope: Scope
    index: int
    
    @property
    def column_name(self) -> str:
        """Log table column the dimension writes into"""
        return slot_column_name(self.index)


@dataclass(frozen=True)
class DimensionConfig:
    """Mutable part of a dimension, replaced as a whole on update"""
    name: str
    active: bool
    extractions: List[ExtractionRule] = field(default_factory=list)
    case_sensitive: bool = True


@dataclass(frozen=True)
class Dimension:
    identity: DimensionIdentity
    config: DimensionConfig
    
    @property
    def dimension_id(self) -> int:
        return self.identity.dimension_id
    
    @property
    def site_id(self) -> int:
        return self.identity.site_id
    
    @property
    def scope(self) -> Scope:
        return self.identity.scope
    
    @property
    def index(self) -> int:
        return self.identity.index
    
    @property
    def name(self) -> str:
        return self.config.name
    
    @property
    def active(self) -> bool:
        return self.config.active
    
    @property
    def extractions(self) -> List[ExtractionRule]:
        return self.config.extractions
    
    @classmethod
    def from_record(cls, record: CustomDimension) -> "Dimension":
        return cls(
            identity=DimensionIdentity(
                dimension_id=record.dimension_id,
                site_id=record.site_id,
                scope=Scope(record.scope),
                index=record.slot_index,
            ),
            config=DimensionConfig(
                name=record.name,
                active=bool(record.active),
                extractions=[ExtractionRule.from_dict(e) for e in (record.extractions or [])],
                case_sensitive=bool(record.case_sensitive),
            ),
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """API and cache representation"""
        return {
            "idcustomdimension": self.dimension_id,
            "idsite": self.site_id,
            "name": self.name,
            "index": self.index,
            "scope": self.scope.value,
            "active": self.active,
            "extractions": [e.to_dict() for e in self.extractions],
            "case_sensitive": self.config.case_sensitive,
        }
