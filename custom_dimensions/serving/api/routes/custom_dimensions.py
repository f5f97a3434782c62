"""
Custom Dimensions API Endpoints

Manage a site's Custom Dimensions and fetch their reports.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
import structlog

from custom_dimensions.dimensions.service import CustomDimensionsService
from custom_dimensions.serving.api.dependencies import get_service

router = APIRouter()
site_router = APIRouter()
logger = structlog.get_logger(__name__)


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class ExtractionModel(BaseModel):
    """Extraction rule"""
    dimension: str
    pattern: str


class NewDimensionRequest(BaseModel):
    """Configure a new dimension"""
    name: Any
    scope: Any
    active: Any = Field(..., description="'0'/'1', 0/1 or false/true")
    extractions: List[Any] = Field(default_factory=list)
    case_sensitive: bool = True


class ExistingDimensionRequest(BaseModel):
    """Replace the configuration of an existing dimension"""
    name: Any
    active: Any
    extractions: List[Any] = Field(default_factory=list)
    case_sensitive: Optional[bool] = None


class DimensionCreated(BaseModel):
    idcustomdimension: int


class DimensionResponse(BaseModel):
    """Configured dimension"""
    idcustomdimension: int
    idsite: int
    name: str
    index: int
    scope: str
    active: bool
    extractions: List[ExtractionModel]
    case_sensitive: bool


class ScopeAvailability(BaseModel):
    """Slot usage of a scope"""
    name: str
    numSlotsAvailable: int
    numSlotsUsed: int
    numSlotsLeft: int


class ExtractionDimension(BaseModel):
    value: str
    name: str


class ReportResponse(BaseModel):
    """Report table"""
    metadata: Dict[str, Any]
    rows: List[Dict[str, Any]]


# =============================================================================
# SITE ENDPOINTS
# =============================================================================

@site_router.get("", response_model=List[DimensionResponse])
async def get_configured_custom_dimensions(
    site_id: int,
    service: CustomDimensionsService = Depends(get_service),
) -> List[Dict[str, Any]]:
    """All configured dimensions of the site, active or not."""
    return await service.get_configured_custom_dimensions(site_id)


@site_router.post("", response_model=DimensionCreated, status_code=status.HTTP_201_CREATED)
async def configure_new_custom_dimension(
    site_id: int,
    request: NewDimensionRequest,
    service: CustomDimensionsService = Depends(get_service),
) -> DimensionCreated:
    """
    Configure a new dimension in the next free slot of its scope.
    
    Dimensions cannot be deleted, only deactivated.
    """
    dimension_id = await service.configure_new_custom_dimension(
        site_id,
        request.name,
        request.scope,
        request.active,
        request.extractions,
        request.case_sensitive,
    )
    logger.info("Custom dimension created via API", site_id=site_id, dimension_id=dimension_id)
    return DimensionCreated(idcustomdimension=dimension_id)


@site_router.get("/scopes", response_model=List[ScopeAvailability])
async def get_available_scopes(
    site_id: int,
    service: CustomDimensionsService = Depends(get_service),
) -> List[Dict[str, Any]]:
    """Scopes with the number of slots installed, used and left."""
    return await service.get_available_scopes(site_id)


@site_router.put("/{dimension_id}", status_code=status.HTTP_204_NO_CONTENT)
async def configure_existing_custom_dimension(
    site_id: int,
    dimension_id: int,
    request: ExistingDimensionRequest,
    service: CustomDimensionsService = Depends(get_service),
) -> Response:
    """Replace name, active flag and extractions of a dimension."""
    await service.configure_existing_custom_dimension(
        dimension_id,
        site_id,
        request.name,
        request.active,
        request.extractions,
        request.case_sensitive,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@site_router.get("/{dimension_id}/report", response_model=ReportResponse)
async def get_custom_dimension(
    site_id: int,
    dimension_id: int,
    period: str = Query(..., description="day, week, month, year or range"),
    date: str = Query(..., description="Date or date range label of the archive"),
    segment: Optional[str] = None,
    expanded: bool = False,
    subtable_id: Optional[int] = Query(None, alias="idSubtable"),
    service: CustomDimensionsService = Depends(get_service),
) -> Dict[str, Any]:
    """Report of an active dimension."""
    table = await service.get_custom_dimension(
        dimension_id, site_id, period, date, segment, expanded, subtable_id
    )
    return table.to_dict()


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@router.get("/extraction-dimensions", response_model=List[ExtractionDimension])
async def get_available_extraction_dimensions(
    service: CustomDimensionsService = Depends(get_service),
) -> List[Dict[str, str]]:
    """Source dimensions that extractions can read from."""
    return await service.get_available_extraction_dimensions()
