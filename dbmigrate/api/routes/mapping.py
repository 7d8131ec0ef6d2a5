"""Mapping validation endpoint."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ...exceptions import ConfigurationError
from ...models.config import validate_schema_mapping
from ..models import MappingValidateRequest, MappingValidateResponse

router = APIRouter()


@router.post("/validate", response_model=MappingValidateResponse)
async def validate_mapping(request: MappingValidateRequest):
    """Validate a schema mapping, listing every problem found."""
    try:
        validate_schema_mapping(request.mapping)
    except ConfigurationError as e:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": str(e), "errors": e.errors},
        )
    return MappingValidateResponse(success=True, message="Mapping is valid")
