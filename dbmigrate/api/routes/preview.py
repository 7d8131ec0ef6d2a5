"""Data preview endpoint."""

from fastapi import APIRouter, Depends

from ...models.config import validate_schema_mapping
from ...runner import ConnectorFactory
from ...services.transformer import RecordTransformer
from ..dependencies import get_connector_factory
from ..models import PreviewRequest, PreviewResponse

router = APIRouter()


@router.post("", response_model=PreviewResponse)
def preview(
    request: PreviewRequest,
    connector_factory: ConnectorFactory = Depends(get_connector_factory)
):
    """
    Read sample records from a collection.

    When a mapping is given, each sample is also returned transformed.
    """
    mapping = validate_schema_mapping(request.mapping) if request.mapping else None

    with connector_factory(request.config) as connector:
        data = connector.preview(request.name, limit=request.limit)

    response = PreviewResponse(name=request.name, data=data, count=len(data))
    if mapping is not None:
        transformer = RecordTransformer()
        response.transformed = transformer.transform_batch(data, mapping)
        response.warnings = transformer.drain_warnings()
    return response
