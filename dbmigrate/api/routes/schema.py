"""Schema inspection endpoint."""

from fastapi import APIRouter, Depends

from ...runner import ConnectorFactory
from ..dependencies import get_connector_factory
from ..models import CollectionRequest, SchemaResponse

router = APIRouter()


@router.post("/inspect", response_model=SchemaResponse)
def inspect_schema(
    request: CollectionRequest,
    connector_factory: ConnectorFactory = Depends(get_connector_factory)
):
    """Get the schema of one collection or table."""
    with connector_factory(request.config) as connector:
        schema = connector.get_schema(request.name)
    return SchemaResponse(name=request.name, table_schema=schema.to_dict())
