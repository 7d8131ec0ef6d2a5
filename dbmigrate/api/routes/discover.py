"""Collection/table discovery endpoint."""

from fastapi import APIRouter, Depends

from ...runner import ConnectorFactory
from ..dependencies import get_connector_factory
from ..models import ConnectionRequest, DiscoverResponse

router = APIRouter()


@router.post("", response_model=DiscoverResponse)
def discover(
    request: ConnectionRequest,
    connector_factory: ConnectorFactory = Depends(get_connector_factory)
):
    """List the collections or tables of a database."""
    with connector_factory(request.config) as connector:
        collections = connector.discover()
    return DiscoverResponse(collections=[c.to_dict() for c in collections])
