"""Connection test endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...runner import ConnectorFactory
from ..dependencies import get_connector_factory
from ..models import ConnectionRequest, ConnectionTestResponse

router = APIRouter()


@router.post("/test", response_model=ConnectionTestResponse)
def test_connection(
    request: ConnectionRequest,
    connector_factory: ConnectorFactory = Depends(get_connector_factory)
):
    """Test a connection config. Failed connections return 400."""
    with connector_factory(request.config) as connector:
        result = connector.test_connection()

    if not result.success:
        return JSONResponse(status_code=400, content=result.to_dict())
    return ConnectionTestResponse(**result.to_dict())
