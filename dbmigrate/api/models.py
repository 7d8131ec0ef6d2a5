"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Request Models
class ConnectionRequest(BaseModel):
    # Raw connection config, validated by the connector factory
    config: Dict[str, Any]


class CollectionRequest(ConnectionRequest):
    name: str = Field(min_length=1)


class PreviewRequest(CollectionRequest):
    limit: int = Field(default=10, ge=1, le=1000)
    mapping: Optional[Dict[str, Any]] = None


class MappingValidateRequest(BaseModel):
    mapping: Dict[str, Any]


class MigrationStartRequest(BaseModel):
    config: Dict[str, Any]


# Response Models
class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None


class DiscoverResponse(BaseModel):
    success: bool = True
    collections: List[Dict[str, Any]]


class SchemaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    name: str
    table_schema: Dict[str, Any] = Field(alias="schema")


class PreviewResponse(BaseModel):
    success: bool = True
    name: str
    data: List[Dict[str, Any]]
    count: int
    transformed: Optional[List[Dict[str, Any]]] = None
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


class MappingValidateResponse(BaseModel):
    success: bool
    message: str = ""
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class MigrationStartResponse(BaseModel):
    success: bool = True
    job_id: str


class JobSummary(BaseModel):
    id: str
    status: str
    progress: float
    processed_records: int
    total_records: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class JobStatusResponse(BaseModel):
    success: bool = True
    job: JobSummary


class JobListResponse(BaseModel):
    jobs: List[JobSummary]
    total: int


class JobLogsResponse(BaseModel):
    success: bool = True
    logs: List[Dict[str, Any]]


class JobErrorsResponse(BaseModel):
    success: bool = True
    errors: List[Dict[str, Any]]
