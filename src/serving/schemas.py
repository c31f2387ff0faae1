# ==============================================================================
# Serving API Schemas
# ==============================================================================
#
# Pydantic models for the inference API responses.
#
# Schema Overview:
#   - RootResponse: Service information
#   - HealthResponse: Health check status information
#   - PipelineInfo: Summary of the loaded configuration
#   - ErrorResponse: Structured error output
#
# Prediction bodies are free-form (keyed by output tensor or column name) and
# are produced by src.serving.codecs.
#
# ==============================================================================

"""Schema definitions for the serving module."""

from enum import StrEnum, auto
from typing import List

from pydantic import BaseModel, Field


class APIStatus(StrEnum):
    """API status enumeration."""

    LOADING = auto()
    HEALTHY = auto()
    UNHEALTHY = auto()
    NOT_READY = auto()


class StepInfo(BaseModel):
    type: str = Field(..., description="Step type (model or transform)")
    input_names: List[str] = Field(..., description="Names the step consumes")
    output_names: List[str] = Field(..., description="Names the step produces")
    workers: int = Field(..., description="Parallel inference workers")


class PipelineInfo(BaseModel):
    """Summary of the loaded inference configuration."""

    config_path: str = Field(..., description="Configuration document served")
    http_port: int = Field(..., description="Port the server is bound to")
    input_data_format: str = Field(..., description="Format of the plain /raw route")
    output_data_format: str = Field(..., description="Encoding of model outputs")
    steps: List[StepInfo] = Field(..., description="Pipeline steps in order")


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: APIStatus = Field(..., description="API health status")
    pipeline_loaded: bool = Field(..., description="Whether the pipeline is loaded")
    config_path: str | None = Field(None, description="Configuration document served")
    uptime_seconds: int | None = Field(None, description="Service uptime in seconds")


class RootResponse(BaseModel):
    """Response model for root endpoint."""

    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    status: str = Field(..., description="Service status")
    docs: str = Field(..., description="URL to API documentation")
    health: str = Field(..., description="URL to health check endpoint")


class ErrorDetail(BaseModel):
    """Error detail model."""

    error_type: str = Field(..., description="Type of error")
    message: str = Field(..., description="Error message")
    details: dict | None = Field(None, description="Additional error details")


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str | ErrorDetail = Field(..., description="Error details")
