"""
Pydantic models for API requests and responses.
"""
from datetime import date
from typing import Optional, Dict

from pydantic import BaseModel, Field


class QuoteRequest(BaseModel):
    """Service-type selection to price."""
    visa_type: str = Field(..., description="tourist, business, transit or diplomatic")
    visa_duration: str = Field(..., description="Duration option under the visa type")
    processing_time: str = Field(..., description="Processing tier (normal, urgent, ...)")
    number_of_applicants: int = Field(default=1, ge=1, le=10)


class QuoteResponse(BaseModel):
    """Derived price and turnaround; total is 0 for an unknown combination."""
    total_price: float
    formatted_price: str = Field(..., description="e.g. $25.00")
    estimated_delivery_date: Optional[date] = None


class UploadResponse(BaseModel):
    """Stored file location."""
    url: str = Field(..., description="Public URL of the stored file")
    pathname: str = Field(..., description="Storage path the file was written to")
    file_size: int


class DeleteFileRequest(BaseModel):
    url: str = Field(..., min_length=1, description="URL returned by an upload")


class DeleteFileResponse(BaseModel):
    success: bool


class ErrorResponse(BaseModel):
    """Body of every ApplicationError response."""
    detail: str
    errors: Optional[Dict[str, str]] = Field(
        None, description="Field path → message (validation failures only)"
    )


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(default="healthy")
    version: str
    storage_backend: str
    applications: int = Field(..., description="Records held by this instance")
