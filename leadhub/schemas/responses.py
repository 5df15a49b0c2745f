"""
Standard API response schemas for consistent client experience.
All API endpoints should use these standardized response formats.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Generic, TypeVar, Dict, Any
from datetime import datetime

T = TypeVar('T')


class APIMetadata(BaseModel):
    """
    Metadata included in API responses.
    Useful for debugging and correlating with server logs.
    """
    request_id: Optional[str] = Field(None, description="Request trace ID for debugging")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Response timestamp")
    version: str = Field(default="v1", description="API version")


class APIResponse(BaseModel, Generic[T]):
    """
    Standard success response wrapper.

    Usage:
        @router.post("/leads/{lead_id}/complete")
        async def complete(request: Request, lead_id: str) -> APIResponse[LeadOut]:
            lead = workflow.complete_lead(lead_id)
            return APIResponse(
                data=LeadOut.model_validate(lead),
                meta=APIMetadata(request_id=request.state.trace_id)
            )
    """
    success: bool = Field(True, description="Indicates successful operation")
    data: T = Field(..., description="Response payload")
    meta: Optional[APIMetadata] = Field(None, description="Response metadata")
    message: Optional[str] = Field(None, description="Optional human-readable message")


class ErrorResponse(BaseModel):
    """
    Shape of a workflow rejection as documented in the OpenAPI schema.

    The runtime body is an RFC-7807 problem document carrying the same
    ``error_code`` and ``details`` extensions.
    """
    type: str = Field(..., description="Problem type URI")
    title: str = Field(..., description="Short error title")
    detail: str = Field(..., description="Human-readable error message")
    status: int = Field(..., description="HTTP status code")
    error_code: Optional[str] = Field(None, description="Machine-readable error code (UPPER_SNAKE_CASE)")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    trace_id: Optional[str] = Field(None, description="Request ID for debugging")

    class Config:
        json_schema_extra = {
            "example": {
                "type": "urn:leadhub:error:duplicate_assignment",
                "title": "Duplicate Assignment",
                "detail": "Partner BAS-MOV-123456 already holds an active assignment on MOV-250101-AB12",
                "status": 409,
                "error_code": "DUPLICATE_ASSIGNMENT",
                "details": {"lead_id": "MOV-250101-AB12", "partner_id": "BAS-MOV-123456"},
                "trace_id": "4f7b0a0e-8d7c-4a55-9f5e-0c1f7c1c0b1a"
            }
        }


class PaginationMeta(BaseModel):
    """Pagination metadata."""
    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number (1-indexed)")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")

    @classmethod
    def build(cls, total: int, page: int, page_size: int) -> "PaginationMeta":
        return cls(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size,
            has_next=page * page_size < total,
            has_prev=page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated list response."""
    success: bool = Field(True, description="Always true for successful pagination")
    items: List[T] = Field(..., description="List of items for current page")
    meta: PaginationMeta = Field(..., description="Pagination metadata")


class HealthCheckResponse(BaseModel):
    """Standard health check response."""
    status: str = Field(..., description="Service status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str = Field(default="v1")
    checks: Dict[str, str] = Field(..., description="Individual component health checks")
