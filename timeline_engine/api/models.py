"""
Pydantic Models for the Timeline Engine API.
Defines request and response schemas.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field("healthy", description="Service status")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp")


class ErrorResponse(BaseModel):
    detail: str
    field: Optional[str] = Field(None, description="Configuration field at fault")


class TriggerStatus(BaseModel):
    name: str
    cadence: str
    expression: str
    timezone: str
    armed: bool
    next_run: Optional[str] = None


class SchedulerStatusResponse(BaseModel):
    """Scheduler state and next fire time of each trigger."""
    is_running: bool
    jobs: List[TriggerStatus]


class SchedulerActionResponse(BaseModel):
    message: str
    status: SchedulerStatusResponse


class ItemFailureResponse(BaseModel):
    client_id: str
    obligation_id: str
    sub_obligation_id: Optional[str] = None
    cadence: str
    error_type: str
    message: str


class JobRunResponse(BaseModel):
    """Result of one cadence run."""
    cadence: str
    processed: int
    created: int
    failed: int
    failures: List[ItemFailureResponse] = []


class GenerationSummaryResponse(BaseModel):
    """Result of running all scheduled cadences."""
    processed: int
    created: int
    failed: int
    duration_seconds: float
    results: Dict[str, JobRunResponse]


class MaterializeRequest(BaseModel):
    sub_obligation_id: Optional[str] = Field(None, description="Restrict to one sub-obligation")


class MaterializeResponse(BaseModel):
    client_id: str
    obligation_id: str
    created: int
    results: Dict[str, JobRunResponse]


class FrequencyConfigRequest(BaseModel):
    """A cadence tag with its raw camelCase configuration."""
    frequency: str = Field(..., description="Hourly, Daily, Weekly, Monthly, Quarterly, Yearly, OneTime or None")
    frequency_config: Dict[str, Any] = Field(default_factory=dict, alias="frequencyConfig")

    model_config = ConfigDict(populate_by_name=True)


class FrequencyConfigResponse(BaseModel):
    valid: bool = True
    frequency: str
    frequency_config: Dict[str, Any] = Field(..., serialization_alias="frequencyConfig")


class FrequencyPreviewRequest(FrequencyConfigRequest):
    reference_date: Optional[str] = Field(
        None, description="ISO date inside the financial year to preview (default: today)"
    )
    limit: int = Field(50, ge=1, le=400)


class FrequencyPreviewResponse(BaseModel):
    frequency: str
    financial_year: str
    next_due_date: Optional[str] = None
    occurrences: List[str]
