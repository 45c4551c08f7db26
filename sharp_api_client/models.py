from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from sharp_api_client.exceptions import MalformedResponse


class JobStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.success.value, JobStatus.failed.value})


class StatusAttributes(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    status: str
    result: Optional[Any] = None


class StatusData(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    attributes: StatusAttributes


class StatusPayload(BaseModel):
    """Body of a job status check: ``{"data": {"id": ..., "attributes": {...}}}``"""

    model_config = ConfigDict(frozen=True)

    data: StatusData

    @classmethod
    def parse(cls, raw: Any) -> "StatusPayload":
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise MalformedResponse(f"Invalid job status payload: {e}") from e

    @property
    def status(self) -> str:
        return self.data.attributes.status

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Job(BaseModel):
    """Snapshot of a job as seen by one status check"""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    status: str
    result: Optional[Any] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_pending_result(cls, values: Any) -> Any:
        # A pending job never carries a result
        if isinstance(values, dict) and values.get("status") == JobStatus.pending.value:
            values = {**values, "result": None}
        return values

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_payload(cls, payload: StatusPayload) -> "Job":
        attributes = payload.data.attributes
        return cls(
            id=payload.data.id,
            type=attributes.type,
            status=attributes.status,
            result=attributes.result,
        )

    @classmethod
    def from_status_payload(cls, raw: Any) -> "Job":
        """Builds a Job straight from a decoded status body, raising MalformedResponse on bad shape"""
        return cls.from_payload(StatusPayload.parse(raw))


class StatusResponse(BaseModel):
    status: str
    raw_response: dict
    elapsed_wait: int


class StatusPollingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # seconds between status checks; the server's Retry-After wins
    # unless use_custom_interval is set
    polling_interval: int = Field(default=10, ge=1)
    use_custom_interval: bool = False
    polling_wait: int = 180  # 3 minutes of accumulated waiting


class JobDescriptionParameters(BaseModel):
    name: str
    company_name: Optional[str] = None
    minimum_work_experience: Optional[str] = None
    minimum_education: Optional[str] = None
    employment_type: Optional[str] = None
    required_skills: Optional[List[str]] = None
    optional_skills: Optional[List[str]] = None
    country: Optional[str] = None
    remote: Optional[bool] = None
    visa_sponsored: Optional[bool] = None
    language: str = "English"

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)
