"""Event Schemas — Pydantic models for the validation request/result streams.

Invariants:
    - ValidationRequest.correlation_key is a UUID, subject_id is non-empty after strip
    - ValidationResult.outcome is never pending: a result always carries a verdict
    - parse_* raise MalformedMessageError, never pydantic.ValidationError

Design Decisions:
    - One JSON document per stream entry (field `payload`): the wire shape is the
      model's JSON, no per-field string coercion
    - extra="ignore": producers may add fields without breaking consumers
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bookswap.core.domain_types import FactType, ValidationStatus
from bookswap.core.errors import MalformedMessageError


class ValidationRequest(BaseModel):
    """Asks one fact checker to confirm that a subject exists."""
    model_config = ConfigDict(extra="ignore")

    correlation_key: UUID
    subject_id: str = Field(min_length=1, max_length=64)

    @field_validator("subject_id", mode="before")
    @classmethod
    def strip_subject(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            v = v.strip()
        return v


class ValidationResult(BaseModel):
    """Verdict emitted by a fact checker after its slot is durable."""
    model_config = ConfigDict(extra="ignore")

    correlation_key: UUID
    fact_type: FactType
    outcome: ValidationStatus

    @field_validator("outcome")
    @classmethod
    def reject_pending(cls, v: ValidationStatus) -> ValidationStatus:
        if v is ValidationStatus.PENDING:
            raise ValueError("a validation result cannot be pending")
        return v


def parse_request(payload: str) -> ValidationRequest:
    """Decode a request entry or raise MalformedMessageError."""
    try:
        return ValidationRequest.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedMessageError(
            f"Invalid validation request: {e.error_count()} error(s)", payload,
        )


def parse_result(payload: str) -> ValidationResult:
    """Decode a result entry or raise MalformedMessageError."""
    try:
        return ValidationResult.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedMessageError(
            f"Invalid validation result: {e.error_count()} error(s)", payload,
        )
