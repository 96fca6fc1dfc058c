"""
Ingestion DTOs
==============

Row and report models of the bulk upload API.

Rows arrive from spreadsheets: every field is optional text at the schema
level so that one bad row becomes a row error instead of rejecting the whole
batch. Keys are accepted in camelCase or snake_case.
"""

from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IngestionRow(BaseModel):
    """One spreadsheet row. Blank cells are treated as absent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    # Person
    person_document: Optional[str] = None
    person_first_names: Optional[str] = None
    person_last_names: Optional[str] = None
    person_email: Optional[str] = None

    # SLA policy
    sla_code: Optional[str] = None
    sla_description: Optional[str] = None
    sla_threshold_days: Optional[str] = None
    sla_request_type: Optional[str] = None

    # Role tag
    role_name: Optional[str] = None
    role_tech_block: Optional[str] = None
    role_description: Optional[str] = None

    # Request
    submitted_date: Optional[str] = None
    closed_date: Optional[str] = None
    summary: Optional[str] = None
    origin: Optional[str] = None
    request_state: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def normalize_cell(cls, v: Any) -> Optional[str]:
        """Trim text, map blanks to None and accept numbers as text."""
        if v is None:
            return None
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        if isinstance(v, (int, float)):
            return str(v)
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    REQUIRED_FIELDS: ClassVar[Dict[str, str]] = {
        "person_document": "person document",
        "person_first_names": "person first names",
        "person_last_names": "person last names",
        "person_email": "person email",
        "sla_code": "SLA code",
        "sla_request_type": "SLA request type",
        "role_name": "role name",
        "role_tech_block": "role tech block",
        "submitted_date": "submitted date",
    }

    def missing_fields(self) -> List[str]:
        """Labels of required fields that are absent."""
        return [label for name, label in self.REQUIRED_FIELDS.items() if getattr(self, name) is None]


class IngestionRequestDTO(BaseModel):
    """Body of a bulk upload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    acting_user_id: int = Field(..., ge=1, description="User performing the upload")
    rows: List[Dict[str, Any]] = Field(..., description="Spreadsheet rows in order")


class IngestionRowError(BaseModel):
    """Error of one row; ``row_index`` is 1-based."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    row_index: int
    message: str


class IngestionReport(BaseModel):
    """Outcome of a bulk upload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    errors: List[IngestionRowError] = Field(default_factory=list)

    def add_error(self, row_index: int, message: str) -> None:
        self.errors.append(IngestionRowError(row_index=row_index, message=message))
        self.error_count += 1
