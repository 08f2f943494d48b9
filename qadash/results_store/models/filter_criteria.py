"""Filter criteria accepted by every read operation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from qadash.results_store.models.test_result import as_utc


class FilterCriteria(BaseModel):
    """Query over stored test results. Unset fields do not constrain."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: datetime | None = Field(
        default=None, alias="startDate", description="Inclusive lower bound"
    )
    end_date: datetime | None = Field(
        default=None, alias="endDate", description="Inclusive upper bound"
    )
    status: str | None = Field(default=None, description="Exact status")
    team_member: str | None = Field(
        default=None, alias="teamMember", description="Exact team member name"
    )
    project: str | None = Field(default=None, description="Exact project name")
    search_term: str | None = Field(
        default=None, alias="searchTerm", description="Free-text search"
    )

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_bounds(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)

    def active_dimensions(self) -> frozenset[str]:
        """Names of the fields that constrain the query."""
        return frozenset(
            name
            for name in type(self).model_fields
            if getattr(self, name) not in (None, "")
        )
