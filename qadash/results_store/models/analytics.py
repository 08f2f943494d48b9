"""Models for derived analytics."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class AnalyticsSummary(BaseModel):
    """Summary statistics over a set of test results."""

    model_config = ConfigDict(populate_by_name=True)

    total_tests: int = Field(default=0, alias="totalTests")
    passed_tests: int = Field(default=0, alias="passedTests")
    failed_tests: int = Field(default=0, alias="failedTests")
    skipped_tests: int = Field(default=0, alias="skippedTests")
    blocked_tests: int = Field(default=0, alias="blockedTests")
    other_tests: int = Field(
        default=0,
        alias="otherTests",
        description="Results whose status is outside the known values",
    )
    success_rate: float = Field(
        default=0, alias="successRate", description="Percent passed, 2 decimals"
    )
    failure_rate: float = Field(
        default=0, alias="failureRate", description="Percent failed, 2 decimals"
    )
    avg_execution_time: int = Field(default=0, alias="avgExecutionTime")
    frameworks: list[str] = Field(default_factory=list)
    projects: list[str] = Field(default_factory=list)
    team_members: list[str] = Field(default_factory=list, alias="teamMembers")
    last_updated: datetime | None = Field(
        default=None, alias="lastUpdated", description="Newest execution time"
    )


class GroupSummary(BaseModel):
    """Summary for one team member, project or framework."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., description="Group value")
    summary: AnalyticsSummary


class DailyTrend(BaseModel):
    """Status counts for one calendar day (UTC)."""

    model_config = ConfigDict(populate_by_name=True)

    day: date
    total_tests: int = Field(default=0, alias="totalTests")
    passed_tests: int = Field(default=0, alias="passedTests")
    failed_tests: int = Field(default=0, alias="failedTests")
    skipped_tests: int = Field(default=0, alias="skippedTests")
    blocked_tests: int = Field(default=0, alias="blockedTests")
