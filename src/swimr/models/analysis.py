"""Analysis result returned by the remote scoring service.

Only the fields the engine reads are typed; the rest of the scoring
document (sentiment, skills, red flags, agent metrics, ...) is kept
verbatim so it can be copied into candidate records.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RECOMMENDATION = "maybe"


class OverallScore(BaseModel):
    """Composite score block of an analysis result."""

    composite_score: Optional[float] = None
    recommendation: Optional[str] = None
    improvement_suggestions: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class AnalysisResult(BaseModel):
    """Structured scoring document for one CV."""

    candidate_name: Optional[str] = None
    email: Optional[str] = None
    summary: Optional[str] = None
    overall_score: Optional[OverallScore] = None

    model_config = ConfigDict(extra="allow")

    @property
    def composite_score(self) -> float:
        """Composite score, defaulting to 0 when absent."""
        if self.overall_score is None or self.overall_score.composite_score is None:
            return 0
        return self.overall_score.composite_score

    @property
    def recommendation(self) -> str:
        """Recommendation, defaulting to "maybe" when absent."""
        if self.overall_score is None or not self.overall_score.recommendation:
            return DEFAULT_RECOMMENDATION
        return self.overall_score.recommendation
