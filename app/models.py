"""Data models for the ClarityCompass Risk API."""

from typing import Annotated, Optional, Dict, List, Literal
from pydantic import BaseModel, ConfigDict, Field


RiskLabel = Literal['Low', 'Moderate', 'High']

StressAnswer = Annotated[int, Field(ge=0, le=3)]
Hours = Annotated[float, Field(ge=0)]
ScorePoint = Annotated[float, Field(ge=0, le=100)]
Deadlines = Annotated[List[Hours], Field(min_length=7, max_length=7)]


class SurveyInput(BaseModel):
    """Four self-reported daily metrics for the quick risk check."""
    sleep_hours: float = Field(..., ge=0, le=24)
    study_hours: float = Field(..., ge=0, le=24)
    assignments_due: int = Field(..., ge=0)
    exams_within_7d: int = Field(..., ge=0)


class QuickRiskResult(BaseModel):
    """Quick risk score with its label and up to two drivers."""
    model_config = ConfigDict(frozen=True)

    burnout_score: ScorePoint
    risk_label: RiskLabel
    top_drivers: List[str]


class FusedPredictRequest(BaseModel):
    """Stress survey answers plus optional behavioral hours."""
    s_answers: List[StressAnswer] = Field(..., min_length=7, max_length=7)
    behavior: Optional[Dict[str, Hours]] = None


class SurveyRisk(BaseModel):
    model_config = ConfigDict(frozen=True)

    predicted_stress_score: int = Field(..., ge=0, le=21)
    survey_risk_0_100: ScorePoint
    top_drivers: List[str]


class BehaviorRisk(BaseModel):
    model_config = ConfigDict(frozen=True)

    predicted_raw: float = Field(..., ge=0, le=20)
    behavior_risk_0_100: ScorePoint
    features_used: Dict[str, Literal['provided']]


class FusedRiskResult(BaseModel):
    """Survey and behavior sub-scores and their blended final score."""
    model_config = ConfigDict(frozen=True)

    survey: SurveyRisk
    behavior: Optional[BehaviorRisk] = None
    final_score_0_100: ScorePoint


class ForecastInput(BaseModel):
    """Request body for the 7-day forecast."""
    last14: List[ScorePoint] = Field(..., min_length=14, max_length=14)
    deadlines_next7: Optional[Deadlines] = None
    alpha: float = Field(0.5, gt=0, le=1)
    deadline_weight: float = Field(2.0, ge=0)


class HistoryForecastRequest(BaseModel):
    """Forecast request whose history comes from the saved surveys."""
    deadlines_next7: Optional[Deadlines] = None
    alpha: float = Field(0.5, gt=0, le=1)
    deadline_weight: float = Field(2.0, ge=0)


class ForecastResult(BaseModel):
    """Predicted risk for the next 7 days and its upper confidence band."""
    model_config = ConfigDict(frozen=True)

    pred: List[float]
    conf: List[float]
    drivers: List[str]


class HealthResponse(BaseModel):
    status: str
    version: str


class ModelStatusResponse(BaseModel):
    """Which scoring engine is answering and with which constants."""
    using: str
    model_loaded: bool
    scaler_loaded: bool
    features: List[str]
    artifact_flags: Dict[str, bool]
    label_scheme: Optional[str] = None
    fused_blend: Optional[Dict[str, float]] = None
    driver_mode: Optional[str] = None


class SurveyHistoryItem(BaseModel):
    """One saved survey with whatever results were computed for it."""
    timestamp: str
    input: SurveyInput
    result: Optional[QuickRiskResult] = None
    fused: Optional[FusedRiskResult] = None


class SurveyHistoryResponse(BaseModel):
    items: List[SurveyHistoryItem]


class SurveySaveFullRequest(BaseModel):
    input: SurveyInput
    result: Optional[QuickRiskResult] = None
    timestamp: Optional[str] = None
    fused: Optional[FusedRiskResult] = None


class StatusMessage(BaseModel):
    status: str
    message: str
