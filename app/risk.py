"""Risk scoring logic: quick survey score and fused survey/behavior score."""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from app.models import (
    BehaviorRisk,
    FusedRiskResult,
    QuickRiskResult,
    SurveyInput,
    SurveyRisk,
)


class RiskInputError(ValueError):
    """Raised when scoring input has the wrong shape or is out of range."""


@dataclass(frozen=True)
class LabelThresholds:
    """
    Score cut-offs for the Low/Moderate/High label.

    Scores at or above ``moderate`` are at least Moderate. Scores at or above
    ``high`` are High, or strictly above it when ``high_exclusive`` is set.
    """
    name: str
    moderate: float
    high: float
    high_exclusive: bool = False


@dataclass(frozen=True)
class BlendWeights:
    """Convex weights for the survey and behavior sub-scores."""
    name: str
    survey: float
    behavior: float


# Quick-risk backend table: <40 Low, <70 Moderate, else High
QUICK_THRESHOLDS = LabelThresholds('quick', moderate=40.0, high=70.0)
# Dashboard gauge table: <33 Low, <=66 Moderate, else High
DISPLAY_THRESHOLDS = LabelThresholds('display', moderate=33.0, high=66.0, high_exclusive=True)

LABEL_THRESHOLDS = {t.name: t for t in (QUICK_THRESHOLDS, DISPLAY_THRESHOLDS)}

SURVEY_HEAVY_BLEND = BlendWeights('survey_heavy', survey=0.7, behavior=0.3)
BALANCED_BLEND = BlendWeights('balanced', survey=0.6, behavior=0.4)

BLEND_WEIGHTS = {w.name: w for w in (SURVEY_HEAVY_BLEND, BALANCED_BLEND)}

QUICK_RISK_FEATURES = ['sleep_hours', 'study_hours', 'assignments_due', 'exams_within_7d']

STRESS_QUESTIONS = [
    "I found it hard to wind down",
    "I was aware of dryness of my mouth",
    "I couldn't seem to experience any positive feeling at all",
    "I experienced breathing difficulty",
    "I found it difficult to work up the initiative to do things",
    "I tended to over-react to situations",
    "I experienced trembling (e.g. in the hands)",
]

PLACEHOLDER_SURVEY_DRIVERS = ['S1: Over-reacted easily', 'S6: Used a lot of nervous energy']

SURVEY_SCALE = 3.5
BEHAVIOR_SCALE = 5.0
MAX_DRIVERS = 2


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    """Saturate a value into [lo, hi]; bounds are inclusive."""
    return float(np.clip(value, lo, hi))


def get_risk_label(score: float, thresholds: LabelThresholds = QUICK_THRESHOLDS) -> str:
    """
    Categorize a 0-100 score into Low/Moderate/High.

    Args:
        score: Burnout score (0-100)
        thresholds: Label table to apply

    Returns:
        Risk label string
    """
    if score > thresholds.high or (not thresholds.high_exclusive and score >= thresholds.high):
        return 'High'
    elif score >= thresholds.moderate:
        return 'Moderate'
    else:
        return 'Low'


def quick_risk_drivers(survey: SurveyInput) -> List[str]:
    """Drivers in fixed evaluation order, at most two."""
    drivers = []
    if survey.study_hours > 8:
        drivers.append('High Study Hours')
    if survey.sleep_hours < 6:
        drivers.append('Low Sleep Hours')
    if survey.assignments_due > 3:
        drivers.append('Many Assignments')
    if survey.exams_within_7d > 1:
        drivers.append('Upcoming Exams')
    return drivers[:MAX_DRIVERS]


def score_quick_risk(
    survey: SurveyInput,
    thresholds: LabelThresholds = QUICK_THRESHOLDS
) -> QuickRiskResult:
    """
    Score the four daily metrics.

    raw = study*3 + assignments*5 + exams*7 - sleep*2, saturated to 0-100.
    Range checks on the inputs are the caller's job.

    Args:
        survey: Daily metrics
        thresholds: Label table to apply

    Returns:
        QuickRiskResult
    """
    raw = (
        survey.study_hours * 3
        + survey.assignments_due * 5
        + survey.exams_within_7d * 7
        - survey.sleep_hours * 2
    )
    score = clamp(raw, 0.0, 100.0)

    return QuickRiskResult(
        burnout_score=score,
        risk_label=get_risk_label(score, thresholds),
        top_drivers=quick_risk_drivers(survey),
    )


def validate_stress_answers(s_answers: Sequence[float]) -> List[int]:
    """
    Check that there are exactly 7 whole-number answers in [0, 3].

    Raises:
        RiskInputError: on wrong length or an invalid answer
    """
    answers = list(s_answers)
    if len(answers) != len(STRESS_QUESTIONS):
        raise RiskInputError(
            f"s_answers must contain exactly {len(STRESS_QUESTIONS)} answers, got {len(answers)}"
        )

    checked = []
    for idx, value in enumerate(answers):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise RiskInputError(f"s_answers[{idx}] must be a number, got {value!r}")
        if not float(value).is_integer() or not 0 <= value <= 3:
            raise RiskInputError(f"s_answers[{idx}] must be an integer from 0 to 3, got {value!r}")
        checked.append(int(value))
    return checked


def validate_behavior(behavior: Mapping[str, float]) -> Dict[str, float]:
    """
    Check that every behavioral value is a finite, non-negative number of hours.

    Raises:
        RiskInputError: on a negative or non-numeric value
    """
    checked = {}
    for key, value in behavior.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise RiskInputError(f"behavior['{key}'] must be a finite number, got {value!r}")
        if value < 0:
            raise RiskInputError(f"behavior['{key}'] must be non-negative, got {value!r}")
        checked[str(key)] = float(value)
    return checked


def survey_drivers(answers: Sequence[int], mode: str = 'ranked') -> List[str]:
    """
    Pick the survey drivers.

    ``ranked`` returns the two highest non-zero answers, lowest question number
    first on ties. ``placeholder`` returns the legacy constant pair.
    """
    if mode == 'placeholder':
        return list(PLACEHOLDER_SURVEY_DRIVERS)
    if mode != 'ranked':
        raise ValueError(f"Unknown driver mode: {mode}")

    order = sorted(range(len(answers)), key=lambda i: (-answers[i], i))
    return [
        f"S{i + 1}: {STRESS_QUESTIONS[i]}"
        for i in order[:MAX_DRIVERS]
        if answers[i] > 0
    ]


def score_behavior(behavior: Mapping[str, float]) -> BehaviorRisk:
    """Behavior sub-score: every supplied hour counts 5 points."""
    behavior_risk = clamp(sum(hours * BEHAVIOR_SCALE for hours in behavior.values()), 0.0, 100.0)
    return BehaviorRisk(
        predicted_raw=behavior_risk / BEHAVIOR_SCALE,
        behavior_risk_0_100=behavior_risk,
        features_used={key: 'provided' for key in behavior},
    )


def fuse_risk(
    s_answers: Sequence[int],
    behavior: Optional[Mapping[str, float]] = None,
    weights: BlendWeights = SURVEY_HEAVY_BLEND,
    driver_mode: str = 'ranked'
) -> FusedRiskResult:
    """
    Combine the 7-item stress survey with optional behavioral hours.

    The survey sub-score is sum*3.5, so its ceiling is 73.5. When at least one
    behavioral value is supplied the final score is the weighted blend of both
    sub-scores; otherwise it is the survey sub-score. An empty behavior mapping
    counts as no behavior.

    Args:
        s_answers: Seven answers in 0-3, in question order
        behavior: Activity name -> hours
        weights: Blend weights for the two sub-scores
        driver_mode: 'ranked' or 'placeholder'

    Returns:
        FusedRiskResult

    Raises:
        RiskInputError: on malformed answers or behavior values
    """
    answers = validate_stress_answers(s_answers)

    stress_sum = sum(answers)
    survey_risk = clamp(stress_sum * SURVEY_SCALE, 0.0, 100.0)
    survey = SurveyRisk(
        predicted_stress_score=stress_sum,
        survey_risk_0_100=survey_risk,
        top_drivers=survey_drivers(answers, driver_mode),
    )

    if not behavior:
        return FusedRiskResult(survey=survey, behavior=None, final_score_0_100=survey_risk)

    behavior_part = score_behavior(validate_behavior(behavior))
    final_score = clamp(
        survey_risk * weights.survey + behavior_part.behavior_risk_0_100 * weights.behavior,
        0.0,
        100.0
    )
    return FusedRiskResult(survey=survey, behavior=behavior_part, final_score_0_100=final_score)
