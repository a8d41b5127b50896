"""Recommendations and insights derived from a single day's recovery score."""

import logging
from typing import List, Optional
from dataclasses import dataclass, field

from ..exceptions import InsufficientDataError
from .types import AlertRecommendation, Baseline, HRVTrend, RecoveryScore

logger = logging.getLogger(__name__)

SUBOPTIMAL_SLEEP_QUALITY = 70.0
CRITICAL_READINESS = 30.0
POOR_READINESS = 50.0
EXCELLENT_READINESS = 85.0


@dataclass
class RecoveryInsight:
    category: str
    title: str
    description: str
    impact: str  # positive, negative


@dataclass
class KeyFactor:
    factor: str
    current_value: float
    baseline_value: float
    deviation_percent: float


@dataclass
class RecoveryInsights:
    insights: List[RecoveryInsight] = field(default_factory=list)
    key_factors: List[KeyFactor] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class RecoveryStatusReport:
    """A day's score together with prioritized recommendations."""
    score: RecoveryScore
    recommendations: List[AlertRecommendation] = field(default_factory=list)


def status_recommendations(score: RecoveryScore) -> List[AlertRecommendation]:
    """Prioritized recommendations for a score. Never empty."""
    recommendations = []

    if score.hrv_trend is HRVTrend.DECLINING:
        recommendations.append(AlertRecommendation(
            priority="high",
            category="recovery",
            message="Your HRV is declining, indicating increased stress or fatigue",
            action="Consider taking a rest day or reducing training intensity by 30%",
        ))

    if score.sleep_quality_score is not None and score.sleep_quality_score < SUBOPTIMAL_SLEEP_QUALITY:
        recommendations.append(AlertRecommendation(
            priority="medium",
            category="sleep",
            message="Sleep quality is below optimal",
            action="Aim for 8+ hours of quality sleep tonight. Consider improving sleep hygiene.",
        ))

    if score.readiness_score < CRITICAL_READINESS:
        recommendations.append(AlertRecommendation(
            priority="critical",
            category="recovery",
            message="Critical recovery status detected",
            action="Take a complete rest day. Avoid any strenuous activity.",
        ))
    elif score.readiness_score >= EXCELLENT_READINESS:
        recommendations.append(AlertRecommendation(
            priority="low",
            category="training",
            message="Excellent recovery - you're ready for high-intensity training",
            action="This is a good day for your hardest workout of the week.",
        ))

    if not recommendations:
        recommendations.append(AlertRecommendation(
            priority="low",
            category="general",
            message="Recovery is within normal range",
            action="Continue with your planned training schedule.",
        ))

    return recommendations


def _baseline_value(baseline: Baseline, metric: str) -> Optional[float]:
    try:
        return baseline.require(metric)
    except InsufficientDataError as e:
        logger.debug(f"No {metric} key factor for {baseline.user_id}: {e.message}")
        return None


def recovery_insights(score: Optional[RecoveryScore], baseline: Baseline) -> RecoveryInsights:
    """Explain which factors drive a score and what to do about them."""
    if score is None:
        return RecoveryInsights(
            suggestions=["Insufficient data to generate insights. Please log recovery data regularly."]
        )

    result = RecoveryInsights()

    hrv_baseline = _baseline_value(baseline, "hrv") if score.hrv_deviation is not None else None
    if hrv_baseline is not None:
        result.key_factors.append(KeyFactor(
            factor="HRV",
            current_value=hrv_baseline * (1.0 + score.hrv_deviation / 100.0),
            baseline_value=hrv_baseline,
            deviation_percent=score.hrv_deviation,
        ))

        if score.hrv_trend is HRVTrend.DECLINING:
            result.insights.append(RecoveryInsight(
                category="HRV",
                title="Declining Heart Rate Variability",
                description="Your HRV has been trending downward, indicating increased stress or fatigue.",
                impact="negative",
            ))
            result.suggestions.append(
                "Consider reducing training intensity and prioritizing recovery activities."
            )

    rhr_baseline = _baseline_value(baseline, "rhr") if score.rhr_deviation is not None else None
    if rhr_baseline is not None:
        result.key_factors.append(KeyFactor(
            factor="Resting HR",
            current_value=rhr_baseline * (1.0 + score.rhr_deviation / 100.0),
            baseline_value=rhr_baseline,
            deviation_percent=score.rhr_deviation,
        ))

    if score.sleep_quality_score is not None and score.sleep_quality_score < SUBOPTIMAL_SLEEP_QUALITY:
        result.insights.append(RecoveryInsight(
            category="Sleep",
            title="Below Optimal Sleep Quality",
            description=f"Your sleep quality score is {score.sleep_quality_score:.1f}/100, which is below optimal.",
            impact="negative",
        ))
        result.suggestions.append("Aim for 7-9 hours of quality sleep. Consider improving sleep hygiene.")

    if score.readiness_score < POOR_READINESS:
        result.insights.append(RecoveryInsight(
            category="Recovery",
            title="Poor Recovery Status",
            description="Your overall recovery is below optimal. Consider taking a rest day.",
            impact="negative",
        ))
        result.suggestions.append("Take a complete rest day or engage in very light active recovery.")
    elif score.readiness_score >= EXCELLENT_READINESS:
        result.insights.append(RecoveryInsight(
            category="Recovery",
            title="Excellent Recovery",
            description="Your recovery is optimal. You're ready for high-intensity training.",
            impact="positive",
        ))
        result.suggestions.append("This is a good day for high-intensity or long-duration training.")

    return result
