"""Recovery-based training load adjustment.

Maps a day's readiness to:
1. A TSS multiplier from a table selected by the user's aggressiveness profile
2. A workout modification category derived from that multiplier
3. An optional rest-day call evaluated against the recent score history

The scorer stores its own quick TSS multiplier with every score; this engine
recomputes the multiplier with the user's profile and explains it.
"""

from datetime import date
from typing import Iterable, List, Optional
from dataclasses import dataclass, field, replace
from enum import Enum

from ..exceptions import ComputationError
from .history import count_consecutive_days, days_since_last, index_by_date
from .types import Aggressiveness, HRVTrend, RecoveryScore

RHR_MATERIAL_DEVIATION = 5.0
POOR_READINESS = 40.0
CRITICAL_READINESS = 30.0
GOOD_READINESS = 80.0
POOR_STREAK_DAYS = 3
EXTENDED_FATIGUE_DAYS = 7

REST_ALTERNATIVE = "Active recovery: light walk, yoga, or stretching"


class AdjustmentType(Enum):
    """Workout modification categories."""
    REST_DAY = "rest_day"
    REDUCE_INTENSITY = "reduce_intensity"
    REDUCE_VOLUME = "reduce_volume"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class AdjustmentBucket:
    min_readiness: float
    factor: float
    explanation: str


# Moderate profile; other profiles shift every threshold
MODERATE_TABLE = [
    AdjustmentBucket(80.0, 1.1, "Excellent recovery - can increase load 10%"),
    AdjustmentBucket(70.0, 1.0, "Good recovery - proceed with planned workout"),
    AdjustmentBucket(60.0, 0.95, "Slightly reduced recovery - reduce load 5%"),
    AdjustmentBucket(50.0, 0.85, "Moderate recovery - reduce load 15%"),
    AdjustmentBucket(40.0, 0.7, "Poor recovery - reduce load 30%"),
    AdjustmentBucket(30.0, 0.5, "Poor recovery - strongly recommend reducing load 50%"),
]
FLOOR_BUCKET = AdjustmentBucket(0.0, 0.3, "Critical recovery - rest or very light activity, 70% reduction")

AGGRESSIVENESS_SHIFT = {
    Aggressiveness.CONSERVATIVE: 5.0,
    Aggressiveness.MODERATE: 0.0,
    Aggressiveness.AGGRESSIVE: -5.0,
}


def adjustment_table(aggressiveness: Aggressiveness) -> List[AdjustmentBucket]:
    """TSS table for a profile, ordered from highest threshold down."""
    shift = AGGRESSIVENESS_SHIFT[aggressiveness]
    return [replace(bucket, min_readiness=bucket.min_readiness + shift) for bucket in MODERATE_TABLE]


@dataclass
class WorkoutSummary:
    """A planned workout as supplied by the external training plan."""
    workout_type: str
    tss: float
    duration_minutes: int
    intensity_factor: Optional[float] = None


@dataclass
class TSSAdjustment:
    original_tss: float
    recommended_tss: float
    adjustment_factor: float
    explanation: str
    reasoning: List[str] = field(default_factory=list)


@dataclass
class WorkoutModification:
    modification_type: AdjustmentType
    intensity_scale: float
    duration_scale: float
    reasoning: str
    original_workout: Optional[WorkoutSummary] = None
    suggested_workout: Optional[WorkoutSummary] = None


@dataclass
class RestRecommendation:
    should_rest: bool
    confidence: float
    reasoning: str
    alternative_action: Optional[str] = None


@dataclass
class AdjustmentRecommendation:
    """Computed on request, never persisted by the engine itself."""
    user_id: str
    date: date
    has_recovery_data: bool
    original_tss: float
    readiness_score: Optional[float] = None
    tss_adjustment: Optional[TSSAdjustment] = None
    modification: Optional[WorkoutModification] = None
    rest_recommendation: Optional[RestRecommendation] = None

    @property
    def recommended_tss(self) -> Optional[float]:
        return self.tss_adjustment.recommended_tss if self.tss_adjustment else None

    @property
    def adjustment_factor(self) -> Optional[float]:
        return self.tss_adjustment.adjustment_factor if self.tss_adjustment else None


@dataclass
class AdjustmentDecisionLog:
    """Audit row linking a recommendation to what the user did next."""
    user_id: str
    adjustment_date: date
    original_tss: float
    recommended_tss: float
    adjustment_type: AdjustmentType
    recovery_score_id: Optional[int] = None
    adjustment_applied: bool = False
    actual_tss: Optional[float] = None
    outcome_recovery_score: Optional[float] = None
    outcome_training_quality: Optional[str] = None
    user_feedback: Optional[str] = None


class AdjustmentEngine:
    """Turns a recovery score into a training load recommendation."""

    def __init__(self, aggressiveness: Aggressiveness = Aggressiveness.MODERATE):
        self.aggressiveness = aggressiveness
        self.table = adjustment_table(aggressiveness)

    def recommend(
        self,
        user_id: str,
        target_date: date,
        original_tss: float,
        score: Optional[RecoveryScore],
        history: Iterable[RecoveryScore] = (),
        planned_workout: Optional[WorkoutSummary] = None,
    ) -> AdjustmentRecommendation:
        """Build the full recommendation for one day.

        A missing score is a normal outcome: the result carries
        has_recovery_data=False and no adjustment or rest call.
        """
        if original_tss < 0:
            raise ComputationError(
                "Planned TSS cannot be negative",
                details={"user_id": user_id, "date": target_date.isoformat(), "original_tss": original_tss},
            )

        if score is None:
            return AdjustmentRecommendation(
                user_id=user_id,
                date=target_date,
                has_recovery_data=False,
                original_tss=original_tss,
            )

        tss_adjustment = self.tss_adjustment(score, original_tss)
        return AdjustmentRecommendation(
            user_id=user_id,
            date=target_date,
            has_recovery_data=True,
            original_tss=original_tss,
            readiness_score=score.readiness_score,
            tss_adjustment=tss_adjustment,
            modification=self.workout_modification(
                tss_adjustment, score.readiness_score, planned_workout
            ),
            rest_recommendation=self.rest_recommendation(score, history),
        )

    def select_bucket(self, readiness: float) -> AdjustmentBucket:
        for bucket in self.table:
            if readiness >= bucket.min_readiness:
                return bucket
        return FLOOR_BUCKET

    def tss_adjustment(self, score: RecoveryScore, original_tss: float) -> TSSAdjustment:
        bucket = self.select_bucket(score.readiness_score)
        return TSSAdjustment(
            original_tss=original_tss,
            recommended_tss=original_tss * bucket.factor,
            adjustment_factor=bucket.factor,
            explanation=bucket.explanation,
            reasoning=self.build_reasoning(score),
        )

    @staticmethod
    def build_reasoning(score: RecoveryScore) -> List[str]:
        """Human-readable statements for the signals that were actually present."""
        reasoning = [
            f"Readiness score: {score.readiness_score:.1f}/100 ({score.recovery_status.value})"
        ]

        if score.sleep_quality_score is not None:
            reasoning.append(f"Sleep quality: {score.sleep_quality_score:.1f}/100")

        if score.hrv_trend in (HRVTrend.IMPROVING, HRVTrend.DECLINING):
            reasoning.append(f"HRV trend: {score.hrv_trend.value}")

        if score.rhr_deviation is not None and abs(score.rhr_deviation) > RHR_MATERIAL_DEVIATION:
            direction = "above" if score.rhr_deviation > 0 else "below"
            reasoning.append(f"Resting HR {direction} baseline by {abs(score.rhr_deviation):.1f}%")

        return reasoning

    @staticmethod
    def workout_modification(
        adjustment: TSSAdjustment,
        readiness: float,
        planned_workout: Optional[WorkoutSummary] = None,
    ) -> WorkoutModification:
        """Pick a modification category from the TSS factor."""
        factor = adjustment.adjustment_factor

        if factor < 0.5:
            return WorkoutModification(
                modification_type=AdjustmentType.REST_DAY,
                intensity_scale=0.0,
                duration_scale=0.0,
                reasoning=f"Recovery is critical. Rest is strongly recommended. {adjustment.explanation}",
                original_workout=planned_workout,
            )
        elif factor < 0.8:
            modification = WorkoutModification(
                modification_type=AdjustmentType.REDUCE_INTENSITY,
                intensity_scale=0.8,
                duration_scale=0.9,
                reasoning=f"Recovery is poor. Reduce intensity to allow for better adaptation. "
                          f"{adjustment.explanation}",
                original_workout=planned_workout,
            )
        elif factor < 1.0:
            modification = WorkoutModification(
                modification_type=AdjustmentType.REDUCE_VOLUME,
                intensity_scale=1.0,
                duration_scale=factor,
                reasoning=f"Recovery is moderate. Reduce volume to manage training stress. "
                          f"{adjustment.explanation}",
                original_workout=planned_workout,
            )
        else:
            note = "Load can be increased." if readiness >= GOOD_READINESS else "Proceed as planned."
            return WorkoutModification(
                modification_type=AdjustmentType.NO_CHANGE,
                intensity_scale=1.0,
                duration_scale=1.0,
                reasoning=f"Recovery is good. {note} {adjustment.explanation}",
                original_workout=planned_workout,
                suggested_workout=planned_workout,
            )

        if planned_workout is not None:
            modification.suggested_workout = WorkoutSummary(
                workout_type=planned_workout.workout_type,
                tss=adjustment.recommended_tss,
                duration_minutes=round(planned_workout.duration_minutes * modification.duration_scale),
                intensity_factor=(
                    planned_workout.intensity_factor * modification.intensity_scale
                    if planned_workout.intensity_factor is not None else None
                ),
            )
        return modification

    @staticmethod
    def rest_recommendation(
        score: RecoveryScore,
        history: Iterable[RecoveryScore] = (),
    ) -> Optional[RestRecommendation]:
        """Rest-day call, or None when no rest condition holds."""
        readiness = score.readiness_score

        by_date = index_by_date(history)
        by_date[score.score_date] = score
        merged = list(by_date.values())

        if readiness < CRITICAL_READINESS:
            return RestRecommendation(
                should_rest=True,
                confidence=0.95,
                reasoning=f"Critical recovery (readiness: {readiness:.1f}/100). "
                          f"Rest is essential to prevent overtraining.",
                alternative_action=REST_ALTERNATIVE,
            )

        poor_streak = count_consecutive_days(
            merged, score.score_date, lambda s: s.readiness_score < POOR_READINESS
        )
        if readiness < POOR_READINESS and poor_streak >= POOR_STREAK_DAYS:
            return RestRecommendation(
                should_rest=True,
                confidence=0.85,
                reasoning=f"Poor recovery for {poor_streak} consecutive days "
                          f"(current: {readiness:.1f}/100). Rest day recommended.",
                alternative_action=REST_ALTERNATIVE,
            )

        days_without_good = days_since_last(
            merged, score.score_date, lambda s: s.readiness_score >= GOOD_READINESS
        )
        if days_without_good >= EXTENDED_FATIGUE_DAYS:
            return RestRecommendation(
                should_rest=True,
                confidence=0.75,
                reasoning=f"{days_without_good} days without good recovery. "
                          f"Rest day recommended to allow full recovery.",
                alternative_action=REST_ALTERNATIVE,
            )

        return None

    @staticmethod
    def decision_log(
        recommendation: AdjustmentRecommendation,
        recovery_score_id: Optional[int] = None,
    ) -> Optional[AdjustmentDecisionLog]:
        """Audit record for a recommendation, or None when there was no data."""
        if not recommendation.has_recovery_data or recommendation.tss_adjustment is None:
            return None

        return AdjustmentDecisionLog(
            user_id=recommendation.user_id,
            adjustment_date=recommendation.date,
            original_tss=recommendation.original_tss,
            recommended_tss=recommendation.tss_adjustment.recommended_tss,
            adjustment_type=recommendation.modification.modification_type,
            recovery_score_id=recovery_score_id,
        )
