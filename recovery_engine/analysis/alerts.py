"""Recovery alert rules, cooldown-gated creation and notification delivery."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional
from dataclasses import dataclass

from ..config import config
from ..exceptions import ComputationError, DeliveryError
from .history import count_consecutive_days, index_by_date
from .types import (
    Alert,
    AlertPreferences,
    AlertRecommendation,
    AlertType,
    HRVTrend,
    RecoveryScore,
    Severity,
)

logger = logging.getLogger(__name__)

CONSECUTIVE_POOR_DAYS = 3
SUSTAINED_DECLINE_DAYS = 7
HIGH_STRAIN_READINESS = 60.0
POOR_SLEEP_QUALITY = 60.0

ALERT_TITLE = "Recovery Alert"


@dataclass
class AlertRule:
    """A single alert rule bound to a user's preferences."""
    alert_type: AlertType
    severity: Severity
    condition: Callable[[RecoveryScore, List[RecoveryScore]], bool]
    message: str
    recommendation: str
    category: str = "recovery"

    def render_message(self, score: RecoveryScore) -> str:
        return self.message.format(
            readiness=score.readiness_score,
            sleep=score.sleep_quality_score if score.sleep_quality_score is not None else 0.0,
            strain=score.training_strain if score.training_strain is not None else 0.0,
        )


def build_alert_rules(
    preferences: AlertPreferences,
    high_strain_threshold: Optional[float] = None,
) -> List[AlertRule]:
    """Build the rule set with thresholds taken from the user's preferences."""
    strain_threshold = high_strain_threshold if high_strain_threshold is not None else config.HIGH_STRAIN_THRESHOLD
    critical_threshold = preferences.critical_recovery_threshold
    poor_threshold = preferences.poor_recovery_threshold

    def is_critical(score, history):
        return score.readiness_score < critical_threshold

    def is_consecutive_poor(score, history):
        days = count_consecutive_days(
            history, score.score_date, lambda s: s.readiness_score < poor_threshold
        )
        return days >= CONSECUTIVE_POOR_DAYS

    def is_sustained_hrv_decline(score, history):
        days = count_consecutive_days(
            history, score.score_date, lambda s: s.hrv_trend is HRVTrend.DECLINING
        )
        return days >= SUSTAINED_DECLINE_DAYS

    def is_high_strain(score, history):
        return (
            score.training_strain is not None
            and score.training_strain > strain_threshold
            and score.readiness_score < HIGH_STRAIN_READINESS
        )

    def is_poor_sleep(score, history):
        return score.sleep_quality_score is not None and score.sleep_quality_score < POOR_SLEEP_QUALITY

    return [
        AlertRule(
            alert_type=AlertType.CRITICAL_RECOVERY,
            severity=Severity.CRITICAL,
            condition=is_critical,
            message="Critical recovery status detected (readiness {readiness:.1f}/100)",
            recommendation="Take a complete rest day. Avoid any strenuous activity. "
                           "Prioritize sleep and hydration.",
        ),
        AlertRule(
            alert_type=AlertType.CONSECUTIVE_POOR_RECOVERY,
            severity=Severity.WARNING,
            condition=is_consecutive_poor,
            message=f"Poor recovery for {CONSECUTIVE_POOR_DAYS}+ consecutive days "
                    "(readiness {readiness:.1f}/100)",
            recommendation="Consider reducing training intensity by 30-50%. "
                           "Focus on recovery activities.",
        ),
        AlertRule(
            alert_type=AlertType.DECLINING_HRV,
            severity=Severity.WARNING,
            condition=is_sustained_hrv_decline,
            message=f"Your HRV has been trending downward for {SUSTAINED_DECLINE_DAYS}+ days",
            recommendation="This indicates increased stress or fatigue. "
                           "Consider taking a recovery day.",
        ),
        AlertRule(
            alert_type=AlertType.HIGH_STRAIN_POOR_RECOVERY,
            severity=Severity.WARNING,
            condition=is_high_strain,
            message="High training strain ({strain:.0f}) combined with poor recovery "
                    "(readiness {readiness:.1f}/100)",
            recommendation="Risk of overtraining. Take a rest day and reassess your training load.",
            category="training",
        ),
        AlertRule(
            alert_type=AlertType.POOR_SLEEP,
            severity=Severity.INFO,
            condition=is_poor_sleep,
            message="Sleep quality is below optimal ({sleep:.1f}/100)",
            recommendation="Aim for 8+ hours of quality sleep. Review sleep hygiene practices.",
            category="sleep",
        ),
    ]


def should_push(severity: Severity, preferences: AlertPreferences) -> bool:
    """Critical alerts always push; the rest follow the user's push setting."""
    if severity is Severity.CRITICAL:
        return True
    elif severity is Severity.WARNING or severity is Severity.INFO:
        return preferences.push_enabled
    raise ComputationError(f"Unhandled severity: {severity}")


def should_email(severity: Severity, preferences: AlertPreferences) -> bool:
    """Warnings and critical alerts email when enabled. Info never emails."""
    if severity is Severity.CRITICAL or severity is Severity.WARNING:
        return preferences.email_enabled
    elif severity is Severity.INFO:
        return False
    raise ComputationError(f"Unhandled severity: {severity}")


class AlertEngine:
    """Evaluates alert rules against a score and its recent history.

    Creation goes through the store's conditional insert, which checks the
    cooldown and inserts in one transaction. Delivery failures are logged
    and never undo a created alert.
    """

    def __init__(self, store, notifier, cooldown_hours: Optional[float] = None):
        self.store = store
        self.notifier = notifier
        self.cooldown = timedelta(
            hours=cooldown_hours if cooldown_hours is not None else config.ALERT_COOLDOWN_HOURS
        )

    def triggered_rules(
        self,
        score: RecoveryScore,
        history: Iterable[RecoveryScore],
        preferences: AlertPreferences,
    ) -> List[AlertRule]:
        """Rules whose condition holds. Pure, no cooldown applied."""
        if not preferences.enabled:
            return []

        # Today's score always takes part in the history checks
        by_date = index_by_date(history)
        by_date[score.score_date] = score
        merged = list(by_date.values())

        return [rule for rule in build_alert_rules(preferences) if rule.condition(score, merged)]

    def evaluate(
        self,
        score: RecoveryScore,
        history: Iterable[RecoveryScore],
        preferences: AlertPreferences,
        now: Optional[datetime] = None,
    ) -> List[Alert]:
        """Create and deliver alerts for a score.

        Args:
            score: The (persisted) score being evaluated
            history: Recent scores for the same user
            preferences: The user's alert preferences
            now: Creation time (defaults to utcnow)

        Returns:
            Newly created alerts; empty when nothing fired or all were cooling down
        """
        if now is None:
            now = datetime.utcnow()

        created = []
        for rule in self.triggered_rules(score, history, preferences):
            alert = self._build_alert(rule, score, now)
            persisted = self.store.insert_alert_unless_recent(alert, since=now - self.cooldown)
            if persisted is None:
                logger.debug(f"Alert {rule.alert_type.value} for user {score.user_id} is in cooldown")
                continue

            logger.info(
                f"Created recovery alert {rule.alert_type.value} for user {score.user_id}: "
                f"{persisted.message}"
            )
            self._deliver(persisted, preferences)
            created.append(persisted)

        return created

    def _build_alert(self, rule: AlertRule, score: RecoveryScore, now: datetime) -> Alert:
        message = rule.render_message(score)
        return Alert(
            user_id=score.user_id,
            alert_type=rule.alert_type,
            severity=rule.severity,
            message=message,
            created_at=now,
            recommendations=[
                AlertRecommendation(
                    priority=rule.severity.priority,
                    category=rule.category,
                    message=message,
                    action=rule.recommendation,
                )
            ],
            recovery_score_id=score.id,
        )

    def _deliver(self, alert: Alert, preferences: AlertPreferences) -> None:
        if should_push(alert.severity, preferences):
            try:
                self.notifier.send_push(alert.user_id, ALERT_TITLE, alert.message)
            except DeliveryError as e:
                logger.error(f"Failed to send push notification for alert {alert.id}: {e}")

        if should_email(alert.severity, preferences):
            try:
                self.notifier.send_email(alert.user_id, ALERT_TITLE, alert.message)
            except DeliveryError as e:
                logger.error(f"Failed to send email notification for alert {alert.id}: {e}")
