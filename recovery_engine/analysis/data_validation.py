"""Physiological bounds validation for incoming signal readings.

Ingestion rejects out-of-range values. The scorer runs the same checks
defensively so a bad value that slipped past ingestion fails loudly instead
of producing a silently wrong readiness score.
"""

import logging
import numpy as np
from typing import Dict, Iterable, Optional
from dataclasses import dataclass, fields

from ..config import config
from ..exceptions import ValidationError
from .signals import SignalReading

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a single field check."""
    is_valid: bool
    field: Optional[str] = None
    reason: Optional[str] = None


class DataValidator:
    """Validator for HRV, sleep and resting heart rate readings."""

    def __init__(self, bounds: Optional[Dict[str, tuple]] = None):
        self.bounds = bounds or config.SIGNAL_BOUNDS

    def validate_value(self, field_name: str, value: Optional[float]) -> ValidationResult:
        """Check one value against its physiological range. None is always valid."""
        if value is None:
            return ValidationResult(True, field_name)

        if np.isnan(value) or np.isinf(value):
            return ValidationResult(False, field_name, f"{field_name} is not a finite number")

        if field_name not in self.bounds:
            return ValidationResult(True, field_name)

        lower, upper = self.bounds[field_name]
        if lower is not None and value < lower:
            return ValidationResult(
                False, field_name,
                f"{field_name}={value} below physiological minimum {lower}"
            )
        if upper is not None and value > upper:
            return ValidationResult(
                False, field_name,
                f"{field_name}={value} above physiological maximum {upper}"
            )

        return ValidationResult(True, field_name)

    def validate_reading(self, reading: SignalReading) -> None:
        """Validate every bounded numeric field of a reading.

        Raises:
            ValidationError: naming the first offending field
        """
        for f in fields(reading):
            if f.name not in self.bounds:
                continue
            result = self.validate_value(f.name, getattr(reading, f.name))
            if not result.is_valid:
                raise ValidationError(
                    result.reason,
                    field=result.field,
                    details={
                        "signal_type": reading.signal_type.value,
                        "date": reading.date.isoformat(),
                        "source": reading.source,
                    },
                )

    def validate_readings(self, readings: Iterable[SignalReading]) -> None:
        """Validate a batch, logging the full context before re-raising."""
        for reading in readings:
            try:
                self.validate_reading(reading)
            except ValidationError as e:
                logger.error(f"Rejected {reading.signal_type.value} reading: {e.message} ({e.details})")
                raise
