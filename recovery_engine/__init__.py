"""Recovery readiness scoring, alerting and training adjustment engine."""

__version__ = "0.1.0"
