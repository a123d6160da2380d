"""Booking creation from quotations."""

from .gate import ComplianceIncomplete, JobOrderValidation, ReservationGate

__all__ = ["ComplianceIncomplete", "JobOrderValidation", "ReservationGate"]
