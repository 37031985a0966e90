"""
modules/errors.py
-----------------
Error taxonomy for the scheduling core.

ValidationError and its subclasses are recoverable: the Slot Allocator and the
Store hand them back inside a structured result so a caller can show the
reason and retry. ScheduleInvariantError is the loud one: it means the
in-memory schedule is inconsistent and must not be saved.
"""

from __future__ import annotations


class ValidationError(Exception):
    """Base class for caller-recoverable scheduling failures."""

    code: str = "validation_error"

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.context}


class DuplicateExperience(ValidationError):
    code = "duplicate_experience"


class DayCapacityExceeded(ValidationError):
    code = "day_capacity_exceeded"


class SlotConflict(ValidationError):
    code = "slot_conflict"


class SlotOutsideDay(ValidationError):
    code = "slot_outside_day"


class InvalidDayIndex(ValidationError):
    code = "invalid_day_index"


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"


class InvalidTravelMode(ValidationError):
    code = "invalid_travel_mode"


class IncompleteExperienceData(ValidationError):
    code = "incomplete_experience_data"


class UnsupportedExportFormat(ValidationError):
    code = "unsupported_export_format"


class ItineraryNotFound(ValidationError):
    code = "itinerary_not_found"


class ScheduleInvariantError(AssertionError):
    """Internal inconsistency (e.g. a day whose date does not match its index)."""
