"""Error kinds raised by the prayer schedule service."""
from __future__ import annotations


class PrayerServiceError(RuntimeError):
    """Base class for errors surfaced by the service.

    ``status_code`` classifies the failure for the HTTP layer and
    ``public_message`` is the only text a client ever sees.
    """

    status_code = 500
    public_message = "Internal server error"


class InvalidInput(PrayerServiceError):
    status_code = 400
    public_message = "Invalid request parameters"


class LocationNotFound(PrayerServiceError):
    status_code = 404
    public_message = "Location not found"


class ProviderUnavailable(PrayerServiceError):
    """An upstream provider failed or returned unusable data."""

    status_code = 502
    public_message = "Upstream provider unavailable"


class CalculationError(PrayerServiceError):
    """Local prayer time calculation is impossible for the given date and place."""

    status_code = 500
    public_message = "Unable to calculate prayer times"


class ScheduleUnavailable(PrayerServiceError):
    status_code = 503
    public_message = "Prayer schedule unavailable"


class Cancelled(PrayerServiceError):
    status_code = 504
    public_message = "Request cancelled"
