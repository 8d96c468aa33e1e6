"""
Maintenance figures derived from a generator's run history.
"""
from datetime import datetime


# Reported when no service or install date is known
NEVER_SERVICED_MONTHS = 999


def hours_since_service(total_hours: float, last_service_hours: float | None) -> float:
    if last_service_hours is None:
        return total_hours
    return total_hours - last_service_hours


def months_since_service(
    last_service_date: datetime | None,
    installed_at: datetime | None,
    now: datetime,
) -> int:
    """
    Calendar months between now and the later of the last service and install dates.

    Only the year and month take part, so Jan 31 -> Feb 1 counts as one month.
    """
    known = [d for d in (last_service_date, installed_at) if d is not None]
    if not known:
        return NEVER_SERVICED_MONTHS

    since = max(known)
    return (now.year - since.year) * 12 + (now.month - since.month)


def is_service_due(
    total_hours: float,
    last_service_hours: float | None,
    hours_threshold: float,
    last_service_date: datetime | None,
    installed_at: datetime | None,
    months_threshold: int,
    now: datetime,
) -> bool:
    """True once either the hours or the months threshold has been reached."""
    return (
        hours_since_service(total_hours, last_service_hours) >= hours_threshold
        or months_since_service(last_service_date, installed_at, now) >= months_threshold
    )
