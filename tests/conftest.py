"""
Shared fixtures.
"""

from datetime import time

import pytest

from availabilityfinder.domain.models import AvailabilityPreferences


@pytest.fixture
def weekday_preferences() -> AvailabilityPreferences:
    """UTC, 09:00-17:00, Saturday and Sunday off."""
    return AvailabilityPreferences(
        timezone="UTC",
        working_hours_start=time(9, 0),
        working_hours_end=time(17, 0),
        off_days=frozenset({0, 6}),
    )
