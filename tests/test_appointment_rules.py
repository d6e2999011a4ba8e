from datetime import datetime

import pytest

from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.review import Review
from agenda.models.service import Service
from agenda.services.appointment_service import (
    InvalidStatusTransition,
    can_transition,
    ensure_transition,
)
from agenda.services.stats_service import compute_business_stats

P, C, D, X = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
)


@pytest.mark.parametrize(
    "current, target",
    [(P, C), (P, X), (C, D), (C, X)],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    ensure_transition(current.value, target.value)


@pytest.mark.parametrize(
    "current, target",
    [(P, D), (P, P), (C, P), (D, X), (D, C), (X, P), (X, C), ("bogus", C), (P, "bogus")],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidStatusTransition):
        ensure_transition(current, target)


def _appt(id_, user_id, service_id, start, status):
    return Appointment(
        id=id_,
        business_id=1,
        service_id=service_id,
        user_id=user_id,
        start_time=start,
        end_time=start,
        status=status,
    )


def test_business_stats():
    services = [
        Service(id=1, business_id=1, name="Corte", duration=30, price=20.0),
        Service(id=2, business_id=1, name="Color", duration=90, price=60.0),
    ]
    appointments = [
        _appt(1, 10, 1, datetime(2026, 10, 19, 10, 0), "completed"),  # Monday
        _appt(2, 10, 2, datetime(2026, 10, 20, 10, 0), "completed"),
        _appt(3, 11, 1, datetime(2026, 10, 26, 12, 0), "cancelled"),  # Monday
        _appt(4, 12, 1, datetime(2026, 11, 2, 10, 0), "confirmed"),  # Monday
    ]
    reviews = [
        Review(id=1, appointment_id=1, business_id=1, user_id=10, rating=5),
        Review(id=2, appointment_id=2, business_id=1, user_id=10, rating=4),
    ]
    names = {10: "Ana", 11: "Beto", 12: "Ceci"}

    stats = compute_business_stats(
        appointments, services, reviews, names, now=datetime(2026, 10, 25, 0, 0)
    )

    assert stats.total_appointments == 4
    assert stats.upcoming_appointments == 2
    assert stats.past_appointments == 2
    assert stats.total_clients == 3
    assert stats.total_services == 2
    assert stats.total_revenue == 80.0
    assert stats.confirmation_rate == 25.0
    assert stats.cancellation_rate == 25.0
    assert stats.avg_duration == 60.0
    assert stats.avg_price == 40.0
    assert stats.top_service_name == "Corte"
    assert stats.top_service_count == 3
    assert stats.top_client_name == "Ana"
    assert stats.top_client_count == 2
    assert stats.peak_day == "Monday"
    assert stats.peak_hour == 10
    assert stats.new_clients == 2
    assert stats.returning_clients == 1
    assert stats.lifetime_value_avg == pytest.approx(26.67)
    assert stats.avg_rating == 4.5


def test_business_stats_empty():
    stats = compute_business_stats([], [], [], {})
    assert stats.total_appointments == 0
    assert stats.top_service_name is None
    assert stats.peak_day is None
    assert stats.avg_rating == 0
