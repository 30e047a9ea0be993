"""Tests for moving appointments and series."""

from datetime import date, time
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationException
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.appointments import MoveRequest, MoveScope
from app.services.audit_service import AuditService
from app.services.conflict_service import ConflictService
from app.services.move_service import MoveService

ACTOR = "staff-reception-1"
SERIES = "series-physio-july"


@pytest.fixture
async def weekly_series(make_appointment: Any) -> list[Any]:
    """Three weekly sessions on Mondays in July 2024 at 09:00."""
    return [
        await make_appointment(date=day, series_id=SERIES)
        for day in (date(2024, 7, 1), date(2024, 7, 8), date(2024, 7, 15))
    ]


@pytest.mark.asyncio
async def test_move_series_shifts_every_member(
    db_session: AsyncSession,
    weekly_series: list[Any],
) -> None:
    """Dragging the first session one day later moves the whole series."""
    first = weekly_series[0]

    result = await MoveService(db_session, ACTOR).move_series(
        first.id, date(2024, 7, 2), time(15, 0)
    )

    assert result.applied
    assert result.scope == MoveScope.SERIES
    assert result.day_offset == 1
    assert result.series_size == 3
    assert not result.has_conflicts

    members = await AppointmentRepository(db_session).list_series(SERIES)
    assert [m.date for m in members] == [date(2024, 7, 2), date(2024, 7, 9), date(2024, 7, 16)]
    assert {m.start_time for m in members} == {time(15, 0)}

    before = {m.id: m for m in weekly_series}
    for member in members:
        original = before[member.id]
        assert member.patient_id == original.patient_id
        assert member.professional_id == original.professional_id
        assert member.duration_minutes == original.duration_minutes
        assert member.status == original.status
        assert member.series_id == SERIES


@pytest.mark.asyncio
async def test_move_series_from_a_later_member(
    db_session: AsyncSession,
    weekly_series: list[Any],
) -> None:
    """Dragging a middle member back two days shifts earlier members too."""
    await MoveService(db_session, ACTOR).move_series(weekly_series[1].id, date(2024, 7, 6))

    members = await AppointmentRepository(db_session).list_series(SERIES)
    assert [m.date for m in members] == [date(2024, 6, 29), date(2024, 7, 6), date(2024, 7, 13)]
    assert {m.start_time for m in members} == {time(9, 0)}


@pytest.mark.asyncio
async def test_move_one_detaches_only_the_moved_member(
    db_session: AsyncSession,
    weekly_series: list[Any],
) -> None:
    """Moving a single occurrence takes it out of the series."""
    moved = weekly_series[1]

    result = await MoveService(db_session, ACTOR).move_one(
        moved.id, date(2024, 7, 9), time(11, 0)
    )

    assert result.applied
    assert result.scope == MoveScope.SINGLE
    assert result.appointments[0].series_id is None
    assert result.appointments[0].date == date(2024, 7, 9)
    assert result.appointments[0].start_time == time(11, 0)

    remaining = await AppointmentRepository(db_session).list_series(SERIES)
    assert [m.id for m in remaining] == [weekly_series[0].id, weekly_series[2].id]
    assert [m.date for m in remaining] == [date(2024, 7, 1), date(2024, 7, 15)]

    events = await AuditService(db_session).list_events(moved.id)
    assert [e.event_type for e in events] == ["moved", "detached_from_series"]


@pytest.mark.asyncio
async def test_move_one_keeps_time_when_omitted(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """Without a new time only the date changes."""
    appointment = await make_appointment(start_time=time(14, 30))

    result = await MoveService(db_session, ACTOR).move_one(appointment.id, date(2024, 7, 3))

    assert result.appointments[0].start_time == time(14, 30)
    assert result.appointments[0].date == date(2024, 7, 3)


@pytest.mark.asyncio
async def test_single_member_series_moves_like_one(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """A series of one is not a series."""
    lonely = await make_appointment(series_id="series-of-one")

    result = await MoveService(db_session, ACTOR).move_series(lonely.id, date(2024, 7, 5))

    assert result.applied
    assert result.scope == MoveScope.SINGLE
    assert result.series_size == 1
    assert result.appointments[0].series_id is None


@pytest.mark.asyncio
async def test_conflicting_move_is_held_until_forced(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """An overlap is reported and only written when the operator confirms."""
    moving = await make_appointment(start_time=time(9, 0))
    blocker = await make_appointment(start_time=time(14, 0))
    service = MoveService(db_session, ACTOR)

    held = await service.move_one(moving.id, date(2024, 7, 1), time(14, 30))
    assert not held.applied
    assert [c.appointment_id for c in held.conflicts] == [blocker.id]
    assert held.proposed[0].start_time == time(14, 30)

    unchanged = await AppointmentRepository(db_session).get(moving.id)
    assert unchanged.start_time == time(9, 0)
    assert await AuditService(db_session).list_events(moving.id) == []

    forced = await service.move_one(moving.id, date(2024, 7, 1), time(14, 30), force=True)
    assert forced.applied
    assert [c.appointment_id for c in forced.conflicts] == [blocker.id]
    assert forced.appointments[0].start_time == time(14, 30)

    events = await AuditService(db_session).list_events(moving.id)
    assert events[0].detail["overridden_conflicts"] == [str(blocker.id)]


@pytest.mark.asyncio
async def test_series_members_do_not_conflict_with_each_other(
    db_session: AsyncSession,
    weekly_series: list[Any],
) -> None:
    """Shifting a weekly series by one week lands on its own dates without conflict."""
    result = await MoveService(db_session, ACTOR).preview_move(
        weekly_series[0].id, date(2024, 7, 8), scope=MoveScope.SERIES
    )

    assert not result.applied
    assert not result.has_conflicts
    assert [p.date for p in result.proposed] == [
        date(2024, 7, 8),
        date(2024, 7, 15),
        date(2024, 7, 22),
    ]


@pytest.mark.asyncio
async def test_held_series_move_writes_nothing(
    db_session: AsyncSession,
    weekly_series: list[Any],
    make_appointment: Any,
) -> None:
    """One conflicting occurrence holds back the whole batch."""
    blocker = await make_appointment(date=date(2024, 7, 16), start_time=time(15, 0))

    result = await MoveService(db_session, ACTOR).move(
        weekly_series[0].id,
        MoveRequest(new_date=date(2024, 7, 2), new_time=time(15, 0), scope=MoveScope.SERIES),
    )

    assert not result.applied
    assert [c.appointment_id for c in result.conflicts] == [blocker.id]

    members = await AppointmentRepository(db_session).list_series(SERIES)
    assert [m.date for m in members] == [date(2024, 7, 1), date(2024, 7, 8), date(2024, 7, 15)]


@pytest.mark.asyncio
async def test_preview_does_not_write(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """Previews never change the calendar."""
    appointment = await make_appointment()

    result = await MoveService(db_session, ACTOR).preview_move(
        appointment.id, date(2024, 7, 10), time(8, 0)
    )

    assert not result.applied
    assert result.day_offset == 9
    stored = await AppointmentRepository(db_session).get(appointment.id)
    assert stored.date == date(2024, 7, 1)


@pytest.mark.asyncio
async def test_move_past_midnight_is_rejected(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """A 60 minute visit cannot start at 23:30."""
    appointment = await make_appointment()

    with pytest.raises(ValidationException):
        await MoveService(db_session, ACTOR).move_one(
            appointment.id, date(2024, 7, 1), time(23, 30)
        )


@pytest.mark.asyncio
async def test_concurrent_writer_between_check_and_write_is_not_detected(
    db_session: AsyncSession,
    professional: dict[str, Any],
    make_appointment: Any,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    The conflict check takes no locks, so a booking committed by another
    writer after the check is not seen and both end up overlapping.
    """
    moving = await make_appointment(start_time=time(9, 0))
    original_check_many = ConflictService.check_many

    async def check_then_other_writer_books(self: ConflictService, *args: Any, **kwargs: Any):
        report = await original_check_many(self, *args, **kwargs)
        await AppointmentRepository(db_session).create(
            {
                "patient_id": moving.patient_id,
                "patient_name": "Walk-in booked at another desk",
                "professional_id": professional["id"],
                "professional_name": professional["full_name"],
                "date": date(2024, 7, 1),
                "start_time": time(16, 0),
                "duration_minutes": 60,
                "consultation_type": "follow-up",
                "status": "scheduled",
                "amount": 0,
            }
        )
        return report

    monkeypatch.setattr(ConflictService, "check_many", check_then_other_writer_books)

    result = await MoveService(db_session, ACTOR).move_one(
        moving.id, date(2024, 7, 1), time(16, 0)
    )

    assert result.applied
    assert not result.has_conflicts

    day = await AppointmentRepository(db_session).list_for_professional_on(
        professional["id"], date(2024, 7, 1)
    )
    assert [a.start_time for a in day] == [time(16, 0), time(16, 0)]


@pytest.mark.asyncio
async def test_failed_series_move_rolls_back_every_member(
    db_session: AsyncSession,
    weekly_series: list[Any],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A write failing halfway through the batch leaves the series where it was."""
    original_update = AppointmentRepository.update
    calls = 0

    async def fail_on_second_member(
        self: AppointmentRepository, appointment_id: Any, values: dict[str, Any]
    ) -> Any:
        nonlocal calls
        calls += 1
        if calls == 2:
            raise RuntimeError("connection lost")
        return await original_update(self, appointment_id, values)

    monkeypatch.setattr(AppointmentRepository, "update", fail_on_second_member)

    with pytest.raises(RuntimeError):
        await MoveService(db_session, ACTOR).move_series(
            weekly_series[0].id, date(2024, 7, 2), time(15, 0)
        )

    members = await AppointmentRepository(db_session).list_series(SERIES)
    assert [(m.date, m.start_time) for m in members] == [
        (date(2024, 7, 1), time(9, 0)),
        (date(2024, 7, 8), time(9, 0)),
        (date(2024, 7, 15), time(9, 0)),
    ]
    assert await AuditService(db_session).list_events(weekly_series[0].id) == []
