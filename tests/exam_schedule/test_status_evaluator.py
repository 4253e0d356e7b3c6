"""
접수 상태 계산 테스트

실행 방법:
    pytest tests/exam_schedule/test_status_evaluator.py -v
"""

from datetime import date, datetime, time

from app.schemas.schemas_exam_schedule import CanonicalSchedule, ExamType
from app.services.exam_schedule.status_evaluator import days_until, evaluate_status

DEADLINE = date(2025, 11, 4)


def make_schedule(**overrides) -> CanonicalSchedule:
    values = {"year": 2025, "exam_type": ExamType.LIFE, "session_number": 1}
    values.update(overrides)
    return CanonicalSchedule(**values)


class TestInternalDeadlineStatus:
    """내부 마감이 있는 일정"""

    def test_deadline_day_without_time_is_last_day(self):
        schedule = make_schedule(internal_deadline_date=DEADLINE, has_internal_deadline=True)
        status = evaluate_status(schedule, datetime(2025, 11, 4, 23, 0))

        assert status.code == "internal_open"
        assert status.label == "내부 마감 당일"

    def test_next_day_is_closed(self):
        schedule = make_schedule(internal_deadline_date=DEADLINE, has_internal_deadline=True)
        status = evaluate_status(schedule, datetime(2025, 11, 5, 0, 1))

        assert status.code == "internal_closed"

    def test_before_deadline_day(self):
        schedule = make_schedule(
            internal_deadline_date=DEADLINE,
            internal_deadline_time=time(11, 0),
            has_internal_deadline=True,
        )
        status = evaluate_status(schedule, datetime(2025, 11, 1, 9, 0))

        assert status.code == "internal_open"
        assert status.label == "내부 접수중"

    def test_after_deadline_time_same_day(self):
        schedule = make_schedule(
            internal_deadline_date=DEADLINE,
            internal_deadline_time=time(11, 0),
            has_internal_deadline=True,
        )

        assert evaluate_status(schedule, datetime(2025, 11, 4, 10, 59)).code == "internal_open"
        assert evaluate_status(schedule, datetime(2025, 11, 4, 11, 0)).code == "internal_closed"

    def test_internal_deadline_wins_over_registration_window(self):
        schedule = make_schedule(
            internal_deadline_date=DEADLINE,
            has_internal_deadline=True,
            registration_start=date(2025, 11, 1),
            registration_end=date(2025, 11, 30),
        )

        assert evaluate_status(schedule, datetime(2025, 11, 10, 9, 0)).code == "internal_closed"


class TestRegistrationWindowStatus:
    """공식 접수기간 기준 상태"""

    def test_no_schedule_when_window_missing(self):
        assert evaluate_status(make_schedule(), datetime(2025, 11, 1)).code == "no_schedule"

    def test_no_schedule_when_one_bound_missing(self):
        schedule = make_schedule(registration_start=date(2025, 10, 20))
        assert evaluate_status(schedule, datetime(2025, 11, 1)).code == "no_schedule"

    def test_window_boundaries_inclusive(self):
        schedule = make_schedule(
            registration_start=date(2025, 10, 20),
            registration_end=date(2025, 10, 24),
        )

        assert evaluate_status(schedule, datetime(2025, 10, 19, 23, 59)).code == "upcoming"
        assert evaluate_status(schedule, datetime(2025, 10, 20, 0, 0)).code == "open"
        assert evaluate_status(schedule, datetime(2025, 10, 24, 23, 59)).code == "open"
        assert evaluate_status(schedule, datetime(2025, 10, 25, 0, 0)).code == "closed"

    def test_accepts_dict_record(self):
        record = {"registration_start": date(2025, 10, 20), "registration_end": date(2025, 10, 24)}
        assert evaluate_status(record, datetime(2025, 10, 22)).label == "접수 중"


class TestDaysUntil:
    """남은 기간 문구"""

    def test_days_left(self):
        assert days_until(date(2025, 11, 4), date(2025, 11, 1)) == "3일 남음"

    def test_today(self):
        assert days_until(date(2025, 11, 4), date(2025, 11, 4)) == "오늘 마감"

    def test_passed(self):
        assert days_until(date(2025, 11, 4), date(2025, 11, 5)) == "마감됨"

    def test_no_deadline(self):
        assert days_until(None, date(2025, 11, 5)) is None
