"""
조회 시점 기준 접수 상태 계산 (저장하지 않음)
"""
from datetime import date, datetime, time
from typing import Any, Optional

from app.schemas.schemas_exam_schedule import RegistrationStatus

END_OF_DAY = time(23, 59, 59)


def _field(record: Any, name: str):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def internal_deadline_at(deadline_date: date, deadline_time: Optional[time]) -> datetime:
    """마감 일시 (시각이 없으면 그날 23:59:59)"""
    return datetime.combine(deadline_date, deadline_time or END_OF_DAY)


def evaluate_status(record: Any, now: Optional[datetime] = None) -> RegistrationStatus:
    """
    접수 상태 판정 (위에서부터 먼저 맞는 규칙 적용)

    1. 내부 마감 있음: 마감 전 → internal_open (당일이면 "내부 마감 당일"), 이후 → internal_closed
    2. 접수 시작/마감일 중 하나라도 없음 → no_schedule
    3. 오늘 날짜가 접수기간 이전/안/이후 → upcoming / open / closed

    Args:
        record: CanonicalSchedule, ExamSchedule ORM 객체 또는 dict
        now: 기준 시각 (기본값: 현재 시각)
    """
    now = now or datetime.now()
    deadline_date = _field(record, "internal_deadline_date")

    if _field(record, "has_internal_deadline") and deadline_date:
        deadline = internal_deadline_at(deadline_date, _field(record, "internal_deadline_time"))
        if now < deadline:
            if now.date() == deadline_date:
                return RegistrationStatus(code="internal_open", label="내부 마감 당일")
            return RegistrationStatus(code="internal_open", label="내부 접수중")
        return RegistrationStatus(code="internal_closed", label="내부 마감")

    start = _field(record, "registration_start")
    end = _field(record, "registration_end")
    if start is None or end is None:
        return RegistrationStatus(code="no_schedule", label="일정 미정")

    today = now.date()
    if today < start:
        return RegistrationStatus(code="upcoming", label="접수 예정")
    if today <= end:
        return RegistrationStatus(code="open", label="접수 중")
    return RegistrationStatus(code="closed", label="접수 마감")


def days_until(deadline_date: Optional[date], today: Optional[date] = None) -> Optional[str]:
    """마감까지 남은 일수 문구 (시각은 무시하고 날짜 차이로 계산)"""
    if deadline_date is None:
        return None
    today = today or date.today()
    days = (deadline_date - today).days
    if days > 0:
        return f"{days}일 남음"
    if days == 0:
        return "오늘 마감"
    return "마감됨"
