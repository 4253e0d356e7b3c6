"""
공식 시험일정 + 내부 마감일정 통합

1) 공식 일정(차수 있음) 1건당 통합 일정 1건
   - 같은 시험 종류이고 session_numbers 에 차수가 포함된 첫 번째 내부 마감과 결합 → combined
   - 결합할 내부 마감이 없으면 → official_only
2) 내부 마감의 차수 중 1)의 결과에 아직 없는 차수 → internal_only

2)의 "이미 생성됨" 판정은 별도 매칭 집합 없이 1)의 결과에서 다시 계산한다.
"""
import logging
from typing import Dict, List, Optional, Tuple

from app.schemas.schemas_exam_schedule import (
    CanonicalSchedule,
    DataSource,
    InternalDeadline,
    OfficialSession,
)

logger = logging.getLogger(__name__)

DEFAULT_OFFICIAL_NOTE = "공식 시험일정"
NOTES_SEPARATOR = " | "


def join_notes(*parts: Optional[str]) -> str:
    return NOTES_SEPARATOR.join(part.strip() for part in parts if part and part.strip())


def merge_duplicate_officials(officials: List[OfficialSession]) -> List[OfficialSession]:
    """
    같은 (year, exam_type, session_number) 공식 일정을 하나로 합친다

    - locations / region_codes 는 합집합
    - 나머지 필드는 먼저 나온 값 중 None 이 아닌 값
    - notes 는 중복 없이 " | " 로 연결
    """
    merged: Dict[Tuple[int, str, int], OfficialSession] = {}
    order: List[Tuple[int, str, int]] = []

    for official in officials:
        key = (official.year, official.exam_type.value, official.session_number)
        current = merged.get(key)
        if current is None:
            merged[key] = official.model_copy(deep=True)
            order.append(key)
            continue

        logger.info(f"중복 공식 일정 병합: {key[0]}년 {key[1]} {key[2]}차")
        data = current.model_dump()
        for name in ("registration_start", "registration_end", "exam_date", "result_date"):
            if data[name] is None:
                data[name] = getattr(official, name)

        note_parts = current.notes.split(NOTES_SEPARATOR) if current.notes else []
        if official.notes and official.notes not in note_parts:
            note_parts.append(official.notes)

        data["locations"] = current.locations + official.locations
        data["region_codes"] = sorted(set(current.region_codes) | set(official.region_codes))
        data["notes"] = join_notes(*note_parts)
        merged[key] = OfficialSession.model_validate(data)

    return [merged[key] for key in order]


def _find_internal(official: OfficialSession, internals: List[InternalDeadline]) -> Optional[InternalDeadline]:
    matches = [
        internal for internal in internals
        if internal.year == official.year
        and internal.exam_type == official.exam_type
        and official.session_number in internal.session_numbers
    ]
    if len(matches) > 1:
        logger.warning(
            f"{official.exam_type.value} {official.session_number}차에 내부 마감 {len(matches)}건이 겹칩니다 "
            f"- 첫 번째 항목({matches[0].session_range}) 사용"
        )
    return matches[0] if matches else None


def _from_official(official: OfficialSession, internal: Optional[InternalDeadline]) -> CanonicalSchedule:
    official_notes = official.notes or DEFAULT_OFFICIAL_NOTE
    schedule = CanonicalSchedule(
        year=official.year,
        exam_type=official.exam_type,
        session_number=official.session_number,
        registration_start=official.registration_start,
        registration_end=official.registration_end,
        exam_date=official.exam_date,
        exam_time_start=official.exam_time_start,
        exam_time_end=official.exam_time_end,
        locations=official.locations,
        notes=official_notes,
        data_source=DataSource.OFFICIAL_ONLY,
        combined_notes=join_notes(official_notes),
    )
    if internal is None:
        return schedule

    return schedule.model_copy(update={
        "session_range": internal.session_range or None,
        "internal_deadline_date": internal.deadline_date,
        "internal_deadline_time": internal.deadline_time,
        "notice_date": internal.notice_date,
        "notice_time": internal.notice_time,
        "has_internal_deadline": True,
        "data_source": DataSource.COMBINED,
        "combined_notes": join_notes(official_notes, internal.notes),
    })


def _from_internal(internal: InternalDeadline, session_number: int) -> CanonicalSchedule:
    return CanonicalSchedule(
        year=internal.year,
        exam_type=internal.exam_type,
        session_number=session_number,
        session_range=internal.session_range or None,
        locations=[],
        internal_deadline_date=internal.deadline_date,
        internal_deadline_time=internal.deadline_time,
        notice_date=internal.notice_date,
        notice_time=internal.notice_time,
        has_internal_deadline=True,
        data_source=DataSource.INTERNAL_ONLY,
        notes=internal.notes,
        combined_notes=join_notes(internal.notes),
    )


def split_unnumbered(officials: List[OfficialSession]) -> Tuple[List[OfficialSession], List[OfficialSession]]:
    """(차수 있는 공식 일정, 차수 없는 공식 일정)"""
    numbered = [official for official in officials if official.session_number is not None]
    unnumbered = [official for official in officials if official.session_number is None]
    return numbered, unnumbered


def reconcile(
    officials: List[OfficialSession],
    internals: List[InternalDeadline],
) -> List[CanonicalSchedule]:
    """
    공식 일정과 내부 마감일정을 통합 일정으로 변환

    Args:
        officials: 공식 일정 (차수 없는 항목은 로그만 남기고 제외)
        internals: 내부 마감일정

    Returns:
        통합 일정 목록 (공식 일정 순서 → internal_only 순서)
    """
    numbered, unnumbered = split_unnumbered(officials)
    if unnumbered:
        logger.warning(f"차수가 없는 공식 일정 {len(unnumbered)}건은 통합에서 제외")

    schedules = [
        _from_official(official, _find_internal(official, internals))
        for official in merge_duplicate_officials(numbered)
    ]

    # 두 번째 패스: 이미 생성된 (year, exam_type, session_number) 는 건너뛴다
    for internal in internals:
        for session_number in internal.session_numbers:
            already_emitted = any(
                schedule.year == internal.year
                and schedule.exam_type == internal.exam_type
                and schedule.session_number == session_number
                for schedule in schedules
            )
            if not already_emitted:
                schedules.append(_from_internal(internal, session_number))

    combined = sum(1 for schedule in schedules if schedule.data_source == DataSource.COMBINED)
    logger.info(
        f"일정 통합 완료: 전체 {len(schedules)}건 (combined {combined}건, "
        f"공식 {len(numbered)}건, 내부 {len(internals)}건)"
    )
    return schedules
