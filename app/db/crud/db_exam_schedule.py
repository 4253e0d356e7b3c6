"""
CRUD operations for ExamSchedule model
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.exam_schedule import ExamSchedule

logger = logging.getLogger(__name__)

CANONICAL_DATA_SOURCES = {"official_only", "internal_only", "combined", "manual"}

# 이전 파싱 도구가 남긴 출처 값 → 현재 4가지 값
LEGACY_DATA_SOURCES = {
    "crawled_grouped": "combined",
    "comprehensive_match": "combined",
    "image_internal": "combined",
    "image_crawled": "combined",
    "crawled_internal": "combined",
    "image_only": "official_only",
    "crawled_only": "official_only",
    "official_crawled": "official_only",
}

_WRITABLE_FIELDS = (
    "year",
    "exam_type",
    "session_number",
    "session_range",
    "registration_start",
    "registration_end",
    "exam_date",
    "exam_time_start",
    "exam_time_end",
    "locations",
    "internal_deadline_date",
    "internal_deadline_time",
    "notice_date",
    "notice_time",
    "data_source",
    "notes",
    "combined_notes",
)


def normalize_data_source(value: Optional[str]) -> str:
    """출처 값을 official_only/internal_only/combined/manual 중 하나로 (모르는 값은 combined)"""
    value = getattr(value, "value", value)
    if not value:
        return "combined"
    if value in CANONICAL_DATA_SOURCES:
        return value
    mapped = LEGACY_DATA_SOURCES.get(value)
    if mapped is None:
        logger.warning(f"알 수 없는 data_source '{value}' → combined 로 저장")
        return "combined"
    return mapped


def _to_columns(values: Dict[str, Any]) -> Dict[str, Any]:
    columns = {}
    for key in _WRITABLE_FIELDS:
        if key not in values:
            continue
        value = values[key]
        # str Enum 은 값으로 저장
        columns[key] = getattr(value, "value", value)
    if "data_source" in columns:
        columns["data_source"] = normalize_data_source(columns["data_source"])
    if "locations" in columns and columns["locations"] is None:
        columns["locations"] = []
    return columns


def _sync_internal_deadline_flag(schedule: ExamSchedule) -> None:
    schedule.has_internal_deadline = schedule.internal_deadline_date is not None


def get_exam_schedules(
    db: Session,
    year: Optional[int] = None,
    exam_type: Optional[str] = None,
) -> List[ExamSchedule]:
    """
    시험일정 목록 조회 (시험일 → 차수 순)

    Args:
        db: Database session
        year: 연도 필터 (None이면 전체)
        exam_type: 시험 종류 필터 (None이면 전체)

    Returns:
        List of ExamSchedule objects
    """
    query = db.query(ExamSchedule)
    if year is not None:
        query = query.filter(ExamSchedule.year == year)
    if exam_type:
        query = query.filter(ExamSchedule.exam_type == getattr(exam_type, "value", exam_type))

    return query.order_by(
        ExamSchedule.year,
        ExamSchedule.exam_date.is_(None),
        ExamSchedule.exam_date,
        ExamSchedule.session_number,
    ).all()


def get_exam_schedule_by_id(db: Session, schedule_id: str) -> Optional[ExamSchedule]:
    return db.query(ExamSchedule).filter(ExamSchedule.id == schedule_id).first()


def get_exam_schedule_by_key(
    db: Session,
    year: int,
    exam_type: str,
    session_number: int,
) -> Optional[ExamSchedule]:
    """(year, exam_type, session_number) 로 단건 조회"""
    return db.query(ExamSchedule)\
        .filter(
            ExamSchedule.year == year,
            ExamSchedule.exam_type == getattr(exam_type, "value", exam_type),
            ExamSchedule.session_number == session_number,
        )\
        .first()


def create_exam_schedule(db: Session, values: Dict[str, Any]) -> ExamSchedule:
    schedule = ExamSchedule(**_to_columns(values))
    if schedule.locations is None:
        schedule.locations = []
    _sync_internal_deadline_flag(schedule)
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def update_exam_schedule(db: Session, schedule: ExamSchedule, values: Dict[str, Any]) -> ExamSchedule:
    """전달된 필드만 반영 (has_internal_deadline 은 마감일 기준으로 다시 계산)"""
    for key, value in _to_columns(values).items():
        setattr(schedule, key, value)
    _sync_internal_deadline_flag(schedule)
    schedule.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(schedule)
    return schedule


def delete_exam_schedule(db: Session, schedule: ExamSchedule) -> None:
    db.delete(schedule)
    db.commit()


def bulk_create_exam_schedules(db: Session, values_list: List[Dict[str, Any]]) -> List[ExamSchedule]:
    """여러 건을 한 트랜잭션으로 등록 (하나라도 실패하면 전체 롤백)"""
    schedules = []
    try:
        for values in values_list:
            schedule = ExamSchedule(**_to_columns(values))
            if schedule.locations is None:
                schedule.locations = []
            _sync_internal_deadline_flag(schedule)
            db.add(schedule)
            schedules.append(schedule)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for schedule in schedules:
        db.refresh(schedule)
    return schedules


def upsert_exam_schedule(db: Session, values: Dict[str, Any]) -> Tuple[ExamSchedule, bool]:
    """
    (year, exam_type, session_number) 기준 upsert

    Returns:
        (ExamSchedule, created 여부)
    """
    existing = get_exam_schedule_by_key(
        db, values["year"], values["exam_type"], values["session_number"]
    )
    if existing is None:
        return create_exam_schedule(db, values), True
    return update_exam_schedule(db, existing, values), False
