"""
ExamSchedule Model
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String, Text, Time

from app.db.config.base import Base


class ExamSchedule(Base):
    """보험 설계사 자격시험 통합 일정 모델"""
    __tablename__ = "exam_schedules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), comment="일정 ID")
    year = Column(Integer, nullable=False, index=True, comment="시험 연도")
    exam_type = Column(String(20), nullable=False, index=True, comment="시험 종류 (생보/손보/제3보험)")
    session_number = Column(Integer, nullable=False, comment="차수")
    session_range = Column(String(50), nullable=True, comment="내부 마감 차수 범위 (예: 1~4차)")

    registration_start = Column(Date, nullable=True, comment="접수 시작일")
    registration_end = Column(Date, nullable=True, comment="접수 마감일")
    exam_date = Column(Date, nullable=True, index=True, comment="시험일")
    exam_time_start = Column(Time, nullable=True, comment="시험 시작 시각")
    exam_time_end = Column(Time, nullable=True, comment="시험 종료 시각")
    locations = Column(JSON, nullable=False, default=list, comment="시험 지역 (도시명 JSON 배열)")

    internal_deadline_date = Column(Date, nullable=True, comment="내부 마감일")
    internal_deadline_time = Column(Time, nullable=True, comment="내부 마감 시각")
    notice_date = Column(Date, nullable=True, comment="수험표 공지일")
    notice_time = Column(Time, nullable=True, comment="수험표 공지 시각")
    has_internal_deadline = Column(Boolean, nullable=False, default=False, comment="내부 마감 여부")

    data_source = Column(String(20), nullable=False, default="manual", comment="출처 (official_only/internal_only/combined/manual)")
    notes = Column(Text, nullable=True, comment="비고")
    combined_notes = Column(Text, nullable=True, comment="통합 비고")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, comment="생성일시")
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow, comment="수정일시")
