from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, PlainSerializer, field_validator

from app.utils.date_parser import parse_time_value
from app.utils.location_normalizer import sort_cities


class ExamType(str, Enum):
    """시험 종류"""

    LIFE = "생보"
    NON_LIFE = "손보"
    THIRD = "제3보험"


class DataSource(str, Enum):
    """통합 일정의 출처"""

    OFFICIAL_ONLY = "official_only"
    INTERNAL_ONLY = "internal_only"
    COMBINED = "combined"
    MANUAL = "manual"


def _coerce_time(value: Any) -> Any:
    if isinstance(value, str):
        parsed = parse_time_value(value)
        if parsed is None:
            raise ValueError(f"인식할 수 없는 시간 형식: {value}")
        return parsed
    return value


# "HH:MM" 으로 주고받는 시각
HourMinute = Annotated[
    time,
    BeforeValidator(_coerce_time),
    PlainSerializer(lambda t: t.strftime("%H:%M"), return_type=str, when_used="json"),
]


class OfficialSession(BaseModel):
    """공식 시험일정 1건 (OCR 공지 또는 공식 사이트 크롤링)

    - session_number 는 크롤링 원본처럼 차수가 없는 경우 None
    - locations 는 항상 도시명 리스트 (그룹명은 수집 시점에 펼침)
    """

    year: int = Field(..., description="시험 연도")
    exam_type: ExamType = Field(ExamType.LIFE, description="시험 종류")
    session_number: Optional[int] = Field(None, description="차수")
    registration_start: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("registration_start", "registration_start_date"),
        description="접수 시작일",
    )
    registration_end: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("registration_end", "registration_end_date"),
        description="접수 마감일",
    )
    exam_date: Optional[date] = Field(None, description="시험일")
    exam_time_start: HourMinute = Field(time(10, 0), description="시험 시작 시각")
    exam_time_end: HourMinute = Field(time(12, 0), description="시험 종료 시각")
    locations: List[str] = Field(default_factory=list, description="시험 지역(도시명)")
    region_codes: List[str] = Field(default_factory=list, description="크롤링 지역 코드")
    result_date: Optional[date] = Field(None, description="합격자 발표일")
    notes: str = Field("", description="비고")

    class Config:
        populate_by_name = True

    @field_validator("locations")
    @classmethod
    def _dedupe_locations(cls, value: List[str]) -> List[str]:
        return sort_cities(value)


class InternalDeadline(BaseModel):
    """회사 내부 신청 마감일정 1건 (여러 차수를 묶어서 관리)"""

    year: int = Field(..., description="시험 연도")
    exam_type: ExamType = Field(ExamType.LIFE, description="시험 종류")
    session_range: str = Field("", description="차수 범위 (예: 1~4차)")
    session_numbers: List[int] = Field(default_factory=list, description="해당 차수 목록")
    deadline_date: date = Field(
        ...,
        validation_alias=AliasChoices("deadline_date", "internal_deadline_date"),
        description="내부 마감일",
    )
    deadline_time: HourMinute = Field(
        time(10, 0),
        validation_alias=AliasChoices("deadline_time", "internal_deadline_time"),
        description="내부 마감 시각",
    )
    notice_date: Optional[date] = Field(None, description="수험표 공지일")
    notice_time: Optional[HourMinute] = Field(None, description="수험표 공지 시각")
    notes: str = Field("", description="비고")

    class Config:
        populate_by_name = True

    @field_validator("session_numbers")
    @classmethod
    def _unique_sorted(cls, value: List[int]) -> List[int]:
        return sorted(set(value))


class CanonicalSchedule(BaseModel):
    """공식 일정과 내부 마감일정을 통합한 저장 단위"""

    id: Optional[str] = None
    year: int
    exam_type: ExamType
    session_number: int
    session_range: Optional[str] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    exam_date: Optional[date] = None
    exam_time_start: Optional[HourMinute] = None
    exam_time_end: Optional[HourMinute] = None
    locations: List[str] = Field(default_factory=list)
    internal_deadline_date: Optional[date] = None
    internal_deadline_time: Optional[HourMinute] = None
    notice_date: Optional[date] = None
    notice_time: Optional[HourMinute] = None
    has_internal_deadline: bool = False
    data_source: DataSource = DataSource.MANUAL
    notes: str = ""
    combined_notes: str = ""

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "year": 2025,
                "exam_type": "생보",
                "session_number": 1,
                "session_range": "1~4차",
                "registration_start": None,
                "registration_end": None,
                "exam_date": "2025-11-10",
                "exam_time_start": "10:00",
                "exam_time_end": "12:00",
                "locations": ["서울", "인천", "제주", "부산", "울산"],
                "internal_deadline_date": "2025-11-04",
                "internal_deadline_time": "11:00",
                "notice_date": "2025-11-07",
                "notice_time": "14:00",
                "has_internal_deadline": True,
                "data_source": "combined",
                "notes": "공식 시험일정",
                "combined_notes": "공식 시험일정 | 본사 자체 신청 마감일",
            }
        }

    @field_validator("locations")
    @classmethod
    def _dedupe_locations(cls, value: List[str]) -> List[str]:
        return sort_cities(value)

    @field_validator("locations", "notes", "combined_notes", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any, info) -> Any:
        if value is None:
            return [] if info.field_name == "locations" else ""
        return value


class RegistrationStatus(BaseModel):
    """조회 시점 기준 접수 상태 (저장하지 않음)"""

    code: str = Field(..., description="internal_open / internal_closed / no_schedule / upcoming / open / closed")
    label: str = Field(..., description="화면 표시 문구")


# ==================== API 요청/응답 ====================


class ExamScheduleCreate(BaseModel):
    """관리자 화면에서 직접 등록하는 일정 (data_source 기본값 manual)"""

    year: int
    exam_type: ExamType
    session_number: int
    session_range: Optional[str] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    exam_date: Optional[date] = None
    exam_time_start: Optional[HourMinute] = None
    exam_time_end: Optional[HourMinute] = None
    locations: List[str] = Field(default_factory=list)
    internal_deadline_date: Optional[date] = None
    internal_deadline_time: Optional[HourMinute] = None
    notice_date: Optional[date] = None
    notice_time: Optional[HourMinute] = None
    data_source: DataSource = DataSource.MANUAL
    notes: str = ""
    combined_notes: str = ""


class ExamScheduleUpdate(BaseModel):
    """부분 수정 (전달된 필드만 반영)"""

    year: Optional[int] = None
    exam_type: Optional[ExamType] = None
    session_number: Optional[int] = None
    session_range: Optional[str] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    exam_date: Optional[date] = None
    exam_time_start: Optional[HourMinute] = None
    exam_time_end: Optional[HourMinute] = None
    locations: Optional[List[str]] = None
    internal_deadline_date: Optional[date] = None
    internal_deadline_time: Optional[HourMinute] = None
    notice_date: Optional[date] = None
    notice_time: Optional[HourMinute] = None
    data_source: Optional[DataSource] = None
    notes: Optional[str] = None
    combined_notes: Optional[str] = None

    @field_validator("year", "exam_type", "session_number")
    @classmethod
    def _key_not_null(cls, value: Any) -> Any:
        # 키 컬럼은 생략만 가능하고 null 로 비울 수는 없다
        if value is None:
            raise ValueError("연도/시험 종류/차수는 null 로 수정할 수 없습니다.")
        return value


class ExamScheduleResponse(CanonicalSchedule):
    """조회 응답 (접수 상태는 조회 시점에 계산)"""

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    locations_display: str = ""
    registration_status: Optional[RegistrationStatus] = None
    time_until_deadline: Optional[str] = None


class BulkCreateRequest(BaseModel):
    schedules: List[ExamScheduleCreate]


class SaveParsedRequest(BaseModel):
    """파싱 결과 저장 요청 - 레코드별 오류를 보고하기 위해 dict 그대로 받는다"""

    schedules: List[Dict[str, Any]]


class CrawlRequest(BaseModel):
    year: int = Field(..., description="조회 연도", examples=[2025])
    month: int = Field(..., ge=1, le=12, description="조회 월", examples=[11])


class CrawlAndGroupRequest(CrawlRequest):
    internal_text: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("internal_text", "internalText"),
        description="내부 마감일정 텍스트",
    )
    crawled_schedules: Optional[List[Dict[str, Any]]] = Field(
        None,
        validation_alias=AliasChoices("crawled_schedules", "crawledSchedules"),
        description="이미 크롤링된 지역별 원본 행 (없으면 새로 크롤링)",
    )
    exam_type: ExamType = Field(ExamType.LIFE, description="시험 종류")


class ParseTextRequest(BaseModel):
    text: str = Field(..., description="내부 마감 텍스트", examples=["1~4차 시험접수마감: 11월 4일(화) 오전 11시"])
    year: Optional[int] = Field(None, description="기준 연도 (기본값: 올해)")
    exam_type: Optional[ExamType] = Field(None, description="시험 종류 힌트")
