import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from app.config.settings import settings
from app.core.exceptions import MalformedResponseError, UpstreamQuotaError
from app.schemas.schemas_exam_schedule import ExamType, InternalDeadline
from app.utils.date_parser import (
    MONTH_DAY_RE,
    format_time,
    parse_date_value,
    parse_korean_date,
    parse_korean_time,
    parse_time_value,
)
from app.utils.model.structuring_client import OpenAIStructuringClient
from app.utils.parser.common import (
    DEMO_NOTE_SUFFIX,
    ExtractionResult,
    detect_exam_type,
    resolve_exam_type,
)

logger = logging.getLogger(__name__)

INTERNAL_NOTE = "본사 자체 신청 마감일"
DEFAULT_DEADLINE_TIME = time(10, 0)
DEMO_NOTICE_TIME = time(14, 0)

SESSION_RANGE_RE = re.compile(r"(\d{1,2})\s*(?:[~\-]\s*(\d{1,2}))?\s*차")
DATE_TOKEN_RE = re.compile(r"\d{4}\s*[.-]\s*\d{1,2}\s*[.-]\s*\d{1,2}|\d{1,2}\s*월\s*\d{1,2}\s*일")

INTERNAL_SYSTEM_PROMPT = """
당신은 회사 내부 공지에 적힌 **보험 설계사 자격시험 내부 신청 마감일정** 텍스트를 분석하는 전문 AI입니다.
오직 **JSON 포맷**으로만 응답하세요.

### 1. 목표 출력 포맷 (JSON Schema)
{
  "schedules": [
    {
      "year": 2025,
      "exam_type": "생보" | "손보" | "제3보험",
      "session_range": "1~4차",
      "session_numbers": [1, 2, 3, 4],
      "internal_deadline_date": "YYYY-MM-DD",
      "internal_deadline_time": "HH:MM",
      "notice_date": "YYYY-MM-DD" | null,
      "notice_time": "HH:MM" | null,
      "notes": "본사 자체 신청 마감일"
    }
  ]
}

### 2. 핵심 추출 원칙 (Strict Rules)
1. **JSON Only:** 설명, 주석, 마크다운 없이 순수한 JSON 객체 하나만 반환합니다.
2. **차수 범위:** "1~4차" → session_numbers [1, 2, 3, 4], "5차" → [5].
3. **Date Format:** "11월 4일(화)" → "YYYY-11-04". 연도는 아래 기준 연도를 사용합니다.
4. **시간 변환 (24시간제):**
   - "오전 11시" → "11:00"
   - "오후 2시" → "14:00"
   - "오후 12시" → "12:00"
   - "오전 12시" → "00:00"
   - 시간이 없으면 "10:00"
5. **수험표 공지:** "수험표 공지" 일시가 있으면 notice_date / notice_time, 없으면 null.

### 3. 입력 데이터 처리 예시 (Few-shot)
**Input Text:** "1~4차 시험접수마감: 11월 4일(화) 오전 11시"
**Output JSON:**
{"schedules": [{"year": 2025, "exam_type": "생보", "session_range": "1~4차", "session_numbers": [1, 2, 3, 4],
"internal_deadline_date": "2025-11-04", "internal_deadline_time": "11:00", "notice_date": null,
"notice_time": null, "notes": "본사 자체 신청 마감일"}]}
"""


def expand_session_range(text: str) -> Optional[Tuple[str, List[int]]]:
    """
    "1~4차" → ("1~4차", [1, 2, 3, 4]), "5차" → ("5차", [5])

    역순 범위("4~1차")도 오름차순으로 펼친다. 차수 토큰이 없으면 None.
    """
    match = SESSION_RANGE_RE.search(text or "")
    if not match:
        return None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else start
    low, high = min(start, end), max(start, end)
    label = f"{low}~{high}차" if low != high else f"{low}차"
    return label, list(range(low, high + 1))


class InternalDeadlineExtractor:
    """
    내부 마감일정 추출기

    공식 일정 추출기와 독립적으로 동작하며 실패도 독립적으로 전파된다.
    """

    def __init__(
        self,
        client: Optional[OpenAIStructuringClient] = None,
        backend: Optional[str] = None,
    ):
        self.backend = (backend or settings.EXTRACTION_BACKEND).lower()
        self.client = client

    def _get_client(self) -> OpenAIStructuringClient:
        if self.client is None:
            self.client = OpenAIStructuringClient()
        return self.client

    def extract(
        self,
        text: str,
        year: Optional[int] = None,
        exam_type: Optional[ExamType] = None,
        today: Optional[date] = None,
    ) -> ExtractionResult[InternalDeadline]:
        """
        내부 마감 텍스트 → InternalDeadline 목록

        Args:
            text: 내부 공지 원문
            year: "M월 D일" 표기에 적용할 기준 연도
            exam_type: 시험 종류 힌트 (없으면 키워드 판별)
            today: 데모 데이터 생성 시 기준일 (테스트용)

        Raises:
            MalformedResponseError: 구조화 응답이 JSON/스키마 위반
        """
        year = year or datetime.now().year
        hinted = exam_type is not None
        exam_type = exam_type or detect_exam_type(text)

        try:
            raw_schedules = self._structure(text, year, exam_type)
        except UpstreamQuotaError:
            logger.warning("구조화 엔드포인트 할당량 소진 - 내부 마감 데모 데이터로 대체")
            return ExtractionResult(
                self.generate_demo(text, year, exam_type, today=today), used_demo_data=True
            )

        deadlines = [
            self.to_internal_deadline(raw, year, exam_type, force_exam_type=hinted)
            for raw in raw_schedules
        ]
        logger.info(f"내부 마감일정 {len(deadlines)}건 추출 ({self.backend})")
        return ExtractionResult(deadlines)

    def _structure(self, text: str, year: int, exam_type: ExamType) -> List[Dict[str, Any]]:
        if self.backend == "rules":
            return self.structure_with_rules(text, year, exam_type)
        system_prompt = (
            INTERNAL_SYSTEM_PROMPT
            + f"\n기준 연도: {year}\n기본 시험 종류: {exam_type.value}\n"
            + "이제 아래 텍스트를 분석하여 JSON 결과만 출력하세요."
        )
        return self._get_client().complete_json(system_prompt, text)

    def structure_with_rules(self, text: str, year: int, exam_type: ExamType) -> List[Dict[str, Any]]:
        """
        줄 단위 규칙 기반 구조화

        - "N~M차 ... 마감 ... M월 D일 (오전/오후 H시)" 줄 → 마감 1건
        - "수험표 ... 공지 ... M월 D일" 줄 → 직전 마감 건의 notice 로 연결
        - 한 줄에 둘 다 있으면 "수험표" 앞은 마감, 뒤는 공지로 나눠서 처리
        """
        schedules: List[Dict[str, Any]] = []

        for line in (text or "").splitlines():
            line = line.strip()
            if not line:
                continue

            deadline_part, notice_part = line, ""
            if "수험표" in line and "공지" in line:
                split_at = line.index("수험표")
                deadline_part, notice_part = line[:split_at], line[split_at:]

            deadline = self._parse_deadline(deadline_part, year, exam_type)
            if deadline is not None:
                schedules.append(deadline)

            if notice_part:
                self._attach_notice(schedules, notice_part, year)

        return schedules

    @staticmethod
    def _find_date_time(segment: str, year: int):
        """구간의 첫 날짜와 (날짜 뒤 우선) 시각 → (date_match, date, time)"""
        date_match = DATE_TOKEN_RE.search(segment)
        if not date_match:
            return None, None, None
        found_date = parse_korean_date(date_match.group(0), year)
        found_time = parse_korean_time(segment[date_match.end():]) or parse_korean_time(segment)
        return date_match, found_date, found_time

    def _parse_deadline(self, segment: str, year: int, exam_type: ExamType) -> Optional[Dict[str, Any]]:
        if "마감" not in segment:
            return None
        date_match, found_date, found_time = self._find_date_time(segment, year)
        if date_match is None:
            return None

        session = expand_session_range(segment[:date_match.start()]) or expand_session_range(segment)
        if session is None or found_date is None:
            logger.info(f"차수/날짜를 찾지 못한 마감 줄 무시: {segment}")
            return None

        session_range, session_numbers = session
        return {
            "year": year,
            "exam_type": detect_exam_type(segment, exam_type).value,
            "session_range": session_range,
            "session_numbers": session_numbers,
            "internal_deadline_date": found_date.isoformat(),
            "internal_deadline_time": format_time(found_time or DEFAULT_DEADLINE_TIME),
            "notice_date": None,
            "notice_time": None,
            "notes": INTERNAL_NOTE,
        }

    def _attach_notice(self, schedules: List[Dict[str, Any]], segment: str, year: int) -> None:
        date_match, found_date, found_time = self._find_date_time(segment, year)
        if date_match is None:
            return
        if not schedules:
            logger.info(f"마감 항목 없이 등장한 수험표 공지 무시: {segment}")
            return
        schedules[-1]["notice_date"] = found_date.isoformat() if found_date else None
        schedules[-1]["notice_time"] = format_time(found_time)

    def to_internal_deadline(
        self,
        raw: Dict[str, Any],
        year: int,
        exam_type: ExamType,
        force_exam_type: bool = False,
    ) -> InternalDeadline:
        """구조화 결과 1건을 InternalDeadline으로 변환 (스키마 위반이면 MalformedResponseError)"""
        try:
            record_year = int(raw.get("year") or year)
            session_range = raw.get("session_range") or ""
            session_numbers = [int(n) for n in raw.get("session_numbers") or []]
            if not session_numbers and session_range:
                expanded = expand_session_range(session_range)
                if expanded:
                    session_range, session_numbers = expanded

            deadline_date = parse_date_value(
                raw.get("internal_deadline_date") or raw.get("deadline_date"), record_year
            )
            if deadline_date is None:
                raise ValueError("internal_deadline_date 누락")

            deadline_time = parse_time_value(raw.get("internal_deadline_time") or raw.get("deadline_time"))

            return InternalDeadline(
                year=record_year,
                exam_type=exam_type if force_exam_type else resolve_exam_type(raw.get("exam_type"), exam_type),
                session_range=session_range,
                session_numbers=session_numbers,
                deadline_date=deadline_date,
                deadline_time=deadline_time or DEFAULT_DEADLINE_TIME,
                notice_date=parse_date_value(raw.get("notice_date"), record_year),
                notice_time=parse_time_value(raw.get("notice_time")),
                notes=raw.get("notes") or INTERNAL_NOTE,
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise MalformedResponseError(f"내부 마감 항목이 스키마와 맞지 않습니다: {e}") from e

    def generate_demo(
        self,
        text: str,
        year: int,
        exam_type: Optional[ExamType] = None,
        today: Optional[date] = None,
    ) -> List[InternalDeadline]:
        """
        할당량 소진 시 데모 마감일정 1건

        텍스트의 첫 "M월 D일"을 마감일로, 없으면 오늘 + 7일로 추정한다.
        수험표 공지는 마감 3일 후 14:00.
        """
        text = text or ""
        today = today or date.today()

        deadline_date = None
        match = MONTH_DAY_RE.search(text)
        if match:
            deadline_date = parse_korean_date(match.group(0), year)
        if deadline_date is None:
            deadline_date = today + timedelta(days=7)

        session_range, session_numbers = expand_session_range(text) or ("1차", [1])

        return [
            InternalDeadline(
                year=year,
                exam_type=exam_type or detect_exam_type(text),
                session_range=session_range,
                session_numbers=session_numbers,
                deadline_date=deadline_date,
                deadline_time=parse_korean_time(text) or DEFAULT_DEADLINE_TIME,
                notice_date=deadline_date + timedelta(days=3),
                notice_time=DEMO_NOTICE_TIME,
                notes=f"{INTERNAL_NOTE} {DEMO_NOTE_SUFFIX}",
            )
        ]
