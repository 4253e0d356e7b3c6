import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from app.config.location_groups import get_region_name
from app.config.settings import settings
from app.core.exceptions import MalformedResponseError, UpstreamQuotaError
from app.schemas.schemas_exam_schedule import ExamType, OfficialSession
from app.utils.date_parser import (
    parse_date_value,
    parse_korean_date,
    parse_time_value,
)
from app.utils.location_normalizer import normalize
from app.utils.model.structuring_client import OpenAIStructuringClient
from app.utils.parser.common import (
    DEMO_NOTE_SUFFIX,
    ExtractionResult,
    detect_exam_type,
    resolve_exam_type,
)

logger = logging.getLogger(__name__)

OFFICIAL_NOTE = "공식 시험일정"
DEFAULT_EXAM_TIME_START = "10:00"
DEFAULT_EXAM_TIME_END = "12:00"

OFFICIAL_SYSTEM_PROMPT = """
당신은 생명보험협회/손해보험협회에서 발표한 **보험 설계사 자격시험 공식 일정** 텍스트(공지 이미지 OCR 결과 포함)를 분석하여
차수별 시험일정을 추출하는 전문 AI입니다. 오직 **JSON 포맷**으로만 응답하세요.

### 1. 목표 출력 포맷 (JSON Schema)
{
  "schedules": [
    {
      "year": 2025,
      "exam_type": "생보" | "손보" | "제3보험",
      "session_number": 1,                        // 차수 (1차, 2차 ...)
      "registration_start_date": "YYYY-MM-DD" | null,
      "registration_end_date": "YYYY-MM-DD" | null,
      "exam_date": "YYYY-MM-DD",
      "exam_time_start": "HH:MM",
      "exam_time_end": "HH:MM",
      "locations": ["서울", "인천", "제주"],
      "notes": "공식 시험일정"
    }
  ]
}

### 2. 핵심 추출 원칙 (Strict Rules)
1. **JSON Only:** 설명, 주석, 마크다운 없이 순수한 JSON 객체 하나만 반환합니다.
2. **차수별 1건:** 같은 차수에 여러 지역이 있으면 하나의 객체로 합치고 locations 에 모두 넣습니다.
3. **Date Format:** "11월 4일" → "YYYY-11-04" 처럼 월/일 앞에 0을 붙입니다. 연도는 아래 기준 연도를 사용합니다.
4. **접수기간:** 정보가 없으면 registration_start_date, registration_end_date 는 null.
5. **시간 기본값:** 명시되지 않은 경우 10:00 ~ 12:00.

### 3. 지역 매핑 규칙 (중요!)
그룹명은 그대로 쓰지 말고 반드시 도시명으로 변환합니다.
- 수도권 → ["서울", "인천", "제주"]
- 영남 → ["부산", "울산"]
- 대구 → ["대구"]
- 호남 → ["광주", "전주"]
- 중부 → ["대전", "서산"]
- 원주 → ["원주", "강릉", "춘천"]
위 목록에 없는 지역(예: "사천")은 제외합니다. "서울(인천)" → ["서울", "인천"].

### 4. 입력 데이터 처리 예시 (Few-shot)
**Input Text:** "수도권 1차 11월 10일, 영남 1차 11월 10일"
**Output JSON:**
{"schedules": [{"year": 2025, "exam_type": "생보", "session_number": 1, "registration_start_date": null,
"registration_end_date": null, "exam_date": "2025-11-10", "exam_time_start": "10:00", "exam_time_end": "12:00",
"locations": ["서울", "인천", "제주", "부산", "울산"], "notes": "공식 시험일정"}]}
"""

# "수도권 1차 11월 10일", "서울(인천) 3차 2025.11.13"
SESSION_RE = re.compile(
    r"(?P<region>[가-힣]+(?:\s*\([가-힣,\s]+\))?)\s*(?P<session>\d{1,2})\s*차\s*(?:시험일?\s*:?\s*)?"
    r"(?P<date>\d{4}\s*[.-]\s*\d{1,2}\s*[.-]\s*\d{1,2}|\d{1,2}\s*월\s*\d{1,2}\s*일)"
)
TIME_RANGE_RE = re.compile(r"(\d{1,2}:\d{2})\s*[~\-]\s*(\d{1,2}:\d{2})")
REGISTRATION_RE = re.compile(
    r"접수\S*\s*:?\s*(?P<start>\d{1,2}\s*월\s*\d{1,2}\s*일|\d{4}[.-]\d{1,2}[.-]\d{1,2})"
    r"[^~\n]*~\s*(?P<end>\d{1,2}\s*월\s*\d{1,2}\s*일|\d{4}[.-]\d{1,2}[.-]\d{1,2})"
)


class OfficialScheduleExtractor:
    """
    공식 시험일정 추출기

    - 자유 텍스트(OCR 결과): 구조화 엔드포인트 또는 규칙 기반 파서로 OfficialSession 목록 생성
    - 크롤링 원본 행: 행 단위 OfficialSession 생성 (차수는 부여하지 않음)
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

    # ==================== 자유 텍스트 ====================

    def extract_from_text(
        self,
        text: str,
        year: Optional[int] = None,
        exam_type: Optional[ExamType] = None,
    ) -> ExtractionResult[OfficialSession]:
        """
        공지 텍스트에서 공식 시험일정 추출

        Args:
            text: OCR 결과 또는 공지 원문
            year: "M월 D일" 표기에 적용할 기준 연도 (없으면 올해)
            exam_type: 시험 종류 힌트 (없으면 텍스트 키워드로 판별)

        Raises:
            MalformedResponseError: 구조화 응답이 JSON/스키마 위반
        """
        year = year or datetime.now().year
        hinted = exam_type is not None
        exam_type = exam_type or detect_exam_type(text)

        try:
            raw_schedules = self._structure(text, year, exam_type)
        except UpstreamQuotaError:
            logger.warning("구조화 엔드포인트 할당량 소진 - 공식 일정 데모 데이터로 대체")
            return ExtractionResult(self.generate_demo(text, year), used_demo_data=True)

        sessions = [
            self.to_official_session(raw, year, exam_type, force_exam_type=hinted)
            for raw in raw_schedules
        ]
        logger.info(f"공식 일정 {len(sessions)}건 추출 ({self.backend})")
        return ExtractionResult(sessions)

    def _structure(self, text: str, year: int, exam_type: ExamType) -> List[Dict[str, Any]]:
        if self.backend == "rules":
            return self.structure_with_rules(text, year, exam_type)
        system_prompt = (
            OFFICIAL_SYSTEM_PROMPT
            + f"\n기준 연도: {year}\n기본 시험 종류: {exam_type.value}\n"
            + "이제 아래 텍스트를 분석하여 JSON 결과만 출력하세요."
        )
        return self._get_client().complete_json(system_prompt, text)

    def structure_with_rules(self, text: str, year: int, exam_type: ExamType) -> List[Dict[str, Any]]:
        """
        정규식 기반 구조화 (구조화 엔드포인트와 같은 JSON 형태 반환)

        "지역 N차 M월 D일" 토큰을 차수별로 모아 지역을 합친다.
        """
        matches = list(SESSION_RE.finditer(text or ""))
        by_session: Dict[int, Dict[str, Any]] = {}

        for index, match in enumerate(matches):
            segment_end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
            segment = text[match.end():segment_end]

            session_number = int(match.group("session"))
            exam_date = parse_korean_date(match.group("date"), year)
            time_match = TIME_RANGE_RE.search(segment)

            entry = by_session.setdefault(session_number, {
                "year": year,
                "exam_type": exam_type.value,
                "session_number": session_number,
                "registration_start_date": None,
                "registration_end_date": None,
                "exam_date": exam_date.isoformat() if exam_date else None,
                "exam_time_start": DEFAULT_EXAM_TIME_START,
                "exam_time_end": DEFAULT_EXAM_TIME_END,
                "locations": [],
                "notes": OFFICIAL_NOTE,
            })
            entry["locations"].append(match.group("region"))
            if time_match:
                entry["exam_time_start"], entry["exam_time_end"] = time_match.groups()

        registration = REGISTRATION_RE.search(text or "")
        if registration:
            start = parse_korean_date(registration.group("start"), year)
            end = parse_korean_date(registration.group("end"), year)
            for entry in by_session.values():
                entry["registration_start_date"] = start.isoformat() if start else None
                entry["registration_end_date"] = end.isoformat() if end else None

        return [by_session[number] for number in sorted(by_session)]

    def to_official_session(
        self,
        raw: Dict[str, Any],
        year: int,
        exam_type: ExamType,
        force_exam_type: bool = False,
    ) -> OfficialSession:
        """구조화 결과 1건을 OfficialSession으로 변환 (스키마 위반이면 MalformedResponseError)"""
        try:
            record_year = int(raw.get("year") or year)
            session_number = raw.get("session_number")
            session_number = int(session_number) if session_number not in (None, "") else None

            raw_locations = raw.get("locations") or []
            if isinstance(raw_locations, str):
                raw_locations = [raw_locations]

            return OfficialSession(
                year=record_year,
                exam_type=exam_type if force_exam_type else resolve_exam_type(raw.get("exam_type"), exam_type),
                session_number=session_number,
                registration_start=parse_date_value(
                    raw.get("registration_start_date") or raw.get("registration_start"), record_year
                ),
                registration_end=parse_date_value(
                    raw.get("registration_end_date") or raw.get("registration_end"), record_year
                ),
                exam_date=parse_date_value(raw.get("exam_date"), record_year),
                exam_time_start=parse_time_value(raw.get("exam_time_start")) or parse_time_value(DEFAULT_EXAM_TIME_START),
                exam_time_end=parse_time_value(raw.get("exam_time_end")) or parse_time_value(DEFAULT_EXAM_TIME_END),
                locations=normalize(raw_locations),
                notes=raw.get("notes") or OFFICIAL_NOTE,
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise MalformedResponseError(f"공식 일정 항목이 스키마와 맞지 않습니다: {e}") from e

    def generate_demo(self, text: str, year: int) -> List[OfficialSession]:
        """할당량 소진 시 화면 확인용 데모 일정 1건 (실제 일정 아님)"""
        return [
            OfficialSession(
                year=year,
                exam_type=detect_exam_type(text),
                session_number=1,
                registration_start=date(year, 1, 15),
                registration_end=date(year, 1, 25),
                exam_date=date(year, 2, 15),
                locations=["서울", "부산", "대구", "광주", "대전"],
                notes=f"{OFFICIAL_NOTE} {DEMO_NOTE_SUFFIX}",
            )
        ]

    # ==================== 크롤링 원본 행 ====================

    def extract_from_crawl_rows(
        self,
        rows: Iterable[Dict[str, Any]],
        year: Optional[int] = None,
        exam_type: ExamType = ExamType.LIFE,
    ) -> List[OfficialSession]:
        """
        지역별 크롤링 행 → OfficialSession (행마다 1건)

        행에 차수가 명시되지 않았으면 session_number 는 None 으로 둔다.
        차수 부여는 grouping_assigner 의 역할.
        """
        sessions = []
        for row in rows:
            row_year = int(row.get("year") or year or datetime.now().year)
            region_name = row.get("region_name") or get_region_name(row.get("region_code", ""))
            region_code = str(row.get("region_code") or "")
            registration_start, registration_end = self._parse_registration_period(
                row.get("registration_period"), row_year
            )
            session_number = row.get("session_number")

            sessions.append(
                OfficialSession(
                    year=row_year,
                    exam_type=resolve_exam_type(row.get("exam_type"), exam_type),
                    session_number=int(session_number) if session_number not in (None, "") else None,
                    registration_start=registration_start,
                    registration_end=registration_end,
                    exam_date=parse_date_value(row.get("exam_date"), row_year),
                    exam_time_start=parse_time_value(row.get("exam_time_start")) or parse_time_value(DEFAULT_EXAM_TIME_START),
                    exam_time_end=parse_time_value(row.get("exam_time_end")) or parse_time_value(DEFAULT_EXAM_TIME_END),
                    locations=normalize([region_name]),
                    region_codes=[region_code] if region_code else [],
                    result_date=parse_date_value(row.get("result_date"), row_year),
                    notes=row.get("notes") or f"{OFFICIAL_NOTE} ({region_name} 지역)",
                )
            )
        return sessions

    @staticmethod
    def _parse_registration_period(period: Optional[str], year: int):
        """"2025.10.20 ~ 2025.10.24" / "10월 20일 ~ 10월 24일" → (start, end)"""
        if not period or "~" not in period:
            return None, None
        start_text, end_text = period.split("~", 1)
        return parse_korean_date(start_text, year), parse_korean_date(end_text, year)
