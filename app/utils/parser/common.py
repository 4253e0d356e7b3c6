"""
시험일정 추출기 공통 요소
"""
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from app.schemas.schemas_exam_schedule import ExamType

# 할당량 소진 시 생성하는 데모 일정의 notes 접미사
DEMO_NOTE_SUFFIX = "(데모 데이터)"

T = TypeVar("T")


@dataclass
class ExtractionResult(Generic[T]):
    """추출 결과 + 데모 데이터 사용 여부 (요청 단위로만 유지)"""

    schedules: List[T] = field(default_factory=list)
    used_demo_data: bool = False


def detect_exam_type(text: str, default: ExamType = ExamType.LIFE) -> ExamType:
    """키워드로 시험 종류 판별 (손보/손해보험 → 손보, 제3/제삼 → 제3보험)"""
    text = text or ""
    if "손보" in text or "손해보험" in text:
        return ExamType.NON_LIFE
    if "제3" in text or "제삼" in text:
        return ExamType.THIRD
    if "생보" in text or "생명보험" in text:
        return ExamType.LIFE
    return default


def resolve_exam_type(value: Optional[str], fallback: ExamType) -> ExamType:
    """구조화 결과의 exam_type 값을 ExamType으로 (알 수 없으면 fallback)"""
    try:
        return ExamType(value) if value else fallback
    except ValueError:
        return detect_exam_type(str(value), fallback)
