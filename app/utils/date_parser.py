"""
날짜/시간 파싱 유틸리티 함수

공지 텍스트와 크롤링 결과에 섞여 있는 한국어 날짜/시간 표기를
date / time 객체로 변환한다.
"""
import re
from datetime import date, datetime, time
from typing import Any, Optional

MONTH_DAY_RE = re.compile(r"(\d{1,2})\s*월\s*(\d{1,2})\s*일")
DOT_DATE_RE = re.compile(r"(\d{4})\s*\.\s*(\d{1,2})\s*\.\s*(\d{1,2})")
DASH_DATE_RE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
MERIDIEM_TIME_RE = re.compile(r"(오전|오후)\s*(\d{1,2})\s*시(?:\s*(\d{1,2})\s*분)?")
CLOCK_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_korean_date(text: str, year: int) -> Optional[date]:
    """
    "11월 4일", "2025.11.04", "2025-11-04" 형태를 date로 변환

    "M월 D일" 형태는 전달받은 year를 그대로 사용한다 (문맥으로 연도를 추정하지 않음).

    Args:
        text: 날짜가 포함된 문자열
        year: "M월 D일" 형태에 적용할 연도

    Returns:
        date (인식 실패 또는 달력에 없는 날짜면 None)
    """
    if not text:
        return None

    match = DASH_DATE_RE.search(text)
    if match:
        return _safe_date(*map(int, match.groups()))

    match = DOT_DATE_RE.search(text)
    if match:
        return _safe_date(*map(int, match.groups()))

    match = MONTH_DAY_RE.search(text)
    if match:
        month, day = map(int, match.groups())
        return _safe_date(year, month, day)

    return None


def to_24_hour(meridiem: str, hour: int, minute: int = 0) -> Optional[time]:
    """
    오전/오후 12시간 표기를 24시간 time으로 변환

    - 오전 12시 → 00:00
    - 오후 12시 → 12:00
    - 오후 H시 → (H+12):00
    """
    if hour < 0 or hour > 12 or minute < 0 or minute > 59:
        return None
    if meridiem == "오후":
        if hour != 12:
            hour += 12
    elif meridiem == "오전":
        if hour == 12:
            hour = 0
    else:
        return None
    return time(hour, minute)


def parse_korean_time(text: str) -> Optional[time]:
    """텍스트에서 첫 번째 "오전/오후 H시(M분)" 토큰을 찾아 time으로 변환"""
    if not text:
        return None
    match = MERIDIEM_TIME_RE.search(text)
    if not match:
        return None
    meridiem, hour, minute = match.groups()
    return to_24_hour(meridiem, int(hour), int(minute) if minute else 0)


def parse_time_value(value: Any) -> Optional[time]:
    """LLM/크롤링 결과의 시간 값("11:00", "11:00:00", "오전 11시", time)을 time으로 변환"""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    text = str(value)
    match = CLOCK_TIME_RE.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return time(hour, minute)
        return None
    return parse_korean_time(text)


def parse_date_value(value: Any, year: int) -> Optional[date]:
    """LLM/크롤링 결과의 날짜 값(date, datetime, 문자열)을 date로 변환"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_korean_date(str(value), year)


def format_time(value: Optional[time]) -> Optional[str]:
    """time → "HH:MM" """
    return value.strftime("%H:%M") if value else None
