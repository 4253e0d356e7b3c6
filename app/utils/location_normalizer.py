"""
시험 지역 정규화 유틸리티

지역 그룹명(수도권, 영남 ...)과 도시명을 서로 변환한다.
저장되는 locations 는 항상 도시명 리스트이며 그룹명은 수집 시점에 펼친다.
"""
import logging
import re
from typing import Iterable, List

from app.config.location_groups import CITY_ORDER, KNOWN_CITIES, LOCATION_GROUPS

logger = logging.getLogger(__name__)

_TOKEN_SPLIT_RE = re.compile(r"[\s,/·()\[\]]+")


def expand_group(name: str) -> List[str]:
    """그룹명을 도시 리스트로 변환 (알 수 없는 그룹이면 빈 리스트)"""
    return list(LOCATION_GROUPS.get((name or "").strip(), []))


def sort_cities(cities: Iterable[str]) -> List[str]:
    """중복 제거 후 CITY_ORDER 순서로 정렬 (모르는 도시는 입력 순서대로 뒤에)"""
    unique: List[str] = []
    for city in cities:
        if city and city not in unique:
            unique.append(city)
    known = [city for city in CITY_ORDER if city in unique]
    unknown = [city for city in unique if city not in KNOWN_CITIES]
    return known + unknown


def normalize(raw_tokens: Iterable[str]) -> List[str]:
    """
    자유 텍스트 지역 토큰을 도시명 리스트로 정규화

    - 그룹명이면 펼친다 ("원주"처럼 그룹명과 도시명이 같으면 그룹 우선)
    - 알려진 도시면 유지
    - 그 외("사천" 등)는 추정하지 않고 버린다

    "서울(인천)" 같은 토큰은 괄호/쉼표 기준으로 쪼개서 각각 처리한다.
    """
    cities: List[str] = []
    for raw in raw_tokens or []:
        if raw is None:
            continue
        for token in _TOKEN_SPLIT_RE.split(str(raw)):
            token = token.strip()
            if not token:
                continue
            if token in LOCATION_GROUPS:
                cities.extend(LOCATION_GROUPS[token])
            elif token in KNOWN_CITIES:
                cities.append(token)
            else:
                logger.info(f"알 수 없는 지역 토큰 제외: {token}")
    return sort_cities(cities)


def display(cities: Iterable[str]) -> str:
    """
    도시 리스트를 화면 표시용 문자열로 변환

    그룹의 모든 도시가 포함된 경우에만 "그룹명(도시, 도시)"로 묶고,
    일부만 포함되면 도시명만 나열한다.

    Example:
        >>> display(["서울", "인천", "제주"])
        '수도권(서울, 인천, 제주)'
        >>> display(["서울"])
        '서울'
    """
    ordered = sort_cities(cities)
    if not ordered:
        return "미정"

    parts: List[str] = []
    grouped = set()
    for group_name, group_cities in LOCATION_GROUPS.items():
        present = [city for city in group_cities if city in ordered]
        if not present:
            continue
        grouped.update(present)
        if len(present) == len(group_cities):
            parts.append(f"{group_name}({', '.join(present)})")
        else:
            parts.append(", ".join(present))

    parts.extend(city for city in ordered if city not in grouped)
    return ", ".join(parts)
