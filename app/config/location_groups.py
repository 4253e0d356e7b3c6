"""
시험 지역 그룹 매핑 설정
공지 이미지의 지역 그룹명을 실제 시험 도시명으로 변환
"""
from typing import Dict, List

LOCATION_GROUPS: Dict[str, List[str]] = {
    "수도권": ["서울", "인천", "제주"],
    "영남": ["부산", "울산"],
    "대구": ["대구"],
    "호남": ["광주", "전주"],
    "중부": ["대전", "서산"],
    "원주": ["원주", "강릉", "춘천"],
}

# 생명보험협회 시험 접수 사이트의 지역 코드 (crawl 대상)
REGION_CODES: Dict[str, str] = {
    "10": "서울",
    "12": "인천",
    "55": "제주",
    "30": "부산",
    "32": "울산",
    "40": "대구",
    "50": "광주",
    "87": "전주",
    "60": "대전",
    "65": "서산",
    "70": "강릉",
    "71": "원주",
    "78": "춘천",
}

# 표시/정렬 기준이 되는 도시 순서
CITY_ORDER: List[str] = [city for cities in LOCATION_GROUPS.values() for city in cities]

KNOWN_CITIES = frozenset(CITY_ORDER)


def get_region_name(region_code: str) -> str:
    """지역 코드를 도시명으로 변환 (없으면 빈 문자열)"""
    return REGION_CODES.get(str(region_code).strip(), "")
