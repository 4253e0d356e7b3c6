"""
차수 없는 지역별 크롤링 행에 차수 부여

시험일 오름차순으로 정렬한 뒤 같은 시험일(날짜 일치)끼리 하나의 차수로 묶는다.
"""
import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import List

from app.schemas.schemas_exam_schedule import OfficialSession
from app.utils.location_normalizer import display

logger = logging.getLogger(__name__)


@dataclass
class GroupingResult:
    assigned: List[OfficialSession] = field(default_factory=list)
    # 시험일이 없어 차수를 부여하지 못한 행
    unassignable: List[OfficialSession] = field(default_factory=list)


def assign_sessions(rows: List[OfficialSession], start_number: int = 1) -> GroupingResult:
    """
    지역별 행 → 차수별 OfficialSession

    - 같은 시험일 행들은 같은 차수, 다른 시험일이 나올 때마다 차수 +1
    - 같은 차수의 locations / region_codes 는 합집합
    - 접수기간 등 나머지 필드는 시험일 기준 첫 행을 따른다

    Example:
        서울/부산/대구 11-10, 광주 11-17 → 1차(서울, 부산, 대구), 2차(광주)
    """
    dated = [row for row in rows if row.exam_date is not None]
    unassignable = [row for row in rows if row.exam_date is None]
    if unassignable:
        logger.warning(f"시험일이 없는 행 {len(unassignable)}건은 차수 부여 제외")

    dated.sort(key=lambda row: row.exam_date)

    assigned = []
    for offset, (exam_date, same_day) in enumerate(groupby(dated, key=lambda row: row.exam_date)):
        same_day = list(same_day)
        first = same_day[0]

        locations = [city for row in same_day for city in row.locations]
        region_codes = sorted({code for row in same_day for code in row.region_codes})
        session = OfficialSession(
            year=first.year,
            exam_type=first.exam_type,
            session_number=start_number + offset,
            registration_start=first.registration_start,
            registration_end=first.registration_end,
            exam_date=exam_date,
            exam_time_start=first.exam_time_start,
            exam_time_end=first.exam_time_end,
            locations=locations,
            region_codes=region_codes,
            result_date=first.result_date,
            notes="",
        )
        session.notes = f"{exam_date.isoformat()} - {display(session.locations)} ({len(same_day)}개 지역)"
        assigned.append(session)

    logger.info(f"차수 부여 완료: {len(dated)}행 → {len(assigned)}개 차수")
    return GroupingResult(assigned=assigned, unassignable=unassignable)
