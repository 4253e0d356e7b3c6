"""
생명보험협회 자격시험 지역별 일정 크롤러
1. 지역 코드별로 일정 목록 페이지를 POST 요청
2. HTML 표를 파싱하여 지역별 원본 행 수집 (차수는 부여하지 않음)
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup
from tenacity import retry, stop_after_attempt, wait_exponential

from app.config.location_groups import REGION_CODES
from app.config.settings import settings
from app.utils.date_parser import DASH_DATE_RE, DOT_DATE_RE, MONTH_DAY_RE, parse_korean_date

logger = logging.getLogger(__name__)

# 사이트마다 표 구조가 달라 앞에서부터 순서대로 시도
TABLE_SELECTORS = [
    ".table_t01 table tbody tr",
    ".mobile_t01 table tbody tr",
    ".mt_t01 table tbody tr",
    "table tbody tr",
    "table tr",
]


def _has_date(text: str) -> bool:
    return bool(DASH_DATE_RE.search(text) or DOT_DATE_RE.search(text) or MONTH_DAY_RE.search(text))


def parse_schedule_table(html: str, year: int, region_code: str, region_name: str) -> List[Dict[str, Any]]:
    """
    일정 목록 HTML → 지역별 원본 행

    표의 열 순서: 시험일 | 접수기간 | 합격자 발표일 (3열 미만 행은 무시)
    """
    soup = BeautifulSoup(html, "html.parser")

    rows = []
    for selector in TABLE_SELECTORS:
        rows = soup.select(selector)
        if rows:
            logger.debug(f"{region_name} 지역: {selector}로 {len(rows)}개 행 발견")
            break

    if not rows:
        logger.info(f"{region_name} 지역: 테이블 행을 찾을 수 없음")
        return []

    schedules = []
    for row in rows:
        cells = [cell.get_text(" ", strip=True) for cell in row.find_all("td")]
        if len(cells) < 3:
            continue

        exam_date_raw, registration_period, result_date_raw = cells[0], cells[1], cells[2]
        if not _has_date(exam_date_raw):
            continue

        exam_date = parse_korean_date(exam_date_raw, year)
        if exam_date is None:
            continue
        result_date = parse_korean_date(result_date_raw, year)

        schedules.append({
            "year": year,
            "exam_type": "생보",
            "exam_date": exam_date.isoformat(),
            "registration_period": registration_period,
            "result_date": result_date.isoformat() if result_date else None,
            "exam_time_start": "10:00",
            "exam_time_end": "12:00",
            "locations": [region_name],
            "notes": f"공식 시험일정 ({region_name} 지역) - 원본: {' | '.join(cells)}",
            "data_source": "official_crawled",
            "region_code": region_code,
            "region_name": region_name,
        })

    return schedules


class InsureExamCrawler:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        delay_seconds: Optional[float] = None,
    ):
        """
        크롤러 초기화

        Args:
            base_url: 일정 목록 URL (기본: settings.CRAWL_BASE_URL)
            timeout: 요청 타임아웃 (초)
            delay_seconds: 지역 간 요청 간격 (서버 부하 방지)
        """
        self.list_url = base_url or settings.CRAWL_BASE_URL
        self.timeout = timeout if timeout is not None else settings.CRAWL_TIMEOUT_SECONDS
        self.delay_seconds = delay_seconds if delay_seconds is not None else settings.CRAWL_DELAY_SECONDS

        # 헤더 설정
        self.headers = {
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36',
            'Content-Type': 'application/x-www-form-urlencoded',
            'Referer': self.list_url,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
            'Accept-Language': 'ko-KR,ko;q=0.9,en;q=0.8',
        }

    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _post_region(self, year: int, month: int, region_code: str, region_name: str) -> str:
        form_data = {
            "searchDate": f"{year}-{month}-1",
            "pageType": region_code,
            "pageTypeNm": region_name,
        }
        response = requests.post(self.list_url, data=form_data, headers=self.headers, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    def crawl_region(self, year: int, month: int, region_code: str, region_name: str) -> List[Dict[str, Any]]:
        html = self._post_region(year, month, region_code, region_name)
        logger.debug(f"{region_name} 지역 HTML 응답 길이: {len(html)}")
        return parse_schedule_table(html, year, region_code, region_name)

    def crawl(self, year: int, month: int) -> Dict[str, Any]:
        """
        전체 지역 크롤링

        지역별 실패는 debugInfo.errors 에 기록하고 나머지 지역은 계속 진행한다.

        Returns:
            {"schedules": [...], "rawData": [...], "debugInfo": {...}, "crawledAt": ISO 문자열}
        """
        logger.info(f"지역별 크롤링 시작: {year}년 {month}월, {len(REGION_CODES)}개 지역")

        all_schedules: List[Dict[str, Any]] = []
        raw_data = []
        debug_info = {"regionsProcessed": [], "totalSchedules": 0, "errors": []}

        for index, (region_code, region_name) in enumerate(REGION_CODES.items()):
            if index > 0 and self.delay_seconds > 0:
                time.sleep(self.delay_seconds)

            try:
                schedules = self.crawl_region(year, month, region_code, region_name)
            except requests.exceptions.RequestException as e:
                logger.error(f"{region_name} 지역 크롤링 오류: {e}")
                debug_info["errors"].append({"region": region_name, "error": str(e)})
                continue
            except Exception as e:
                logger.error(f"{region_name} 지역 일정 파싱 오류: {e}")
                debug_info["errors"].append({"region": region_name, "error": f"파싱 오류: {e}"})
                continue

            logger.info(f"{region_name}: {len(schedules)}개 일정 발견")
            all_schedules.extend(schedules)
            raw_data.append({
                "region": region_name,
                "regionCode": region_code,
                "scheduleCount": len(schedules),
            })
            debug_info["regionsProcessed"].append({
                "region": region_name,
                "code": region_code,
                "scheduleCount": len(schedules),
            })

        debug_info["totalSchedules"] = len(all_schedules)
        logger.info(f"크롤링 완료: 총 {len(all_schedules)}개 일정 수집")

        return {
            "schedules": all_schedules,
            "rawData": raw_data,
            "debugInfo": debug_info,
            "crawledAt": datetime.now().isoformat(),
        }
