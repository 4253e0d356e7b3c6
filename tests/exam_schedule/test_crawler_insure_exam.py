"""
공식 사이트 크롤러 테스트 (HTTP 요청은 monkeypatch)

실행 방법:
    pytest tests/exam_schedule/test_crawler_insure_exam.py -v
"""

import requests

from app.services.crawler.insure_exam import crawler_insure_exam
from app.services.crawler.insure_exam.crawler_insure_exam import InsureExamCrawler, parse_schedule_table

SCHEDULE_HTML = """
<html><body>
<div class="table_t01">
  <table>
    <thead><tr><th>시험일</th><th>접수기간</th><th>합격자발표</th></tr></thead>
    <tbody>
      <tr><td>2025-11-10(월)<br/>열기</td><td>2025.10.20 ~ 2025.10.24</td><td>2025-11-20(목)</td></tr>
      <tr><td>2025-11-24(월)</td><td>2025.11.03 ~ 2025.11.07</td><td>2025-12-04(목)</td></tr>
      <tr><td colspan="3">조회된 일정이 없습니다.</td></tr>
    </tbody>
  </table>
</div>
</body></html>
"""


class TestParseScheduleTable:
    """일정 표 HTML 파싱"""

    def test_rows_parsed_without_session_number(self):
        rows = parse_schedule_table(SCHEDULE_HTML, 2025, "10", "서울")

        assert len(rows) == 2
        first = rows[0]
        assert first["exam_date"] == "2025-11-10"
        assert first["result_date"] == "2025-11-20"
        assert first["registration_period"] == "2025.10.20 ~ 2025.10.24"
        assert first["region_code"] == "10"
        assert first["locations"] == ["서울"]
        assert "session_number" not in first

    def test_no_table(self):
        assert parse_schedule_table("<html><body>점검 중</body></html>", 2025, "10", "서울") == []


class TestCrawl:
    """지역별 크롤링"""

    def test_region_failure_recorded(self, monkeypatch):
        crawler = InsureExamCrawler(delay_seconds=0)

        def fake_post_region(year, month, region_code, region_name):
            if region_code == "55":
                raise requests.exceptions.ConnectionError("connection refused")
            return SCHEDULE_HTML

        monkeypatch.setattr(crawler, "_post_region", fake_post_region)
        result = crawler.crawl(2025, 11)

        debug_info = result["debugInfo"]
        assert len(debug_info["regionsProcessed"]) == 12
        assert debug_info["errors"] == [{"region": "제주", "error": "connection refused"}]
        assert debug_info["totalSchedules"] == 24
        assert len(result["schedules"]) == 24

    def test_region_parse_failure_recorded(self, monkeypatch):
        crawler = InsureExamCrawler(delay_seconds=0)
        parse_table = crawler_insure_exam.parse_schedule_table

        def fake_post_region(year, month, region_code, region_name):
            return "<table><tbody><tr><td>깨진 응답" if region_code == "30" else SCHEDULE_HTML

        def strict_parse(html, year, region_code, region_name):
            if "깨진 응답" in html:
                raise ValueError("일정 표 형식이 아닙니다")
            return parse_table(html, year, region_code, region_name)

        monkeypatch.setattr(crawler, "_post_region", fake_post_region)
        monkeypatch.setattr(crawler_insure_exam, "parse_schedule_table", strict_parse)
        result = crawler.crawl(2025, 11)

        debug_info = result["debugInfo"]
        assert len(debug_info["regionsProcessed"]) == 12
        assert debug_info["errors"] == [{"region": "부산", "error": "파싱 오류: 일정 표 형식이 아닙니다"}]
        assert len(result["schedules"]) == 24

    def test_post_form_data(self, monkeypatch):
        captured = {}

        class FakeResponse:
            text = SCHEDULE_HTML

            def raise_for_status(self):
                return None

        def fake_post(url, data=None, headers=None, timeout=None):
            captured.update(url=url, data=data, timeout=timeout)
            return FakeResponse()

        monkeypatch.setattr(crawler_insure_exam.requests, "post", fake_post)
        crawler = InsureExamCrawler(base_url="https://exam.example/list", timeout=5, delay_seconds=0)

        rows = crawler.crawl_region(2025, 11, "30", "부산")

        assert captured["url"] == "https://exam.example/list"
        assert captured["data"] == {"searchDate": "2025-11-1", "pageType": "30", "pageTypeNm": "부산"}
        assert captured["timeout"] == 5
        assert [row["region_name"] for row in rows] == ["부산", "부산"]
