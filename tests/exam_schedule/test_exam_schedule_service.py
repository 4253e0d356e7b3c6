"""
시험일정 통합 서비스 테스트

OCR / 구조화 엔드포인트는 가짜 객체와 규칙 기반 파서로 대체한다.

실행 방법:
    pytest tests/exam_schedule/test_exam_schedule_service.py -v
"""

import asyncio

import pytest

from app.core.exceptions import ExamScheduleError, InvalidInputError, MalformedResponseError
from app.db.crud.db_exam_schedule import get_exam_schedule_by_id
from app.schemas.schemas_exam_schedule import ExamType
from app.services.exam_schedule.exam_schedule_service import crawl_and_group, parse_combined, save_parsed
from app.utils.parser.internal_deadline_parser import InternalDeadlineExtractor
from app.utils.parser.official_schedule_parser import OfficialScheduleExtractor

OFFICIAL_TEXT = "수도권 1차 11월 10일, 영남 1차 11월 10일"
INTERNAL_TEXT = "1~4차 시험접수마감: 11월 4일(화) 오전 11시"


class FakeOcrClient:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error

    def extract_text(self, image_bytes, mime_type="image/jpeg"):
        if self.error is not None:
            raise self.error
        return self.text


class BrokenStructuringClient:
    def complete_json(self, system_prompt, user_text):
        raise MalformedResponseError("JSON 아님")


def run_combined(image_bytes=b"image", text=INTERNAL_TEXT, ocr_client=None, internal_extractor=None):
    return asyncio.run(parse_combined(
        image_bytes,
        "image/png",
        text,
        year=2025,
        exam_type=ExamType.LIFE,
        ocr_client=ocr_client or FakeOcrClient(text=OFFICIAL_TEXT),
        official_extractor=OfficialScheduleExtractor(backend="rules"),
        internal_extractor=internal_extractor or InternalDeadlineExtractor(backend="rules"),
        timeout=5,
    ))


class TestParseCombined:
    """이미지 + 텍스트 통합 파싱"""

    def test_end_to_end_scenario(self):
        data = run_combined()["data"]

        combined = [s for s in data["combinedSchedules"] if s["data_source"] == "combined"]
        assert len(combined) == 1
        record = combined[0]
        assert record["session_number"] == 1
        assert record["exam_date"] == "2025-11-10"
        assert record["locations"] == ["서울", "인천", "제주", "부산", "울산"]
        assert record["internal_deadline_date"] == "2025-11-04"
        assert record["internal_deadline_time"] == "11:00"

        assert data["extractedImageText"] == OFFICIAL_TEXT
        assert data["summary"] == {"totalSchedules": 4, "officialSchedules": 1, "internalDeadlines": 1}
        assert data["partialFailures"] == []
        assert data["usedDemoData"] is False

    def test_image_failure_is_partial(self):
        response = run_combined(ocr_client=FakeOcrClient(error=ExamScheduleError("이미지에서 텍스트를 찾을 수 없습니다.")))

        data = response["data"]
        assert response["success"] is True
        assert data["summary"]["officialSchedules"] == 0
        assert data["summary"]["internalDeadlines"] == 1
        assert {s["data_source"] for s in data["combinedSchedules"]} == {"internal_only"}
        assert data["partialFailures"][0]["source"] == "image"

    def test_text_failure_is_partial(self):
        broken = InternalDeadlineExtractor(client=BrokenStructuringClient(), backend="openai")
        data = run_combined(internal_extractor=broken)["data"]

        assert data["summary"] == {"totalSchedules": 1, "officialSchedules": 1, "internalDeadlines": 0}
        assert data["combinedSchedules"][0]["data_source"] == "official_only"

    def test_both_paths_failing(self):
        broken = InternalDeadlineExtractor(client=BrokenStructuringClient(), backend="openai")
        with pytest.raises(ExamScheduleError):
            run_combined(ocr_client=FakeOcrClient(error=ExamScheduleError("OCR 실패")), internal_extractor=broken)

    def test_no_input(self):
        with pytest.raises(InvalidInputError):
            run_combined(image_bytes=None, text="   ")

    def test_text_only(self):
        data = run_combined(image_bytes=None)["data"]

        assert data["extractedImageText"] == ""
        assert [s["session_number"] for s in data["combinedSchedules"]] == [1, 2, 3, 4]


class TestCrawlAndGroup:
    """크롤링 행 그룹핑 + 내부 마감 통합"""

    def test_provided_rows(self):
        rows = [
            {"exam_date": "2025-11-10", "region_code": "10", "region_name": "서울", "session_number": 1},
            {"exam_date": "2025-11-10", "region_code": "30", "region_name": "부산", "session_number": 1},
            {"exam_date": "2025-11-10", "region_code": "40", "region_name": "대구", "session_number": 1},
            {"exam_date": "2025-11-17", "region_code": "50", "region_name": "광주", "session_number": 2},
            {"exam_date": "", "region_code": "12", "region_name": "인천"},
        ]
        data = crawl_and_group(2025, 11, internal_text=INTERNAL_TEXT, crawled_schedules=rows)["data"]

        assert data["totalCrawled"] == 5
        assert data["totalGrouped"] == 2
        assert len(data["unassignable"]) == 1

        by_session = {s["session_number"]: s for s in data["schedules"]}
        assert by_session[1]["locations"] == ["서울", "부산", "대구"]
        assert by_session[1]["data_source"] == "combined"
        assert by_session[2]["locations"] == ["광주"]
        assert by_session[2]["data_source"] == "combined"
        assert by_session[3]["data_source"] == "internal_only"
        assert by_session[4]["data_source"] == "internal_only"


class TestSaveParsed:
    """파싱 결과 저장 (레코드별 upsert)"""

    RECORD = {
        "year": 2025,
        "exam_type": "생보",
        "session_number": 1,
        "exam_date": "2025-11-10",
        "locations": ["서울", "인천", "제주"],
        "internal_deadline_date": "2025-11-04",
        "internal_deadline_time": "11:00",
        "data_source": "combined",
        "notes": None,
    }

    def test_all_saved(self, db_session):
        status_code, body = save_parsed(db_session, [self.RECORD, {**self.RECORD, "session_number": 2}])

        assert status_code == 200
        assert body["successCount"] == 2
        assert all(result["created"] for result in body["results"])

    def test_upsert_updates_existing(self, db_session):
        save_parsed(db_session, [self.RECORD])
        status_code, body = save_parsed(db_session, [{**self.RECORD, "locations": ["부산"]}])

        assert status_code == 200
        assert body["results"][0]["created"] is False

    def test_partial_failure(self, db_session):
        invalid = {"exam_type": "생보", "session_number": 3}
        status_code, body = save_parsed(db_session, [self.RECORD, invalid])

        assert status_code == 207
        assert body["successCount"] == 1
        assert body["errorCount"] == 1
        assert body["errors"][0]["index"] == 2

    def test_all_failed(self, db_session):
        status_code, body = save_parsed(db_session, [{"exam_type": "생보"}])

        assert status_code == 500
        assert body["success"] is False
        assert "error" in body

    def test_legacy_field_names(self, db_session):
        record = {
            **self.RECORD,
            "data_source": "crawled_grouped",
            "registration_start_date": "2025-10-20",
            "registration_end_date": "2025-10-24",
        }
        status_code, body = save_parsed(db_session, [record])

        assert status_code == 200

        saved = get_exam_schedule_by_id(db_session, body["results"][0]["schedule_id"])
        assert saved.data_source == "combined"
        assert saved.registration_start.isoformat() == "2025-10-20"
