"""
Exam Schedule Service
시험일정 추출 → 통합 → 저장 서비스 로직
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.core.exceptions import ExamScheduleError, ExtractionPartialFailure, InvalidInputError
from app.db.crud.db_exam_schedule import normalize_data_source, upsert_exam_schedule
from app.schemas.schemas_exam_schedule import (
    ExamScheduleCreate,
    ExamScheduleResponse,
    ExamType,
    InternalDeadline,
    OfficialSession,
)
from app.services.crawler.insure_exam.crawler_insure_exam import InsureExamCrawler
from app.services.exam_schedule.grouping_assigner import assign_sessions
from app.services.exam_schedule.reconciler import reconcile, split_unnumbered
from app.services.exam_schedule.status_evaluator import days_until, evaluate_status
from app.utils.location_normalizer import display
from app.utils.model.ocr_client import OcrClient
from app.utils.parser.internal_deadline_parser import InternalDeadlineExtractor
from app.utils.parser.official_schedule_parser import OfficialScheduleExtractor

logger = logging.getLogger(__name__)

# 이전 파싱 도구가 보내던 필드명
_FIELD_ALIASES = {
    "registration_start_date": "registration_start",
    "registration_end_date": "registration_end",
}


def _dump(models: List[Any]) -> List[Dict[str, Any]]:
    return [model.model_dump(mode="json") for model in models]


def number_officials(officials: List[OfficialSession]) -> List[OfficialSession]:
    """차수 없는 공식 일정이 있으면 시험일 기준으로 차수를 부여해서 합친다"""
    numbered, unnumbered = split_unnumbered(officials)
    if not unnumbered:
        return numbered

    start_number = max((official.session_number for official in numbered), default=0) + 1
    grouping = assign_sessions(unnumbered, start_number=start_number)
    return numbered + grouping.assigned


# ==================== 이미지 + 텍스트 통합 파싱 ====================

async def parse_combined(
    image_bytes: Optional[bytes],
    mime_type: Optional[str],
    text: Optional[str],
    year: Optional[int] = None,
    exam_type: Optional[ExamType] = None,
    ocr_client: Optional[OcrClient] = None,
    official_extractor: Optional[OfficialScheduleExtractor] = None,
    internal_extractor: Optional[InternalDeadlineExtractor] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """
    공지 이미지(공식 일정)와 내부 마감 텍스트를 동시에 추출한 뒤 통합합니다.

    두 경로는 독립적으로 실행되며 한쪽 실패는 로그만 남기고 다른 쪽 결과로 계속 진행합니다.

    Args:
        image_bytes: 공지 이미지 (없으면 이미지 경로 생략)
        mime_type: 이미지 mime type
        text: 내부 마감 텍스트 (없으면 텍스트 경로 생략)
        year: 기준 연도 (기본값: 올해)
        exam_type: 시험 종류 힌트

    Returns:
        {"success": True, "data": {...}}

    Raises:
        InvalidInputError: 이미지와 텍스트가 모두 없음
        ExamScheduleError: 시도한 모든 경로가 실패
    """
    has_image = bool(image_bytes)
    has_text = bool(text and text.strip())
    if not has_image and not has_text:
        raise InvalidInputError("이미지 또는 텍스트 중 하나는 제공되어야 합니다.")

    year = year or datetime.now().year
    timeout = timeout or settings.EXTRACTION_TIMEOUT_SECONDS
    ocr_client = ocr_client or OcrClient()
    official_extractor = official_extractor or OfficialScheduleExtractor()
    internal_extractor = internal_extractor or InternalDeadlineExtractor()

    image_state: Dict[str, Any] = {"text": ""}

    async def run_image_path():
        image_state["text"] = await asyncio.wait_for(
            asyncio.to_thread(ocr_client.extract_text, image_bytes, mime_type or "image/jpeg"),
            timeout=timeout,
        )
        return await asyncio.wait_for(
            asyncio.to_thread(official_extractor.extract_from_text, image_state["text"], year, exam_type),
            timeout=timeout,
        )

    async def run_text_path():
        return await asyncio.wait_for(
            asyncio.to_thread(internal_extractor.extract, text, year, exam_type),
            timeout=timeout,
        )

    paths = []
    if has_image:
        paths.append(("image", run_image_path()))
    if has_text:
        paths.append(("text", run_text_path()))

    # 두 경로를 모두 기다린 뒤에 통합 (한쪽 실패가 다른 쪽을 취소하지 않음)
    outcomes = await asyncio.gather(*(coroutine for _, coroutine in paths), return_exceptions=True)

    officials: List[OfficialSession] = []
    internals: List[InternalDeadline] = []
    used_demo_data = False
    failures: List[ExtractionPartialFailure] = []

    for (source, _), outcome in zip(paths, outcomes):
        if isinstance(outcome, Exception):
            if isinstance(outcome, asyncio.TimeoutError):
                outcome = ExamScheduleError(f"{timeout}초 안에 응답이 없습니다.")
            failure = ExtractionPartialFailure(source, outcome)
            logger.error(f"[Exam Schedule Service] {failure.message}")
            failures.append(failure)
            continue
        if isinstance(outcome, BaseException):
            raise outcome

        used_demo_data = used_demo_data or outcome.used_demo_data
        if source == "image":
            officials = outcome.schedules
        else:
            internals = outcome.schedules

    if len(failures) == len(paths):
        raise ExamScheduleError(" / ".join(failure.message for failure in failures))

    combined = reconcile(number_officials(officials), internals)

    return {
        "success": True,
        "data": {
            "extractedImageText": image_state["text"],
            "providedText": text,
            "imageSchedules": _dump(officials),
            "textSchedules": _dump(internals),
            "combinedSchedules": _dump(combined),
            "summary": {
                "totalSchedules": len(combined),
                "officialSchedules": len(officials),
                "internalDeadlines": len(internals),
            },
            "usedDemoData": used_demo_data,
            "partialFailures": [
                {"source": failure.source, "error": str(failure.cause)} for failure in failures
            ],
        },
    }


# ==================== 단일 경로 파싱 ====================

def parse_text(
    text: str,
    year: Optional[int] = None,
    exam_type: Optional[ExamType] = None,
    internal_extractor: Optional[InternalDeadlineExtractor] = None,
) -> Dict[str, Any]:
    """내부 마감 텍스트만 파싱"""
    if not text or not text.strip():
        raise InvalidInputError("텍스트가 제공되지 않았습니다.")

    internal_extractor = internal_extractor or InternalDeadlineExtractor()
    result = internal_extractor.extract(text, year, exam_type)
    return {
        "success": True,
        "data": {
            "extractedText": text,
            "parsedSchedules": _dump(result.schedules),
            "usedDemoData": result.used_demo_data,
        },
    }


def parse_image(
    image_bytes: bytes,
    mime_type: Optional[str],
    year: Optional[int] = None,
    exam_type: Optional[ExamType] = None,
    ocr_client: Optional[OcrClient] = None,
    official_extractor: Optional[OfficialScheduleExtractor] = None,
) -> Dict[str, Any]:
    """공지 이미지만 OCR → 공식 일정 파싱"""
    if not image_bytes:
        raise InvalidInputError("이미지가 제공되지 않았습니다.")

    ocr_client = ocr_client or OcrClient()
    official_extractor = official_extractor or OfficialScheduleExtractor()

    extracted_text = ocr_client.extract_text(image_bytes, mime_type or "image/jpeg")
    result = official_extractor.extract_from_text(extracted_text, year, exam_type)
    return {
        "success": True,
        "data": {
            "extractedText": extracted_text,
            "parsedSchedules": _dump(number_officials(result.schedules)),
            "usedDemoData": result.used_demo_data,
        },
    }


# ==================== 공식 사이트 크롤링 ====================

def crawl_official(year: int, month: int, crawler: Optional[InsureExamCrawler] = None) -> Dict[str, Any]:
    """지역별 공식 일정 원본 행 크롤링"""
    crawler = crawler or InsureExamCrawler()
    crawl_result = crawler.crawl(year, month)
    return {
        "success": True,
        "data": {"year": year, "month": month, **crawl_result},
    }


def crawl_and_group(
    year: int,
    month: int,
    internal_text: Optional[str] = None,
    crawled_schedules: Optional[List[Dict[str, Any]]] = None,
    exam_type: ExamType = ExamType.LIFE,
    crawler: Optional[InsureExamCrawler] = None,
) -> Dict[str, Any]:
    """
    크롤링 원본 행을 시험일 기준으로 차수별로 묶고 내부 마감과 통합합니다.

    Args:
        crawled_schedules: 이미 크롤링한 행 (없으면 새로 크롤링)
        internal_text: 내부 마감 텍스트 (규칙 기반 파서로 처리)
    """
    if crawled_schedules:
        logger.info(f"제공된 크롤링 데이터 사용: {len(crawled_schedules)}개 행")
        raw_rows = crawled_schedules
        crawl_info: Dict[str, Any] = {"message": "제공된 크롤링 데이터 사용"}
    else:
        crawl_result = (crawler or InsureExamCrawler()).crawl(year, month)
        raw_rows = crawl_result["schedules"]
        crawl_info = crawl_result["debugInfo"]

    # 지역별 행에 붙어 온 차수는 무시하고 시험일로 다시 부여
    rows = [{**row, "session_number": None} for row in raw_rows]
    officials = OfficialScheduleExtractor(backend="rules").extract_from_crawl_rows(rows, year, exam_type)
    grouping = assign_sessions(officials)

    internals: List[InternalDeadline] = []
    if internal_text and internal_text.strip():
        internals = InternalDeadlineExtractor(backend="rules").extract(internal_text, year, exam_type).schedules

    schedules = reconcile(grouping.assigned, internals)
    logger.info(f"그룹핑 완료: {len(raw_rows)}행 → {len(grouping.assigned)}개 차수")

    return {
        "success": True,
        "data": {
            "year": year,
            "month": month,
            "totalCrawled": len(raw_rows),
            "totalGrouped": len(grouping.assigned),
            "schedules": _dump(schedules),
            "groupedSessions": _dump(grouping.assigned),
            "internalDeadlines": _dump(internals),
            "unassignable": _dump(grouping.unassignable),
            "debugInfo": {
                "rawSchedules": raw_rows[:5],
                "crawlInfo": crawl_info,
            },
        },
    }


# ==================== 저장 ====================

def _to_create_model(record: Dict[str, Any]) -> ExamScheduleCreate:
    values = {_FIELD_ALIASES.get(key, key): value for key, value in record.items()}
    values["data_source"] = normalize_data_source(values.get("data_source"))
    for key in ("notes", "combined_notes"):
        if values.get(key) is None:
            values[key] = ""
    return ExamScheduleCreate.model_validate(values)


def save_parsed(db: Session, schedules: List[Dict[str, Any]]) -> Tuple[int, Dict[str, Any]]:
    """
    파싱 결과를 (year, exam_type, session_number) 기준으로 한 건씩 upsert

    레코드마다 별도 트랜잭션이므로 일부만 저장될 수 있고, 결과는 레코드별로 보고한다.

    Returns:
        (HTTP status, 응답 body) - 전부 성공 200 / 일부 실패 207 / 전부 실패 500
    """
    results = []
    errors = []

    for index, record in enumerate(schedules, start=1):
        try:
            schedule, created = upsert_exam_schedule(db, _to_create_model(record).model_dump())
        except ValidationError as e:
            logger.warning(f"일정 {index} 검증 오류: {e}")
            errors.append({"index": index, "schedule": record, "error": str(e)})
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"일정 {index} 저장 오류: {e}")
            errors.append({"index": index, "schedule": record, "error": str(e)})
            continue

        results.append({
            "index": index,
            "schedule_id": schedule.id,
            "created": created,
            "schedule": record,
        })

    body: Dict[str, Any] = {
        "success": not errors,
        "totalProcessed": len(schedules),
        "successCount": len(results),
        "errorCount": len(errors),
        "results": results,
    }
    if errors:
        body["errors"] = errors

    if errors and not results:
        body["error"] = "모든 일정 저장에 실패했습니다."
        return 500, body
    if errors:
        body["warning"] = f"{len(errors)}개 일정 저장에 실패했습니다."
        return 207, body
    return 200, body


# ==================== 조회 ====================

def to_response(schedule: Any, now: Optional[datetime] = None) -> ExamScheduleResponse:
    """저장된 일정 + 조회 시점 기준 접수 상태/남은 기간"""
    now = now or datetime.now()
    response = ExamScheduleResponse.model_validate(schedule)
    response.locations_display = display(response.locations)
    response.registration_status = evaluate_status(response, now)

    deadline: Optional[date] = response.internal_deadline_date or response.registration_end
    response.time_until_deadline = days_until(deadline, now.date())
    return response
