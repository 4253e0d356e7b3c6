"""
Exam Schedule Router
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.exceptions import ExamScheduleError
from app.db.config.base import get_db
from app.db.crud.db_exam_schedule import (
    bulk_create_exam_schedules,
    create_exam_schedule,
    delete_exam_schedule,
    get_exam_schedule_by_id,
    get_exam_schedule_by_key,
    get_exam_schedules,
    update_exam_schedule,
)
from app.schemas.schemas_exam_schedule import (
    BulkCreateRequest,
    CrawlAndGroupRequest,
    CrawlRequest,
    ExamScheduleCreate,
    ExamScheduleResponse,
    ExamScheduleUpdate,
    ExamType,
    ParseTextRequest,
    SaveParsedRequest,
)
from app.services.exam_schedule.exam_schedule_service import (
    crawl_and_group,
    crawl_official,
    parse_combined,
    parse_image,
    parse_text,
    save_parsed,
    to_response,
)

router = APIRouter(
    prefix="/exam-schedules",
    tags=["exam-schedules"]
)
logger = logging.getLogger(__name__)


def _error_response(error: str, e: ExamScheduleError) -> JSONResponse:
    return JSONResponse(status_code=e.status_code, content={"error": error, "details": e.message})


# ==================== 파싱 / 크롤링 ====================

@router.post("/parse-combined")
async def parse_combined_schedules(
    image: Optional[UploadFile] = File(None, description="공식 시험일정 공지 이미지"),
    text: Optional[str] = Form(None, description="내부 마감일정 텍스트"),
    year: Optional[int] = Form(None, description="기준 연도 (기본값: 올해)"),
    exam_type: Optional[ExamType] = Form(None, description="시험 종류 힌트"),
):
    """
    공지 이미지와 내부 마감 텍스트를 함께 파싱하여 통합 일정을 만듭니다.

    - **image**: (선택) 공식 시험일정 공지 이미지 → OCR → 공식 일정
    - **text**: (선택) 내부 마감일정 텍스트 → 내부 마감
    - 둘 중 하나는 필수이며, 한쪽만 실패하면 나머지 결과로 응답합니다.
    """
    image_bytes = await image.read() if image is not None else None
    mime_type = image.content_type if image is not None else None

    try:
        return await parse_combined(image_bytes, mime_type, text, year=year, exam_type=exam_type)
    except ExamScheduleError as e:
        logger.error(f"통합 파싱 오류: {e.message}")
        return _error_response("일정 파싱 중 오류가 발생했습니다.", e)


@router.post("/parse-text")
def parse_text_schedules(request: ParseTextRequest):
    """내부 마감일정 텍스트만 파싱합니다."""
    try:
        return parse_text(request.text, year=request.year, exam_type=request.exam_type)
    except ExamScheduleError as e:
        logger.error(f"텍스트 파싱 오류: {e.message}")
        return _error_response("텍스트 파싱 중 오류가 발생했습니다.", e)


@router.post("/parse-image")
def parse_image_schedules(
    image: UploadFile = File(..., description="공식 시험일정 공지 이미지"),
    year: Optional[int] = Form(None, description="기준 연도 (기본값: 올해)"),
    exam_type: Optional[ExamType] = Form(None, description="시험 종류 힌트"),
):
    """공지 이미지만 OCR 후 공식 일정으로 파싱합니다."""
    try:
        return parse_image(image.file.read(), image.content_type, year=year, exam_type=exam_type)
    except ExamScheduleError as e:
        logger.error(f"이미지 파싱 오류: {e.message}")
        return _error_response("이미지 파싱 중 오류가 발생했습니다.", e)


@router.post("/crawl-official")
def crawl_official_schedules(request: CrawlRequest):
    """
    공식 사이트에서 지역별 시험일정 원본 행을 크롤링합니다.

    지역별 실패는 debugInfo.errors 에 기록되고 나머지 지역은 계속 수집합니다.
    """
    return crawl_official(request.year, request.month)


@router.post("/crawl-and-group")
def crawl_and_group_schedules(request: CrawlAndGroupRequest):
    """
    지역별 원본 행을 시험일 기준으로 차수별로 묶고 내부 마감일정과 통합합니다.

    - **crawledSchedules**: (선택) 이미 크롤링한 행, 없으면 새로 크롤링
    - **internalText**: (선택) 내부 마감일정 텍스트
    """
    try:
        return crawl_and_group(
            request.year,
            request.month,
            internal_text=request.internal_text,
            crawled_schedules=request.crawled_schedules,
            exam_type=request.exam_type,
        )
    except ExamScheduleError as e:
        logger.error(f"크롤링 기반 그룹핑 오류: {e.message}")
        return _error_response("크롤링 기반 그룹핑 중 오류가 발생했습니다.", e)


@router.post("/save-parsed")
def save_parsed_schedules(request: SaveParsedRequest, db: Session = Depends(get_db)):
    """
    파싱/통합 결과를 저장합니다. (year, exam_type, session_number 기준 upsert)

    - 200: 전부 저장 / 207: 일부 실패 / 500: 전부 실패
    """
    status_code, body = save_parsed(db, request.schedules)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


# ==================== CRUD ====================

@router.get("", response_model=List[ExamScheduleResponse])
def list_exam_schedules(
    year: Optional[int] = Query(None, description="시험 연도", example=2025),
    exam_type: Optional[ExamType] = Query(None, description="시험 종류 (생보/손보/제3보험)"),
    db: Session = Depends(get_db)
):
    """
    저장된 시험일정을 조회합니다.

    접수 상태(registration_status)와 남은 기간(time_until_deadline)은 조회 시점 기준으로 계산합니다.
    """
    return [to_response(schedule) for schedule in get_exam_schedules(db, year=year, exam_type=exam_type)]


@router.post("", response_model=ExamScheduleResponse, status_code=201)
def create_schedule(request: ExamScheduleCreate, db: Session = Depends(get_db)):
    """시험일정을 직접 등록합니다."""
    if get_exam_schedule_by_key(db, request.year, request.exam_type, request.session_number):
        raise HTTPException(
            status_code=409,
            detail=f"{request.year}년 {request.exam_type.value} {request.session_number}차 일정이 이미 있습니다."
        )
    return to_response(create_exam_schedule(db, request.model_dump()))


@router.post("/bulk", response_model=List[ExamScheduleResponse], status_code=201)
def bulk_create_schedules(request: BulkCreateRequest, db: Session = Depends(get_db)):
    """여러 시험일정을 한 번에 등록합니다. (하나라도 중복이면 전체 거부)"""
    keys = [(item.year, item.exam_type, item.session_number) for item in request.schedules]
    if len(set(keys)) != len(keys):
        raise HTTPException(status_code=400, detail="요청 안에 같은 연도/시험 종류/차수 일정이 중복되어 있습니다.")

    for year, exam_type, session_number in keys:
        if get_exam_schedule_by_key(db, year, exam_type, session_number):
            raise HTTPException(
                status_code=409,
                detail=f"{year}년 {exam_type.value} {session_number}차 일정이 이미 있습니다."
            )

    schedules = bulk_create_exam_schedules(db, [item.model_dump() for item in request.schedules])
    return [to_response(schedule) for schedule in schedules]


@router.get("/{schedule_id}", response_model=ExamScheduleResponse)
def get_schedule(schedule_id: str, db: Session = Depends(get_db)):
    schedule = get_exam_schedule_by_id(db, schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="시험일정을 찾을 수 없습니다.")
    return to_response(schedule)


@router.patch("/{schedule_id}", response_model=ExamScheduleResponse)
def update_schedule(schedule_id: str, request: ExamScheduleUpdate, db: Session = Depends(get_db)):
    """
    전달된 필드만 수정합니다.

    연도/시험 종류/차수를 바꿔서 다른 일정과 키가 겹치면 409를 반환합니다.
    """
    schedule = get_exam_schedule_by_id(db, schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="시험일정을 찾을 수 없습니다.")

    values = request.model_dump(exclude_unset=True)
    year = values.get("year", schedule.year)
    exam_type = getattr(values.get("exam_type"), "value", None) or schedule.exam_type
    session_number = values.get("session_number", schedule.session_number)

    existing = get_exam_schedule_by_key(db, year, exam_type, session_number)
    if existing is not None and existing.id != schedule.id:
        raise HTTPException(
            status_code=409,
            detail=f"{year}년 {exam_type} {session_number}차 일정이 이미 있습니다."
        )
    return to_response(update_exam_schedule(db, schedule, values))


@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: str, db: Session = Depends(get_db)):
    schedule = get_exam_schedule_by_id(db, schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="시험일정을 찾을 수 없습니다.")
    delete_exam_schedule(db, schedule)
    return {"success": True, "id": schedule_id}
