import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import settings
from app.db.config.base import Base, engine

# SQLAlchemy 모델 import (create_all 대상 테이블 등록을 위해 필요)
from app.models import exam_schedule  # noqa: F401
from app.routers import routers_exam_schedule

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# FastAPI 앱 생성
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 운영 환경에서는 변경 필요
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routers_exam_schedule.router)


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
    logger.info("exam_schedules 테이블 확인 완료")


@app.get("/")
async def root():
    """API 루트 엔드포인트 - 서비스 소개 및 기본 정보 제공"""
    return {
        "message": "Welcome to HR Recruit Exam Schedule API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=7777,
        reload=settings.DEBUG
    )
