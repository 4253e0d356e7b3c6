"""
공통 테스트 설정

app 모듈을 import 하기 전에 환경 변수를 고정한다.
- DB: 인메모리 SQLite
- 구조화: 규칙 기반 파서 (외부 API 호출 없음)
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EXTRACTION_BACKEND"] = "rules"
os.environ["OCR_BACKEND"] = "tesseract"
os.environ["OPENAI_API_KEY"] = ""
os.environ["CRAWL_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from app.db.config.base import Base, SessionLocal, engine
from app.main import app


@pytest.fixture
def client():
    Base.metadata.create_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
