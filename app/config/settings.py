"""Application Settings Configuration"""

import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings"""

    # Application
    APP_NAME: str = "HR Recruit Exam Schedule API"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "보험 설계사 시험일정 통합(공식 공지/공식 사이트/내부 마감) 및 조회 API"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: int = int(os.getenv("DB_PORT", "3306"))
    DB_USER: str = os.getenv("DB_USER", "admin")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "admin")
    DB_NAME: str = os.getenv("DB_NAME", "hr_recruit")

    # OpenAI
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_VISION_MODEL: str = os.getenv("OPENAI_VISION_MODEL", "gpt-4o-mini")

    # Extraction
    # openai: 외부 completion 엔드포인트로 구조화 / rules: 정규식 기반 구조화
    EXTRACTION_BACKEND: str = os.getenv("EXTRACTION_BACKEND", "openai")
    # openai: vision 모델 OCR / tesseract: pytesseract 로컬 OCR
    OCR_BACKEND: str = os.getenv("OCR_BACKEND", "openai")
    EXTRACTION_TIMEOUT_SECONDS: float = float(os.getenv("EXTRACTION_TIMEOUT_SECONDS", "60"))

    # 생명보험협회 시험 접수 사이트
    CRAWL_BASE_URL: str = os.getenv("CRAWL_BASE_URL", "https://exam.insure.or.kr/lp/schd/list")
    CRAWL_TIMEOUT_SECONDS: int = int(os.getenv("CRAWL_TIMEOUT_SECONDS", "10"))
    CRAWL_DELAY_SECONDS: float = float(os.getenv("CRAWL_DELAY_SECONDS", "1.0"))

    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        # MySQL 고정 사용 (mysqlconnector 드라이버)
        return (
            f"mysql+mysqlconnector://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


settings = Settings()
