"""
시험일정 공지 이미지 OCR 클라이언트

입력: 이미지 bytes + mime type / 출력: 추출된 텍스트
- openai: vision 모델에 base64 이미지를 보내 텍스트 추출
- tesseract: pytesseract 로컬 OCR (kor+eng)
"""

import base64
import io
import logging
from typing import Optional

import pytesseract
from PIL import Image

from app.config.settings import settings
from app.core.exceptions import ConfigurationError, ExamScheduleError
from app.utils.model.structuring_client import build_openai_client, translate_openai_error

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "이미지에 있는 모든 텍스트를 정확하게 추출해주세요. "
    "표 형태의 데이터라면 구조를 유지하면서 추출해주세요. "
    "시험 일정표나 공지사항이라면 날짜, 시간, 지역 정보를 놓치지 말고 추출해주세요."
)


class OcrClient:
    """시험일정 이미지 텍스트 추출"""

    def __init__(
        self,
        backend: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.backend = (backend or settings.OCR_BACKEND).lower()
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_VISION_MODEL
        self.timeout = timeout or settings.EXTRACTION_TIMEOUT_SECONDS

    def extract_text(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
        if not image_bytes:
            raise ExamScheduleError("빈 이미지 파일입니다.")

        if self.backend == "tesseract":
            text = self._extract_with_tesseract(image_bytes)
        elif self.backend == "openai":
            text = self._extract_with_openai(image_bytes, mime_type or "image/jpeg")
        else:
            raise ConfigurationError(f"지원하지 않는 OCR_BACKEND: {self.backend}")

        if not text or not text.strip():
            raise ExamScheduleError("이미지에서 텍스트를 찾을 수 없습니다.")

        logger.info(f"OCR 완료 ({self.backend}): {len(text)}자")
        return text

    def _extract_with_tesseract(self, image_bytes: bytes) -> str:
        try:
            image = Image.open(io.BytesIO(image_bytes))
            return pytesseract.image_to_string(image, lang="kor+eng")
        except (OSError, pytesseract.TesseractError) as e:
            raise ExamScheduleError(f"이미지 텍스트 추출 실패: {e}") from e

    def _extract_with_openai(self, image_bytes: bytes, mime_type: str) -> str:
        client = build_openai_client(self.api_key, self.timeout)
        base64_image = base64.b64encode(image_bytes).decode("ascii")
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{mime_type};base64,{base64_image}",
                                    "detail": "high",
                                },
                            },
                        ],
                    }
                ],
                max_tokens=2000,
            )
        except Exception as e:
            translated = translate_openai_error(e)
            if translated is e:
                raise
            raise translated from e

        return response.choices[0].message.content if response and response.choices else ""
