"""
모델 관련 유틸리티

외부 구조화(텍스트 → JSON) 엔드포인트와 OCR 엔드포인트 클라이언트를 제공합니다.
"""

from .ocr_client import OcrClient
from .structuring_client import OpenAIStructuringClient

__all__ = ["OcrClient", "OpenAIStructuringClient"]
