"""
텍스트 구조화 엔드포인트 클라이언트

시스템 프롬프트(추출 규칙) + 사용자 텍스트를 보내고 {"schedules": [...]} JSON을 받는다.
OpenAI 오류 응답은 시험일정 엔진의 예외 체계로 변환한다.

사용 예시:
    client = OpenAIStructuringClient()
    schedules = client.complete_json(SYSTEM_PROMPT, "1~4차 시험접수마감: 11월 4일(화) 오전 11시")
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
    RateLimitError,
)

from app.config.settings import settings
from app.core.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    UpstreamError,
    UpstreamQuotaError,
    UpstreamRateLimitError,
)

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


def strip_code_fence(content: str) -> str:
    """```json ... ``` 로 감싼 응답에서 본문만 남긴다"""
    text = (content or "").strip()
    if text.startswith("```"):
        text = _FENCE_OPEN_RE.sub("", text, count=1)
        text = _FENCE_CLOSE_RE.sub("", text)
    return text.strip()


def parse_schedules_json(content: str) -> List[Dict[str, Any]]:
    """구조화 응답 문자열을 schedules 리스트로 변환 (JSON/스키마 위반이면 MalformedResponseError)"""
    try:
        data = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"AI가 생성한 응답이 올바른 JSON 형식이 아닙니다: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("schedules"), list):
        raise MalformedResponseError("유효한 일정 데이터가 생성되지 않았습니다. (schedules 배열 없음)")

    schedules = data["schedules"]
    if not all(isinstance(item, dict) for item in schedules):
        raise MalformedResponseError("schedules 배열의 항목이 객체가 아닙니다.")
    return schedules


def translate_openai_error(error: Exception) -> Exception:
    """OpenAI SDK 예외 → 엔진 예외"""
    if isinstance(error, AuthenticationError):
        return ConfigurationError("OpenAI API 키가 유효하지 않습니다.")
    if isinstance(error, RateLimitError):
        code = getattr(error, "code", None)
        if code == "insufficient_quota" or "insufficient_quota" in str(error):
            return UpstreamQuotaError("OpenAI API 할당량이 소진되었습니다.", upstream_status=429)
        return UpstreamRateLimitError(
            "API 요청 한도가 초과되었습니다. 잠시 후 다시 시도해주세요.", upstream_status=429
        )
    if isinstance(error, APIStatusError):
        return UpstreamError(
            f"OpenAI API 오류 ({error.status_code}): {error.message}",
            upstream_status=error.status_code,
        )
    if isinstance(error, (APITimeoutError, APIConnectionError)):
        return UpstreamError(f"OpenAI API 연결 실패: {error}")
    return error


def build_openai_client(api_key: str, timeout: float) -> OpenAI:
    if not api_key:
        raise ConfigurationError("OpenAI API 키가 설정되지 않았습니다.")
    # 자동 재시도 없음 - 실패는 호출자에게 그대로 전달
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


class OpenAIStructuringClient:
    """
    자유 텍스트 → {"schedules": [...]} 구조화 클라이언트

    Attributes:
        model: completion 모델명
        timeout: 요청 타임아웃 (초)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.EXTRACTION_TIMEOUT_SECONDS
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = build_openai_client(self.api_key, self.timeout)
        return self._client

    def complete_json(self, system_prompt: str, user_text: str) -> List[Dict[str, Any]]:
        """
        추출 규칙(system_prompt)에 따라 user_text를 구조화

        Returns:
            schedules 리스트 (각 항목은 dict)

        Raises:
            ConfigurationError: API 키 누락/무효
            UpstreamQuotaError: 할당량 소진
            UpstreamRateLimitError: 요청 한도 초과
            UpstreamError: 그 외 2xx 이외 응답
            MalformedResponseError: JSON/스키마 위반
        """
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_text},
                ],
                temperature=0.1,
                max_tokens=2000,
            )
        except Exception as e:
            translated = translate_openai_error(e)
            if translated is e:
                raise
            raise translated from e

        content = response.choices[0].message.content if response and response.choices else None
        if not content:
            raise MalformedResponseError("AI에서 응답을 생성하지 못했습니다.")

        logger.debug(f"구조화 응답 원문: {content[:500]}")
        return parse_schedules_json(content)
