"""
구조화 엔드포인트 클라이언트 테스트 (네트워크 호출 없음)

실행 방법:
    pytest tests/exam_schedule/test_structuring_client.py -v
"""

from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError, AuthenticationError, InternalServerError, RateLimitError

from app.core.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    UpstreamError,
    UpstreamQuotaError,
    UpstreamRateLimitError,
)
from app.utils.model.structuring_client import (
    OpenAIStructuringClient,
    build_openai_client,
    parse_schedules_json,
    strip_code_fence,
    translate_openai_error,
)

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


def make_response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", COMPLETIONS_URL))


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error

    def create(self, **kwargs):
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(content=None, error=None) -> OpenAIStructuringClient:
    client = OpenAIStructuringClient(api_key="test-key")
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(content, error)))
    return client


class TestResponseParsing:
    """응답 본문 처리"""

    def test_strip_code_fence(self):
        assert strip_code_fence('```json\n{"schedules": []}\n```') == '{"schedules": []}'
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'

    def test_parse_schedules(self):
        assert parse_schedules_json('```json\n{"schedules": [{"session_number": 1}]}\n```') == [{"session_number": 1}]

    def test_invalid_json(self):
        with pytest.raises(MalformedResponseError):
            parse_schedules_json("일정을 찾을 수 없습니다")

    def test_missing_schedules_key(self):
        with pytest.raises(MalformedResponseError):
            parse_schedules_json('{"items": []}')

    def test_non_object_items(self):
        with pytest.raises(MalformedResponseError):
            parse_schedules_json('{"schedules": ["1차"]}')


class TestErrorTranslation:
    """OpenAI 오류 → 엔진 예외"""

    def test_authentication(self):
        error = AuthenticationError("invalid key", response=make_response(401), body=None)
        assert isinstance(translate_openai_error(error), ConfigurationError)

    def test_quota(self):
        error = RateLimitError(
            "quota", response=make_response(429), body={"code": "insufficient_quota", "message": "quota"}
        )
        assert isinstance(translate_openai_error(error), UpstreamQuotaError)

    def test_rate_limit(self):
        error = RateLimitError(
            "slow down", response=make_response(429), body={"code": "rate_limit_exceeded", "message": "slow down"}
        )
        translated = translate_openai_error(error)
        assert isinstance(translated, UpstreamRateLimitError)
        assert not isinstance(translated, UpstreamQuotaError)

    def test_other_status_carries_message(self):
        error = InternalServerError("upstream down", response=make_response(500), body=None)
        translated = translate_openai_error(error)
        assert isinstance(translated, UpstreamError)
        assert translated.upstream_status == 500
        assert "upstream down" in translated.message

    def test_connection_error(self):
        error = APIConnectionError(request=httpx.Request("POST", COMPLETIONS_URL))
        assert isinstance(translate_openai_error(error), UpstreamError)

    def test_unrelated_error_passes_through(self):
        error = KeyError("x")
        assert translate_openai_error(error) is error


class TestCompleteJson:
    """complete_json 호출 흐름"""

    def test_fenced_response(self):
        client = make_client(content='```json\n{"schedules": [{"session_number": 2}]}\n```')
        assert client.complete_json("규칙", "텍스트") == [{"session_number": 2}]

    def test_empty_content(self):
        with pytest.raises(MalformedResponseError):
            make_client(content="").complete_json("규칙", "텍스트")

    def test_quota_error_translated(self):
        error = RateLimitError("quota", response=make_response(429), body={"code": "insufficient_quota"})
        with pytest.raises(UpstreamQuotaError):
            make_client(error=error).complete_json("규칙", "텍스트")

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError):
            build_openai_client("", 10)
