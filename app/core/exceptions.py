"""
Exam schedule extraction error taxonomy

추출 단계에서 발생하는 오류는 Reconciler까지 전달되지 않는다.
서비스 계층에서 잡아서 부분 실패로 기록하거나 HTTP 응답으로 변환한다.
"""
from typing import Optional


class ExamScheduleError(Exception):
    """시험일정 통합 엔진 기본 예외"""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(ExamScheduleError):
    """API 키 누락/무효 등 설정 오류 (fallback 없음)"""


class UpstreamError(ExamScheduleError):
    """외부 completion 엔드포인트의 2xx 이외 응답"""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class UpstreamQuotaError(UpstreamError):
    """할당량 소진 (insufficient_quota) - 데모 데이터로 대체"""


class UpstreamRateLimitError(UpstreamError):
    """요청 한도 초과 - 사용자가 잠시 후 재시도해야 함"""

    status_code = 429


class MalformedResponseError(ExamScheduleError):
    """구조화 응답이 JSON이 아니거나 스키마를 위반"""

    status_code = 422


# 공식 일정 추출 쪽에서 부르던 이름
ParseError = MalformedResponseError


class ExtractionPartialFailure(ExamScheduleError):
    """이미지/텍스트 두 경로 중 하나가 실패 (전체 요청은 계속 진행)"""

    def __init__(self, source: str, cause: BaseException):
        super().__init__(f"{source} 경로 추출 실패: {cause}")
        self.source = source
        self.cause = cause


class InvalidInputError(ExamScheduleError):
    """요청에 처리할 입력이 없음 (이미지/텍스트 모두 누락 등)"""

    status_code = 400
