"""
태그 분석 엔진 오류 정의
"""


class TagAnalyticsError(Exception):
    """태그 분석 엔진 기본 오류"""


class InvalidTagCodeError(TagAnalyticsError, ValueError):
    """카탈로그에 없는 태그 코드"""

    def __init__(self, value, message: str = None):
        self.value = value
        super().__init__(message or f"알 수 없는 태그 코드: {value!r}")


class TimestampError(TagAnalyticsError, ValueError):
    """누락되었거나 해석할 수 없는 타임스탬프, 또는 순서가 어긋난 입력"""


class SequenceError(TagAnalyticsError, ValueError):
    """한 시퀀스에 여러 직원의 태그가 섞인 경우"""


class ConfigurationError(TagAnalyticsError, ValueError):
    """잘못된 임계값 또는 규칙 설정"""
