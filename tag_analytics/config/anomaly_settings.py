"""
이상 패턴 감지 설정
불변 스냅샷으로 관리하며, 설정 변경은 스냅샷 전체를 교체한다
"""

import os
import threading
import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = 'TAG_ANOMALY_'


@dataclass(frozen=True)
class AnomalyConfig:
    """이상 패턴 감지 임계값"""
    tailgating_threshold_seconds: float = 10
    long_absence_threshold_minutes: float = 240  # 4시간
    no_work_threshold_hours: float = 8
    shift_overlap_minutes: float = 30
    shift_overlap_start_hour: int = 20           # 교대 겹침 구간 시작 (20:00)

    def __post_init__(self):
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{item.name} must be a number, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"{item.name} must not be negative, got {value}")
        if not 0 <= self.shift_overlap_start_hour <= 23:
            raise ConfigurationError(
                f"shift_overlap_start_hour must be between 0 and 23, got {self.shift_overlap_start_hour}"
            )

    def replace(self, **changes) -> 'AnomalyConfig':
        """일부 값을 바꾼 새 스냅샷"""
        unknown = set(changes) - {item.name for item in fields(self)}
        if unknown:
            raise ConfigurationError(f"알 수 없는 설정 항목: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'AnomalyConfig':
        """딕셔너리에서 생성 (없거나 None인 항목은 기본값)"""
        if not data:
            return cls()
        return cls().replace(**{key: value for key, value in data.items() if value is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 prefix: str = ENV_PREFIX) -> 'AnomalyConfig':
        """환경 변수로 오버라이드 (예: TAG_ANOMALY_TAILGATING_THRESHOLD_SECONDS=5)"""
        environ = os.environ if environ is None else environ
        overrides = {}
        for item in fields(cls):
            raw = environ.get(prefix + item.name.upper())
            if raw is None or raw == '':
                continue
            try:
                overrides[item.name] = int(raw) if item.type in (int, 'int') else float(raw)
            except ValueError:
                raise ConfigurationError(f"{prefix + item.name.upper()} 값이 숫자가 아닙니다: {raw!r}") from None
        if overrides:
            logger.info(f"환경 변수 설정 적용: {overrides}")
        return cls.from_dict(overrides)


class ConfigStore:
    """현재 설정 스냅샷 보관

    update/replace는 새 스냅샷을 만든 뒤 잠금 안에서 참조만 교체한다.
    진행 중인 감지 작업은 시작 시점에 받은 스냅샷을 그대로 사용한다.
    """

    def __init__(self, config: Optional[AnomalyConfig] = None):
        self._config = config or AnomalyConfig()
        self._lock = threading.Lock()

    def snapshot(self) -> AnomalyConfig:
        return self._config

    def replace(self, config: AnomalyConfig) -> AnomalyConfig:
        if not isinstance(config, AnomalyConfig):
            raise ConfigurationError(f"AnomalyConfig expected, got {type(config).__name__}")
        with self._lock:
            previous = self._config
            self._config = config
        logger.info(f"이상 감지 설정 교체: {previous.to_dict()} -> {config.to_dict()}")
        return config

    def update(self, **changes) -> AnomalyConfig:
        """일부 항목만 바꾼 새 스냅샷으로 교체"""
        with self._lock:
            new_config = self._config.replace(**changes)
            self._config = new_config
        logger.info(f"이상 감지 설정 변경: {changes}")
        return new_config


_store_lock = threading.Lock()
_default_store: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    """프로세스 공용 설정 저장소 (환경 변수 반영)"""
    global _default_store
    with _store_lock:
        if _default_store is None:
            _default_store = ConfigStore(AnomalyConfig.from_env())
        return _default_store
