"""
로깅 설정 모듈
tag_analytics 패키지 로거에만 핸들러를 붙여 호출하는 애플리케이션의 루트 로거는 건드리지 않는다
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "tag_analytics"
LOG_DIR = Path("logs")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s - %(message)s"

# 모듈별 로깅 레벨 (구간 단위 디버그는 기본적으로 숨김)
MODULE_LOG_LEVELS = {
    "tag_analytics.tag_system": logging.WARNING,
    "tag_analytics.analysis.anomaly_detector": logging.WARNING,
    "tag_analytics.analysis.batch_processor": logging.INFO,   # 배치 시작/완료 요약
    "tag_analytics.config": logging.INFO,                     # 설정 교체 이력
}


def setup_logging(log_file: Optional[str] = None, debug: bool = False,
                  log_dir: Union[str, Path, None] = None) -> logging.Logger:
    """
    엔진 로깅 초기화 (여러 번 호출해도 핸들러가 중복되지 않음)

    Args:
        log_file: 로그 파일 접두어 ({log_dir}/{log_file}_YYYYMMDD.log), None이면 콘솔만
        debug: 모든 엔진 모듈을 DEBUG로 출력
        log_dir: 로그 디렉토리 (기본: ./logs)

    Returns:
        패키지 로거
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    package_logger.addHandler(console_handler)

    if log_file:
        directory = Path(log_dir) if log_dir is not None else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        file_path = directory / f"{log_file}_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(file_path, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(file_handler)

    for module_name, level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(logging.DEBUG if debug else level)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    엔진 하위 로거 (패키지 밖 이름은 tag_analytics 아래로 붙인다)

    Args:
        name: 모듈명 (보통 __name__ 사용)
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
