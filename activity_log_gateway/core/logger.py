# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/core/logger.py
# 목적   : 모듈별 로거에 공통 StreamHandler/포맷을 붙이는 헬퍼
# 사용   : logger = get_logger("activity_log_gateway.producer")
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
ROOT_LOGGER_NAME = "activity_log_gateway"


def _ensure_handler(logger: logging.Logger) -> None:
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    이름 붙은 로거를 반환한다.

    핸들러는 패키지 루트 로거에만 한 번 붙이고, 하위 로거는 전파(propagate)로 출력한다.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    _ensure_handler(root)
    if root.level == logging.NOTSET:
        root.setLevel(logging.INFO)
    return logging.getLogger(name)


def configure_logging(level: str | int = "INFO") -> None:
    """패키지 전체 로그 레벨을 설정한다. (LOG_LEVEL 값)"""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    _ensure_handler(root)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    root.setLevel(level)
