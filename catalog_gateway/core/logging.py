"""로깅 설정

전역 logger를 import해서 쓰지 않고, 각 컴포넌트가 생성자에서 logger를 주입받습니다.
주입이 없으면 get_logger()로 'catalog_gateway' 하위 logger를 사용합니다.
"""
import logging
import os
import sys
from typing import Optional

from catalog_gateway.core.config import settings

ROOT_LOGGER_NAME = "catalog_gateway"

# Production 환경에서는 DEBUG 로그 비활성화
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """루트 로거 초기화 (여러 번 호출해도 핸들러는 한 번만 등록)"""
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    log_level = (level or settings.log_level).upper()
    if IS_PRODUCTION and log_level == "DEBUG":
        log_level = "INFO"
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    if IS_PRODUCTION:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """컴포넌트별 하위 로거 (예: 'ycl', 'lw', 'search', 'api')"""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")


def mask_cookie(value: Optional[str], keep: int = 15) -> str:
    """쿠키 값을 로그에 남기기 전에 앞부분만 남기고 자름"""
    if not value:
        return "[empty]"
    if len(value) <= keep:
        return value[:3] + "..."
    return value[:keep] + "..."
