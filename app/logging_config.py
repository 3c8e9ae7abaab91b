"""
애플리케이션 로깅 설정

루트 로거에 콘솔 핸들러 하나를 붙이고 레벨은 LOG_LEVEL 환경변수를 따른다.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - %(name)-25s - %(message)s'


def setup_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # uvicorn 리로드 등으로 두 번 호출되어도 핸들러가 중복되지 않도록
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    # SQL 로그는 DB_ECHO로 따로 제어
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.info("--- Logging initialized ---")
    logging.debug(f"Log level set to: {logging.getLevelName(level)}")
