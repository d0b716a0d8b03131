import inspect
import logging
import os
import sys

from contextvars import ContextVar

from loguru import logger

from imagegen.core import path_conf
from imagegen.core.conf import settings

request_id_ctx: ContextVar[str] = ContextVar('request_id', default=settings.TRACE_ID_LOG_DEFAULT_VALUE)


class InterceptHandler(logging.Handler):
    """
    Route stdlib logging records into loguru

    Reference: https://loguru.readthedocs.io/en/stable/overview.html#entirely-compatible-with-standard-logging
    """

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def request_id_filter(record) -> bool:
    rid = request_id_ctx.get()
    record['extra']['request_id'] = rid[: settings.TRACE_ID_LOG_LENGTH]
    return True


def setup_logging() -> None:
    """Take over stdlib logging and configure the console sink"""
    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(settings.LOG_STD_LEVEL)

    for name in logging.root.manager.loggerDict.keys():
        logging.getLogger(name).handlers = []
        if 'uvicorn.access' in name or 'watchfiles.main' in name:
            logging.getLogger(name).propagate = False
        else:
            logging.getLogger(name).propagate = True

    logger.remove()
    logger.configure(extra={'request_id': settings.TRACE_ID_LOG_DEFAULT_VALUE})
    logger.add(
        sys.stdout,
        level=settings.LOG_STD_LEVEL,
        format=settings.LOG_FORMAT,
        filter=request_id_filter,
    )


def set_custom_logfile() -> None:
    """Add access and error file sinks"""
    if not settings.LOG_FILE_ENABLED:
        return

    log_path = path_conf.LOG_DIR
    if not os.path.exists(log_path):
        os.mkdir(log_path)

    log_access_file = os.path.join(log_path, settings.LOG_ACCESS_FILENAME)
    log_error_file = os.path.join(log_path, settings.LOG_ERROR_FILENAME)

    log_config = {
        'format': settings.LOG_FORMAT,
        'enqueue': True,
        'rotation': '00:00',
        'retention': '7 days',
        'compression': 'tar.gz',
        'filter': request_id_filter,
    }

    logger.add(
        str(log_access_file),
        level=settings.LOG_FILE_ACCESS_LEVEL,
        backtrace=False,
        diagnose=False,
        **log_config,
    )

    logger.add(
        str(log_error_file),
        level=settings.LOG_FILE_ERROR_LEVEL,
        backtrace=True,
        diagnose=True,
        **log_config,
    )


log = logger
