"""Tests for the loguru logging setup."""

import io
import logging


def test_stdlib_records_are_formatted_with_request_id():
    from imagegen.common.log import log, request_id_ctx, request_id_filter, setup_logging
    from imagegen.core.conf import settings

    setup_logging()
    buffer = io.StringIO()
    sink_id = log.add(buffer, format=settings.LOG_FORMAT, filter=request_id_filter, colorize=False, catch=False)
    token = request_id_ctx.set('0f3c9a2b7d5e4c1a8b6f9e2d3c4b5a61-extra')
    try:
        logging.getLogger('imagegen.tests.logging').warning('balance cache miss for user-1')
    finally:
        request_id_ctx.reset(token)
        log.remove(sink_id)

    line = buffer.getvalue()
    assert 'WARNING' in line
    assert '| 0f3c9a2b7d5e4c1a8b6f9e2d3c4b5a61 |' in line
    assert 'balance cache miss for user-1' in line


def test_default_request_id_outside_requests():
    from imagegen.common.log import log, request_id_filter, setup_logging
    from imagegen.core.conf import settings

    setup_logging()
    buffer = io.StringIO()
    sink_id = log.add(buffer, format=settings.LOG_FORMAT, filter=request_id_filter, colorize=False, catch=False)
    try:
        log.info('startup')
    finally:
        log.remove(sink_id)

    assert f'| {settings.TRACE_ID_LOG_DEFAULT_VALUE} | startup' in buffer.getvalue()
