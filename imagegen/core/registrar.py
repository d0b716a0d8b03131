from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imagegen import __version__
from imagegen.common.log import log, request_id_ctx, set_custom_logfile, setup_logging
from imagegen.core.conf import settings
from imagegen.database.db import create_tables
from imagegen.database.redis import redis_client
from imagegen.src.billing.shared.exceptions import BillingError


@asynccontextmanager
async def register_init(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup and shutdown

    :param app: FastAPI application
    :return:
    """
    # Create database tables
    await create_tables()

    # Connect to redis
    await redis_client.open()

    yield

    # Close redis connection
    await redis_client.aclose()


def register_app() -> FastAPI:
    """Build the FastAPI application"""
    app = FastAPI(
        title=settings.FASTAPI_TITLE,
        version=__version__,
        description=settings.FASTAPI_DESCRIPTION,
        docs_url=settings.FASTAPI_DOCS_URL,
        redoc_url=settings.FASTAPI_REDOC_URL,
        openapi_url=settings.FASTAPI_OPENAPI_URL,
        lifespan=register_init,
    )

    # Logging
    register_logger()

    # Middleware
    register_middleware(app)

    # Routes
    register_router(app)

    # Exception handlers
    register_exception(app)

    return app


def register_logger() -> None:
    """Configure logging"""
    setup_logging()
    set_custom_logfile()


def register_middleware(app: FastAPI) -> None:
    """
    Register middleware (last added runs first)

    :param app: FastAPI application
    :return:
    """

    @app.middleware('http')
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(settings.TRACE_ID_REQUEST_HEADER_KEY) or uuid4().hex
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[settings.TRACE_ID_REQUEST_HEADER_KEY] = request_id
        return response

    # CORS: webhooks are called cross-origin by the providers and the frontend calls the rest
    if settings.MIDDLEWARE_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=['*'],
            allow_headers=['*'],
            expose_headers=settings.CORS_EXPOSE_HEADERS,
        )


def register_router(app: FastAPI) -> None:
    """
    Register routes

    :param app: FastAPI application
    :return:
    """
    from imagegen.app.router import router

    app.include_router(router)


def register_exception(app: FastAPI) -> None:
    """
    Register exception handlers

    :param app: FastAPI application
    :return:
    """

    @app.exception_handler(BillingError)
    async def billing_exception_handler(request: Request, exc: BillingError) -> JSONResponse:
        if exc.http_status >= 500:
            log.error(f'{request.method} {request.url.path} failed: {exc.code} {exc.message}')
        else:
            log.warning(f'{request.method} {request.url.path} rejected: {exc.code} {exc.message}')
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())
