"""FastAPI 앱 팩토리"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_gateway.api import health_router, search_router, shutdown_browser_provider
from catalog_gateway.core.config import settings
from catalog_gateway.core.exceptions import CatalogGatewayException, ErrorKind
from catalog_gateway.core.logging import get_logger, setup_logging

logger = get_logger("api")

# 검증 실패와 Legacy 구조 인식 실패만 별도 상태 코드, 나머지는 500
STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STRUCTURAL_SCRAPE: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    setup_logging()
    logger.info("Starting application...")
    yield
    logger.info("Shutting down application...")
    await shutdown_browser_provider()


async def gateway_exception_handler(request: Request, exc: CatalogGatewayException) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if exc.kind == ErrorKind.VALIDATION:
        logger.warning(f"[API] Invalid request: {exc.message}")
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    logger.error(f"[API] Request failed: {request.url.path} -> {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "timestamp": datetime.now().isoformat(),
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"[API] Unexpected error in {request.url.path}: {type(exc).__name__}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) or type(exc).__name__,
            "timestamp": datetime.now().isoformat(),
        },
    )


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CatalogGatewayException, gateway_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(search_router)

    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
