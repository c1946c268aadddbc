"""헬스 체크 엔드포인트"""
from fastapi import APIRouter

from catalog_gateway import __version__
from catalog_gateway.core.config import settings
from catalog_gateway.schemas.search_schema import HealthResponse, HealthServices

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    헬스 체크 엔드포인트

    - Legacy: 항상 true (요청 시 브라우저로 접속)
    - YCL: 설정 존재 여부 (실제 접속 확인 아님)
    """
    return HealthResponse(
        status="ok",
        services=HealthServices(legacy=True, ycl=settings.ycl_available),
    )


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "Federated Catalog Search",
        "version": __version__,
        "docs": "/docs",
    }
