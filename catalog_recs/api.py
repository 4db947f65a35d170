"""
Catalog Recommendation Service — FastAPI Application Layer

Endpoints:
  1. GET /products/{id}/recommendations        — v1 unified / v2 two-list
  2. GET /products/{id}/recommendations/debug  — raw generator output
  3. GET /recommendations/debug/catalog        — catalog-wide spec summary
  4. GET /health                               — Health check
"""
from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from catalog_recs.asyncpg_repository import AsyncPGProductRepository, DatabasePool
from catalog_recs.config import Settings, get_settings
from catalog_recs.engine import RecommendationEngine
from catalog_recs.errors import ProductNotFoundError
from catalog_recs.logging_config import setup_logging
from catalog_recs.models import (
    CatalogDebug, HealthResponse, RecommendationDebug, RecommendationMode,
    TwoListRecommendations, UnifiedRecommendations,
)
from catalog_recs.repository import InMemoryRepository, ProductRepository

logger = logging.getLogger(__name__)

# ============================================================
# Application State (shared singletons)
# ============================================================

class AppState:
    """Holds all shared service instances."""
    settings: Settings
    repo: ProductRepository
    engine: RecommendationEngine
    db: Optional[DatabasePool] = None
    start_time: float
    request_count: int = 0

    def __init__(self, settings: Settings):
        self.settings = settings
        self.start_time = time.monotonic()
        self.request_count = 0


def _state(request: Request) -> AppState:
    return request.app.state.services

# ============================================================
# Lifespan: Startup / Shutdown
# ============================================================

async def _build_repository(state: AppState) -> ProductRepository:
    s = state.settings
    if s.repository_backend == "memory":
        if s.seed_file:
            return InMemoryRepository.from_seed_file(s.seed_file)
        logger.warning("In-memory backend started without a seed file; catalog is empty")
        return InMemoryRepository()

    state.db = DatabasePool(
        s.asyncpg_dsn,
        min_size=s.db_pool_min,
        max_size=s.db_pool_max,
        command_timeout=s.db_command_timeout,
    )
    await state.db.initialize()
    return AsyncPGProductRepository(state.db)


def create_app(
    settings: Optional[Settings] = None,
    repo: Optional[ProductRepository] = None,
) -> FastAPI:
    """Build the application; `repo` bypasses backend construction."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s (%s)...", settings.app_name, settings.environment)
        state = AppState(settings)
        state.repo = repo if repo is not None else await _build_repository(state)
        state.engine = RecommendationEngine(state.repo, settings)
        app.state.services = state
        logger.info("Service ready. Backend: %s", type(state.repo).__name__)
        yield
        logger.info("Shutting down %s...", settings.app_name)
        if state.db is not None:
            await state.db.close()

    app = FastAPI(
        title="Catalog Recommendation API",
        description="Related products and best-seller recommendations for the "
                    "sporting-goods catalog.",
        version=settings.version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def timing_middleware(request: Request, call_next):
        start = time.monotonic()
        services = getattr(request.app.state, "services", None)
        if services is not None:
            services.request_count += 1
        response = await call_next(request)
        elapsed = int((time.monotonic() - start) * 1000)
        response.headers["X-Response-Time-Ms"] = str(elapsed)
        return response

    app.include_router(router)
    return app


router = APIRouter()

# ============================================================
# 1. GET /products/{id}/recommendations
# ============================================================

def _check_limit(name: str, value: Optional[int], maximum: int) -> None:
    if value is not None and value > maximum:
        raise HTTPException(422, f"{name} must be at most {maximum}")


@router.get(
    "/products/{product_id}/recommendations",
    response_model=Union[UnifiedRecommendations, TwoListRecommendations],
    tags=["Recommendations"],
)
async def get_recommendations(
    request: Request,
    product_id: UUID,
    mode: RecommendationMode = Query(RecommendationMode.V1),
    limit: Optional[int] = Query(None, ge=1),
    related_limit: Optional[int] = Query(None, alias="relatedLimit", ge=1),
    like_limit: Optional[int] = Query(None, alias="likeLimit", ge=1),
):
    """
    Recommendations for the product being viewed.

    - mode=v1: one ranked list from the brand, skill and specs generators
    - mode=v2: relatedProducts (same brand line) and youMightLike (best sellers)
    """
    state = _state(request)
    maximum = state.settings.max_limit
    _check_limit("limit", limit, maximum)
    _check_limit("relatedLimit", related_limit, maximum)
    _check_limit("likeLimit", like_limit, maximum)

    try:
        if mode == RecommendationMode.V2:
            return await state.engine.recommend_v2(product_id, related_limit, like_limit)
        return await state.engine.recommend_v1(product_id, limit)
    except ProductNotFoundError as e:
        raise HTTPException(404, str(e))
    except Exception:
        logger.exception("Recommendation failed for %s (mode=%s)", product_id, mode.value)
        raise HTTPException(500, "Recommendation error")

# ============================================================
# 2. GET /products/{id}/recommendations/debug
# ============================================================

@router.get(
    "/products/{product_id}/recommendations/debug",
    response_model=RecommendationDebug,
    tags=["Recommendations"],
)
async def debug_recommendations(request: Request, product_id: UUID):
    state = _state(request)
    if not state.settings.enable_debug_endpoints:
        raise HTTPException(404, "Not Found")
    try:
        return await state.engine.debug(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(404, str(e))
    except Exception:
        logger.exception("Recommendation debug failed for %s", product_id)
        raise HTTPException(500, "Recommendation error")

# ============================================================
# 3. GET /recommendations/debug/catalog
# ============================================================

@router.get(
    "/recommendations/debug/catalog",
    response_model=CatalogDebug,
    tags=["Recommendations"],
)
async def debug_catalog(request: Request):
    """Category counts and spec value histograms across the whole catalog."""
    state = _state(request)
    if not state.settings.enable_debug_endpoints:
        raise HTTPException(404, "Not Found")
    try:
        return await state.engine.debug_catalog()
    except Exception:
        logger.exception("Catalog debug failed")
        raise HTTPException(500, "Recommendation error")

# ============================================================
# 4. GET /health — Health Check
# ============================================================

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request):
    """System health check."""
    state = _state(request)
    uptime = int(time.monotonic() - state.start_time)

    repo_health = await state.repo.health_check()
    components = {
        "repository": repo_health,
        "recommendation_engine": {
            "status": "healthy",
            "requests_served": state.request_count,
        },
    }
    status = "healthy" if repo_health.get("status") == "healthy" else "degraded"

    return HealthResponse(
        status=status,
        components=components,
        version=state.settings.version,
        uptime_seconds=uptime,
    )


app = create_app()

# ============================================================
# Entry Point
# ============================================================

def main() -> None:
    import uvicorn
    settings = get_settings()
    setup_logging(settings)
    uvicorn.run(
        "catalog_recs.api:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
