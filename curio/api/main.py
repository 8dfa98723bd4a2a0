"""FastAPI REST API for Curio recommendations."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from curio.config import Settings, get_settings
from curio.data.catalog import InMemoryProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.loader import SeedLoader
from curio.data.preferences import InMemoryPreferenceStore
from curio.data.schemas import (
    Interaction,
    InteractionStats,
    ProductInteractionStats,
    Recommendation,
    RecommendationStats,
)
from curio.errors import CurioError
from curio.log_config import configure_logging
from curio.monitoring.monitor import GenerationMonitor
from curio.service.orchestrator import RecommendationOrchestrator
from curio.service.scheduler import RefreshScheduler
from curio.store.recommendation_store import RecommendationStore


class AppState:
    """Application state container."""

    def __init__(
        self,
        orchestrator: RecommendationOrchestrator,
        scheduler: Optional[RefreshScheduler] = None,
    ):
        self.orchestrator = orchestrator
        self.scheduler = scheduler


# Request/Response models
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecommendationResponse(CamelModel):
    """Response containing recommendations."""

    user_id: str
    recommendations: list[Recommendation]


class ScoreResponse(CamelModel):
    user_id: str
    product_id: str
    score: float


class RefreshResponse(CamelModel):
    regenerated: int


class HealthResponse(CamelModel):
    """Health check response."""

    status: str
    users: int
    products: int
    interactions: int
    stored_recommendations: int
    scheduler_running: bool
    generation: dict[str, Any] = Field(default_factory=dict)


def build_orchestrator(settings: Settings) -> RecommendationOrchestrator:
    """Wire in-memory collaborators and optionally seed them from ``settings.data_path``."""
    preferences = InMemoryPreferenceStore()
    catalog = InMemoryProductCatalog()
    interaction_log = InteractionLog(
        user_exists=preferences.exists,
        product_exists=catalog.exists,
    )

    if settings.data_path:
        path = Path(settings.data_path)
        if not path.is_dir():
            raise ValueError(f"Data path '{path}' is not a directory")
        SeedLoader(catalog, preferences, interaction_log).load_directory(path)

    monitor = GenerationMonitor(
        failure_rate_threshold=settings.failure_rate_threshold,
        cold_start_rate_threshold=settings.cold_start_rate_threshold,
    )
    return RecommendationOrchestrator.from_settings(
        settings,
        preferences=preferences,
        catalog=catalog,
        interaction_log=interaction_log,
        store=RecommendationStore(),
        monitor=monitor,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level, settings.json_logs)
    logger.info("Starting Curio Recommendation API...")

    state: AppState = app.state.curio
    if state.scheduler is not None:
        state.scheduler.start()

    yield

    logger.info("Shutting down Curio Recommendation API...")
    if state.scheduler is not None:
        state.scheduler.stop()
    state.orchestrator.shutdown()


def curio_error_handler(request: Request, exc: CurioError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    orchestrator: Optional[RecommendationOrchestrator] = None,
    settings: Optional[Settings] = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    """
    Build the API around an orchestrator.

    Args:
        orchestrator: Pre-wired orchestrator; built from settings when omitted
        settings: Runtime settings (defaults to :func:`get_settings`)
        enable_scheduler: Run the periodic refresh sweep while the app is up
    """
    settings = settings or get_settings()
    orchestrator = orchestrator or build_orchestrator(settings)
    scheduler = (
        RefreshScheduler(orchestrator, interval_seconds=settings.refresh_interval_seconds)
        if enable_scheduler
        else None
    )

    app = FastAPI(
        title="Curio Recommendation API",
        description="Personalized product recommendation API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.curio = AppState(orchestrator, scheduler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CurioError, curio_error_handler)

    # Endpoints are sync: generation blocks on the orchestrator's worker pool
    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint."""
        monitor = orchestrator.monitor
        return HealthResponse(
            status="healthy",
            users=len(orchestrator.preferences),
            products=len(orchestrator.catalog),
            interactions=len(orchestrator.interaction_log),
            stored_recommendations=len(orchestrator.store),
            scheduler_running=scheduler is not None and scheduler.running,
            generation=monitor.summary() if monitor is not None else {},
        )

    @app.post("/users/{user_id}/recommendations", response_model=RecommendationResponse)
    def generate_recommendations(
        user_id: str,
        limit: Optional[int] = Query(default=None, description="Number of recommendations"),
    ):
        """Regenerate a user's recommendations."""
        recommendations = orchestrator.generate_recommendations(user_id, limit)
        return RecommendationResponse(user_id=user_id, recommendations=recommendations)

    @app.get("/users/{user_id}/recommendations", response_model=RecommendationResponse)
    def get_recommendations(
        user_id: str,
        limit: Optional[int] = Query(default=None, description="Number of recommendations"),
    ):
        """Current recommendations, generated on demand when none are current."""
        recommendations = orchestrator.get_recommendations(user_id, limit)
        return RecommendationResponse(user_id=user_id, recommendations=recommendations)

    @app.get("/users/{user_id}/recommendations/stats", response_model=RecommendationStats)
    def recommendation_stats(user_id: str):
        return orchestrator.stats(user_id)

    @app.get("/users/{user_id}/recommendations/{product_id}/score", response_model=ScoreResponse)
    def recommendation_score(user_id: str, product_id: str):
        return ScoreResponse(
            user_id=user_id,
            product_id=product_id,
            score=orchestrator.get_recommendation_score(user_id, product_id),
        )

    @app.post("/recommendations/refresh", response_model=RefreshResponse)
    def refresh_expired(
        batch_size: Optional[int] = Query(default=None, ge=1, description="Users per sweep"),
    ):
        """Regenerate users whose recommendations expired."""
        return RefreshResponse(
            regenerated=orchestrator.refresh_expired_recommendations(batch_size)
        )

    @app.post("/interactions", response_model=Interaction, status_code=201)
    def record_interaction(payload: dict[str, Any] = Body(...)):
        return orchestrator.interaction_log.record_interaction(payload)

    @app.get("/users/{user_id}/interactions/stats", response_model=InteractionStats)
    def interaction_stats(user_id: str):
        # Resolves the user first so unknown ids are a 404
        orchestrator.preferences.get(user_id)
        return orchestrator.interaction_log.user_stats(user_id)

    @app.get("/products/{product_id}/interactions/stats", response_model=ProductInteractionStats)
    def product_interaction_stats(product_id: str):
        orchestrator.catalog.get(product_id)
        return orchestrator.interaction_log.product_stats(product_id)

    return app


def run():
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "curio.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
    )


if __name__ == "__main__":
    run()
