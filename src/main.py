"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.api.artifacts import router as artifacts_router
from src.api.health import router as health_router
from src.api.scholars import router as scholars_router
from src.config import settings
from src.core.artifact.credit import CreditRouter
from src.core.artifact.handles import QuestHandleRegistry
from src.core.artifact.naming import NameResolver
from src.core.artifact.registry import ArtifactRegistry
from src.core.artifact.source import JsonArtifactSource
from src.core.event_bus import EventBus
from src.core.logging import get_logger, setup_logging
from src.db.artifact_source import SqlArtifactSource
from src.db.database import SessionLocal, init_db
from src.services.artifact_service import ArtifactService
from src.services.quest_handles import register_artifact_handles
from src.services.scholar_service import ScholarService

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # DB 테이블 생성
    logger.info("Creating database tables...")
    init_db()
    logger.info("Database tables created.")

    event_bus = EventBus()
    db_session = SessionLocal()
    app.state.event_bus = event_bus

    # 레지스트리는 DB를 읽는다. seed 동기화 후 재로드된다
    registry = ArtifactRegistry(SqlArtifactSource(SessionLocal))
    resolver = NameResolver(registry)
    handles = QuestHandleRegistry()
    app.state.artifact_registry = registry

    # ArtifactService 초기화
    logger.info("Initializing ArtifactService...")
    artifact_service = ArtifactService(
        db=db_session,
        event_bus=event_bus,
        registry=registry,
        resolver=resolver,
        handles=handles,
        router=CreditRouter(),
        xp_rate=settings.ARTIFACT_XP_RATE,
        guild_bonus_percent=settings.GUILD_BUFF_ARTIFACT_XP,
        credit_radius=settings.CREDIT_RADIUS,
        backpack_slots=settings.BACKPACK_SLOTS,
    )
    synced = artifact_service.sync_seed_data(JsonArtifactSource(settings.ARTIFACT_DATA_PATH))
    register_artifact_handles(db_session, registry, handles)
    app.state.artifact_service = artifact_service
    logger.info("ArtifactService initialized (%d new artifacts synced).", synced)

    # ScholarService 초기화
    logger.info("Initializing ScholarService...")
    scholar_service = ScholarService(
        db=db_session,
        event_bus=event_bus,
        registry=registry,
        resolver=resolver,
        handles=handles,
        show_all=settings.SCHOLAR_SHOW_ALL,
        backpack_slots=settings.BACKPACK_SLOTS,
    )
    app.state.scholar_service = scholar_service
    logger.info("ScholarService initialized.")

    yield

    # 종료 시 정리
    logger.info("Shutting down...")
    event_bus.clear()
    db_session.close()


app = FastAPI(title="Artifact Scholar", lifespan=lifespan)

app.include_router(health_router)
app.include_router(artifacts_router)
app.include_router(scholars_router)
