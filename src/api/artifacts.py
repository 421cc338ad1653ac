"""Artifact API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.errors import raise_for_error
from src.api.schemas import (
    ArtifactDetail,
    ArtifactSummary,
    CombineRequest,
    CombineResponse,
    ErrorResponse,
    ResolveResponse,
    VersionsResponse,
)
from src.core.artifact.models import ArtifactDefinition
from src.core.logging import get_logger
from src.services.artifact_service import ArtifactService

logger = get_logger(__name__)

router = APIRouter(prefix="/artifacts", tags=["artifacts"])


def get_artifact_service(request: Request) -> ArtifactService:
    """ArtifactService 인스턴스 반환 (의존성 주입)"""
    service: ArtifactService = request.app.state.artifact_service
    return service


def _summary(art: ArtifactDefinition) -> ArtifactSummary:
    return ArtifactSummary(
        artifact_id=art.artifact_id,
        zone=art.zone,
        book_id=art.book_id,
        scholars=art.scholars,
    )


@router.get("", response_model=list[ArtifactSummary])
def list_artifacts(
    zone: str | None = Query(default=None),
    service: ArtifactService = Depends(get_artifact_service),
) -> list[ArtifactSummary]:
    """아티팩트 목록 (zone 필터 선택)"""
    return [_summary(a) for a in service.list_artifacts(zone)]


@router.get(
    "/resolve",
    response_model=ResolveResponse,
    responses={404: {"model": ErrorResponse}},
)
def resolve_artifact(
    name: str = Query(..., min_length=1),
    service: ArtifactService = Depends(get_artifact_service),
) -> ResolveResponse:
    """자유 형식 이름 → artifact_id"""
    artifact_id = service.resolve_name(name)
    if artifact_id is None:
        raise HTTPException(status_code=404, detail=f"No artifact matches: {name}")
    return ResolveResponse(query=name, artifact_id=artifact_id)


@router.post(
    "/combine",
    response_model=CombineResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def combine_scrolls(
    request: CombineRequest,
    service: ArtifactService = Depends(get_artifact_service),
) -> CombineResponse:
    """배낭 안 스크롤 두 장 결합"""
    outcome = service.combine(
        request.player_id, request.first_object_id, request.second_object_id
    )
    if outcome.error is not None:
        raise_for_error(outcome.error)

    blueprint = outcome.combination.blueprint
    return CombineResponse(
        artifact_id=blueprint.artifact_id,
        name=blueprint.name,
        pages=int(blueprint.pages),
        became_book=outcome.combination.became_book,
    )


@router.get(
    "/{artifact_id}",
    response_model=ArtifactDetail,
    responses={404: {"model": ErrorResponse}},
)
def get_artifact(
    artifact_id: str,
    service: ArtifactService = Depends(get_artifact_service),
) -> ArtifactDetail:
    """아티팩트 상세"""
    art = service.get_artifact(artifact_id)
    if art is None:
        raise HTTPException(status_code=404, detail=f"Artifact not found: {artifact_id}")
    return ArtifactDetail(
        **_summary(art).model_dump(),
        pages={str(int(p)): name for p, name in art.page_names().items()},
        xp_rate=art.xp_rate,
        encounter_id=art.encounter_id,
        quest_id=art.quest_id,
        level_requirements=service.level_requirements(artifact_id),
    )


@router.get(
    "/{artifact_id}/versions",
    response_model=VersionsResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_versions(
    artifact_id: str,
    player_id: str = Query(..., min_length=1),
    service: ArtifactService = Depends(get_artifact_service),
) -> VersionsResponse:
    """플레이어 클래스/렐름에 맞는 버전 라벨"""
    if service.get_artifact(artifact_id) is None:
        raise HTTPException(status_code=404, detail=f"Artifact not found: {artifact_id}")
    try:
        versions = service.versions_for(artifact_id, player_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return VersionsResponse(
        artifact_id=artifact_id,
        versions={label: t.template_id for label, t in versions.items()},
    )
