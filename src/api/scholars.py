"""Scholar API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.errors import raise_for_error
from src.api.schemas import ErrorResponse, GiveRequest, ScholarResponse, WhisperRequest
from src.core.logging import get_logger
from src.services.scholar_service import ScholarReply, ScholarService

logger = get_logger(__name__)

router = APIRouter(prefix="/scholars", tags=["scholars"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    507: {"model": ErrorResponse},
}


def get_scholar_service(request: Request) -> ScholarService:
    """ScholarService 인스턴스 반환 (의존성 주입)"""
    service: ScholarService = request.app.state.scholar_service
    return service


def _to_response(reply: ScholarReply) -> ScholarResponse:
    if reply.error is not None:
        raise_for_error(reply.error, " ".join(reply.messages), reply.options)
    return ScholarResponse(
        messages=reply.messages,
        options=reply.options,
        artifact_id=reply.artifact_id,
        step=int(reply.step),
        granted=reply.granted,
    )


@router.get("/{scholar}/interact", response_model=ScholarResponse, responses=ERROR_RESPONSES)
def interact(
    scholar: str,
    player_id: str = Query(..., min_length=1),
    service: ScholarService = Depends(get_scholar_service),
) -> ScholarResponse:
    """학자에게 말 걸기"""
    try:
        reply = service.interact(scholar, player_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(reply)


@router.post("/{scholar}/give", response_model=ScholarResponse, responses=ERROR_RESPONSES)
def give_item(
    scholar: str,
    request: GiveRequest,
    service: ScholarService = Depends(get_scholar_service),
) -> ScholarResponse:
    """
    학자에게 아이템 전달

    크레딧 토큰, 완성된 책, 보유 아티팩트(버전 교환)를 받는다.
    """
    try:
        reply = service.receive_item(scholar, request.player_id, request.object_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(reply)


@router.post("/{scholar}/whisper", response_model=ScholarResponse, responses=ERROR_RESPONSES)
def whisper(
    scholar: str,
    request: WhisperRequest,
    service: ScholarService = Depends(get_scholar_service),
) -> ScholarResponse:
    """학자에게 귓속말 (버전 선택 등)"""
    try:
        reply = service.whisper(scholar, request.player_id, request.text)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(reply)
