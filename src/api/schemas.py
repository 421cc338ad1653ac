"""API request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field


# === Request Schemas ===


class CombineRequest(BaseModel):
    """스크롤 결합 요청"""

    player_id: str = Field(..., min_length=1, description="플레이어 ID")
    first_object_id: str = Field(..., description="첫 번째 스크롤 개체 ID")
    second_object_id: str = Field(..., description="두 번째 스크롤 개체 ID")


class GiveRequest(BaseModel):
    """학자에게 아이템 전달"""

    player_id: str = Field(..., min_length=1, description="플레이어 ID")
    object_id: str = Field(..., description="전달할 아이템 개체 ID")


class WhisperRequest(BaseModel):
    """학자에게 귓속말"""

    player_id: str = Field(..., min_length=1, description="플레이어 ID")
    text: str = Field(..., description="귓속말 내용 (선택지 라벨 또는 아티팩트 이름)")


# === Response Schemas ===


class ArtifactSummary(BaseModel):
    """아티팩트 목록 항목"""

    artifact_id: str
    zone: str
    book_id: str
    scholars: list[str] = []


class ArtifactDetail(ArtifactSummary):
    """아티팩트 상세 (페이지 이름 + 보너스 요구 레벨)"""

    pages: dict[str, str] = {}
    xp_rate: int
    encounter_id: str
    quest_id: str
    level_requirements: list[int] = []


class ResolveResponse(BaseModel):
    query: str
    artifact_id: str


class VersionsResponse(BaseModel):
    """버전 라벨 → 아이템 템플릿 ID"""

    artifact_id: str
    versions: dict[str, str] = {}


class CombineResponse(BaseModel):
    artifact_id: str
    name: str
    pages: int
    became_book: bool


class ScholarResponse(BaseModel):
    """학자 응답"""

    messages: list[str] = []
    options: list[str] = []
    artifact_id: Optional[str] = None
    step: int = 0
    granted: Optional[str] = None


class ErrorResponse(BaseModel):
    """에러 응답"""

    error: str
    message: str = ""
    options: list[str] = []
