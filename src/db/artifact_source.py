"""DB → ArtifactRegistry 데이터 소스"""

from collections.abc import Callable

from sqlalchemy.orm import Session

from src.core.artifact.models import (
    ArtifactDefinition,
    ArtifactLevelBonus,
    ArtifactVersion,
    ItemTemplate,
)
from src.db.models import (
    ArtifactBonusModel,
    ArtifactModel,
    ArtifactVersionModel,
    ItemTemplateModel,
)


class SqlArtifactSource:
    """레지스트리 로드마다 새 세션을 열어 평면 컬렉션을 읽는다."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load_artifacts(self) -> list[ArtifactDefinition]:
        with self._session_factory() as db:
            rows = db.query(ArtifactModel).order_by(ArtifactModel.artifact_id).all()
            return [
                ArtifactDefinition(
                    artifact_id=r.artifact_id,
                    zone=r.zone or "",
                    book_id=r.book_id or "",
                    scroll1=r.scroll1 or "",
                    scroll2=r.scroll2 or "",
                    scroll3=r.scroll3 or "",
                    scroll12=r.scroll12 or "",
                    scroll13=r.scroll13 or "",
                    scroll23=r.scroll23 or "",
                    scroll_model1=r.scroll_model1,
                    scroll_model2=r.scroll_model2,
                    book_model=r.book_model,
                    xp_rate=r.xp_rate,
                    encounter_id=r.encounter_id or "",
                    quest_id=r.quest_id or "",
                    scholar_id=r.scholar_id or "",
                    credit=r.credit or "",
                )
                for r in rows
            ]

    def load_versions(self) -> list[ArtifactVersion]:
        with self._session_factory() as db:
            rows = db.query(ArtifactVersionModel).order_by(ArtifactVersionModel.id).all()
            return [
                ArtifactVersion(
                    artifact_id=r.artifact_id,
                    version=r.version or "",
                    item_id=r.item_id,
                    realm=r.realm,
                )
                for r in rows
            ]

    def load_bonuses(self) -> list[ArtifactLevelBonus]:
        with self._session_factory() as db:
            rows = db.query(ArtifactBonusModel).all()
            return [
                ArtifactLevelBonus(artifact_id=r.artifact_id, bonus_id=r.bonus_id, level=r.level)
                for r in rows
            ]

    def load_templates(self) -> list[ItemTemplate]:
        with self._session_factory() as db:
            rows = db.query(ItemTemplateModel).all()
            return [
                ItemTemplate(
                    template_id=r.template_id,
                    name=r.name,
                    allowed_classes=tuple(r.allowed_classes or ()),
                    realm=r.realm,
                    model=r.model,
                    price=r.price,
                )
                for r in rows
            ]
