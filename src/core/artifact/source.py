"""artifacts.json 로드 — ArtifactDataSource 구현"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from .credit import CreditMatcher
from .models import ArtifactDefinition, ArtifactLevelBonus, ArtifactVersion, ItemTemplate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_artifact(raw: dict[str, Any]) -> ArtifactDefinition:
    return ArtifactDefinition(
        artifact_id=raw["artifact_id"],
        zone=raw.get("zone", ""),
        book_id=raw.get("book_id", ""),
        scroll1=raw.get("scroll1", ""),
        scroll2=raw.get("scroll2", ""),
        scroll3=raw.get("scroll3", ""),
        scroll12=raw.get("scroll12", ""),
        scroll13=raw.get("scroll13", ""),
        scroll23=raw.get("scroll23", ""),
        scroll_model1=int(raw.get("scroll_model1", 499)),
        scroll_model2=int(raw.get("scroll_model2", 499)),
        book_model=int(raw.get("book_model", 499)),
        xp_rate=int(raw.get("xp_rate", 0)),
        encounter_id=raw.get("encounter_id", ""),
        quest_id=raw.get("quest_id", ""),
        scholar_id=raw.get("scholar_id", ""),
        credit=raw.get("credit", ""),
    )


def parse_version(raw: dict[str, Any]) -> ArtifactVersion:
    return ArtifactVersion(
        artifact_id=raw["artifact_id"],
        version=raw.get("version", "") or "",
        item_id=raw["item_id"],
        realm=int(raw.get("realm", 0)),
    )


def parse_bonus(raw: dict[str, Any]) -> ArtifactLevelBonus:
    return ArtifactLevelBonus(
        artifact_id=raw["artifact_id"],
        bonus_id=int(raw["bonus_id"]),
        level=int(raw["level"]),
    )


def parse_template(raw: dict[str, Any]) -> ItemTemplate:
    return ItemTemplate(
        template_id=raw["template_id"],
        name=raw["name"],
        allowed_classes=tuple(int(c) for c in raw.get("allowed_classes", [])),
        realm=int(raw.get("realm", 0)),
        model=int(raw.get("model", 0)),
        price=int(raw.get("price", 0)),
    )


def parse_credit_route(raw: dict[str, Any]) -> CreditMatcher:
    region = raw.get("region")
    return CreditMatcher(
        artifact_id=raw["artifact_id"],
        names=tuple(raw.get("names", [])),
        fuzzy=bool(raw.get("fuzzy", False)),
        region=int(region) if region is not None else None,
    )


def _parse_rows(
    rows: list[dict[str, Any]], parser: Callable[[dict[str, Any]], T], kind: str
) -> list[T]:
    """행 단위 파싱. 깨진 행은 경고 후 건너뛴다."""
    parsed: list[T] = []
    for raw in rows:
        try:
            parsed.append(parser(raw))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Failed to load %s row %s: %s", kind, raw, e)
    return parsed


class JsonArtifactSource:
    """seed 파일 하나에서 모든 컬렉션을 읽는다. 파일은 호출마다 다시 읽는다."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self, section: str) -> list[dict[str, Any]]:
        with self._path.open("r", encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        return list(data.get(section, []))

    def load_artifacts(self) -> list[ArtifactDefinition]:
        return _parse_rows(self._read("artifacts"), parse_artifact, "artifact")

    def load_versions(self) -> list[ArtifactVersion]:
        return _parse_rows(self._read("versions"), parse_version, "version")

    def load_bonuses(self) -> list[ArtifactLevelBonus]:
        return _parse_rows(self._read("bonuses"), parse_bonus, "bonus")

    def load_templates(self) -> list[ItemTemplate]:
        return _parse_rows(self._read("item_templates"), parse_template, "item template")

    def load_credit_routes(self) -> list[CreditMatcher]:
        return _parse_rows(self._read("credit_routes"), parse_credit_route, "credit route")
