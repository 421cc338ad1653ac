"""EventBus - 서비스 간 이벤트 통신 인프라

규칙:
- 서비스는 다른 서비스를 직접 import하지 않는다
- 이벤트는 식별자(ID)와 작은 값만 전달한다
- 전파 깊이 최대 MAX_DEPTH 단계

레벨업처럼 같은 source에서 같은 이벤트가 연속으로 나가는 경우가 정상이므로
중복 발행 차단은 하지 않는다. 무한 루프는 깊이 제한으로만 막는다.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5


@dataclass
class GameEvent:
    """이벤트 데이터 컨테이너

    Args:
        event_type: 이벤트 유형 (예: "artifact_level_gained")
        data: 이벤트 데이터 (ID 위주, 무거운 객체 금지)
        source: 발행한 서비스 이름
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    _depth: int = field(default=0, repr=False)


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """동기식 이벤트 버스

    사용 패턴:
        bus = EventBus()
        bus.subscribe("npc_died", artifact_service.handle_npc_died)
        bus.emit(GameEvent(event_type="npc_died", data={"name": "..."}, source="world"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 등록"""
        self._handlers[event_type].append(handler)
        logger.debug("EventBus subscribe: %s -> %s", event_type, handler.__qualname__)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 해제"""
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            logger.warning(
                "EventBus handler not registered: %s -> %s",
                event_type,
                handler.__qualname__,
            )
            return
        handlers.remove(handler)

    def emit(self, event: GameEvent) -> None:
        """이벤트 발행. 등록된 핸들러를 등록 순서대로 동기 호출.

        핸들러 예외는 로그만 남기고 다음 핸들러로 진행한다.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                "EventBus depth limit (%d) reached: %s:%s dropped",
                MAX_DEPTH,
                event.source,
                event.event_type,
            )
            return

        event._depth = self._current_depth

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug("EventBus: no subscribers for %s", event.event_type)
            return

        logger.info(
            "EventBus emit: %s (source=%s, depth=%d, handlers=%d)",
            event.event_type,
            event.source,
            self._current_depth,
            len(handlers),
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "EventBus handler error: %s (event=%s)",
                        handler.__qualname__,
                        event.event_type,
                    )
        finally:
            self._current_depth -= 1

    def clear(self) -> None:
        """모든 구독 해제 (테스트용)"""
        self._handlers.clear()
        self._current_depth = 0

    @property
    def handler_count(self) -> int:
        """등록된 총 핸들러 수"""
        return sum(len(h) for h in self._handlers.values())
