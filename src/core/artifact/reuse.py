"""아티팩트 재사용 대기시간 캐시"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable


class ReuseTimers:
    """(player_id, template_id) → 재사용 가능 시각. clock은 테스트에서 교체한다."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._ready_at: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def start(self, player_id: str, template_id: str, seconds: float) -> None:
        with self._lock:
            self._ready_at[(player_id, template_id)] = self._clock() + seconds

    def clear(self, player_id: str, template_id: str) -> None:
        with self._lock:
            self._ready_at.pop((player_id, template_id), None)

    def remaining_seconds(self, player_id: str, template_id: str) -> int:
        """남은 시간 (올림). 만료됐으면 항목을 지우고 0."""
        key = (player_id, template_id)
        with self._lock:
            ready_at = self._ready_at.get(key)
            if ready_at is None:
                return 0
            remaining = ready_at - self._clock()
            if remaining <= 0:
                del self._ready_at[key]
                return 0
            return math.ceil(remaining)
