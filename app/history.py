"""In-memory survey history, kept per user for the lifetime of the process."""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from app.models import SurveyHistoryItem

DEFAULT_USER = 'local'


class SurveyHistoryStore:
    """Saved surveys per user, oldest first, capped at ``max_items`` each."""

    def __init__(self, max_items: int = 200):
        self.max_items = max_items
        self._items: Dict[str, List[SurveyHistoryItem]] = {}
        self._lock = threading.Lock()

    def add(self, user_id: str, item: SurveyHistoryItem) -> None:
        with self._lock:
            items = self._items.setdefault(user_id, [])
            items.append(item)
            # Drop the oldest entries past the cap
            if len(items) > self.max_items:
                del items[:len(items) - self.max_items]

    def recent(self, user_id: str, limit: Optional[int] = None) -> List[SurveyHistoryItem]:
        """Return the last ``limit`` items for a user, oldest first."""
        with self._lock:
            items = list(self._items.get(user_id, []))
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self, user_id: str) -> int:
        with self._lock:
            return len(self._items.pop(user_id, []))


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def last14_from_history(items: List[SurveyHistoryItem], days: int = 14) -> List[float]:
    """
    Build a forecast history from saved quick-risk scores.

    Uses the newest ``days`` items in order. Items without a result count as 0
    and missing days at the front are filled with 0.
    """
    scores = [
        float(item.result.burnout_score) if item.result is not None else 0.0
        for item in items
    ]
    recent = scores[-days:]
    return [0.0] * (days - len(recent)) + recent
