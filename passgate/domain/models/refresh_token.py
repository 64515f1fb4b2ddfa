from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class RefreshToken:
    user_id: int
    token: str
    expires_at: datetime
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
