"""
Exchange entity: one card trade between two players.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict


def utc_now() -> datetime:
    """Current time in UTC truncated to whole seconds, as the store keeps it."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class Exchange:
    """Card exchange between an opener and a follower."""
    opener: str
    follower: str
    opener_card: str = ""
    follower_card: str = ""
    occurred_at: datetime = field(default_factory=utc_now)
    id: int = 0

    def with_id(self, exchange_id: int) -> "Exchange":
        """Copy of this exchange carrying the id assigned by the store."""
        return replace(self, id=exchange_id)

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation used in bus responses."""
        return {
            "id": self.id,
            "opener": self.opener,
            "follower": self.follower,
            "openerCard": self.opener_card,
            "followerCard": self.follower_card,
            "date": self.occurred_at.isoformat(),
        }

    def __str__(self) -> str:
        return (
            f"ID: {self.id} | Opener: {self.opener} | Follower: {self.follower} | "
            f"Cards: {self.opener_card} <-> {self.follower_card} | "
            f"Date: {self.occurred_at:%Y-%m-%d %H:%M:%S}"
        )
