"""
Match details, cached for longer the further away the match starts.
"""

from typing import Optional

from pydantic import BaseModel

from ..caching import CacheKeys, CacheManager, get_match_timing_ttl
from ..persistence import QueryStore


class MatchDetails(BaseModel):
    match_id: int
    title: str
    team_a: Optional[str] = None
    team_b: Optional[str] = None
    timestamp_start: int
    status: Optional[int] = None


class MatchService:
    def __init__(self, cache: CacheManager, store: QueryStore):
        self.cache = cache
        self.store = store

    async def get_match(self, match_id: int) -> Optional[MatchDetails]:
        """Return match details, or None when the match does not exist."""
        cache_key = CacheKeys.match_details(match_id)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            return MatchDetails.model_validate(cached)

        row = await self.store.query_one(
            "SELECT match_id, title, team_a, team_b, timestamp_start, status "
            "FROM matches WHERE match_id = %s LIMIT 1",
            [match_id],
        )
        if row is None:
            return None

        match = MatchDetails.model_validate(row)
        await self.cache.set(cache_key, match.model_dump(), get_match_timing_ttl(match.timestamp_start))
        return match
