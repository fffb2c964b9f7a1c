"""
Store-query contract.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence


class QueryStore(Protocol):
    """Parameterized SQL access to the relational store."""

    async def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        ...

    async def query_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        ...

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the affected row count."""
        ...
