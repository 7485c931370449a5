# services/collect/collection_selector.py
import random
from collections.abc import Sequence
from typing import Any, Optional

from shared.database import Database
from shared.errors import NotFoundError

TAGS = ("primary", "retry", "backup", "custom")

# Public route names for the two tags payment clients ask for
ROUTE_TAGS = {"success": "primary", "retry": "retry"}

_system_random = random.SystemRandom()


def pick_collection(pool: Sequence[dict[str, Any]], rng: Optional[random.Random] = None) -> dict[str, Any]:
    """Choose one collection uniformly at random; every call draws again"""
    if not pool:
        raise NotFoundError("No collection found for given tag")
    return (rng or _system_random).choice(pool)


class CollectionSelector:
    """Spreads payment traffic across the collections of an (app, tag) pool"""

    def __init__(self, db: Database, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng

    async def load_pool(self, app_id: str, tag: str) -> list[dict[str, Any]]:
        return await self.db.fetch_all(
            "SELECT app_id, collection_id, tag FROM collections WHERE app_id = $1 AND tag = $2",
            app_id,
            tag,
        )

    async def select(self, app_id: str, tag: str) -> dict[str, Any]:
        pool = await self.load_pool(app_id, tag)
        return pick_collection(pool, self.rng)
