from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError


class CounterRepository:
    """
    Named monotonic sequences, one document per key.

    Used for receipt numbers (one key per year-month prefix) and student
    codes. `$inc` with upsert is atomic on the server, so two callers never
    receive the same value from the same key.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["counters"]

    async def next_value(self, name: str) -> int:
        """Increment-or-insert the sequence and return the new value."""
        for _ in range(3):
            try:
                doc = await self.collection.find_one_and_update(
                    {"_id": name},
                    {"$inc": {"seq": 1}},
                    upsert=True,
                    return_document=ReturnDocument.AFTER
                )
                return doc["seq"]
            except DuplicateKeyError:
                # Two first-time upserts on the same key; the loser retries
                continue
        raise DuplicateKeyError(f"Could not allocate next value for counter {name}")

    async def ensure_at_least(self, name: str, value: int) -> None:
        """Raise the sequence to `value` if it is behind (never lowers it)."""
        await self.collection.update_one(
            {"_id": name},
            {"$max": {"seq": value}},
            upsert=True
        )

    async def current(self, name: str) -> int:
        doc = await self.collection.find_one({"_id": name})
        return doc["seq"] if doc else 0
