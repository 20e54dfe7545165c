"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self, url: str | None = None, db_name: str | None = None) -> None:
        """Connect to MongoDB."""
        name = db_name or settings.mongodb_db_name
        self.client = AsyncIOMotorClient(url or settings.mongodb_url)
        self.db = self.client[name]
        logger.info("Connected to MongoDB: %s", name)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("Disconnected from MongoDB")


# Global database instance
database = Database()

