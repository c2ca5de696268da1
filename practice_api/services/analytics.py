"""
Analytics Event Tracking
Events are appended to a MongoDB collection; delivery is best-effort for callers
"""
from datetime import datetime
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


EXPLANATION_REQUESTED = "explanation_requested"


class AnalyticsTracker:
    COLLECTION_NAME = "analytics_events"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[self.COLLECTION_NAME]

    async def track(
        self,
        event_name: str,
        user_id: str,
        properties: Optional[Dict[str, Any]] = None
    ) -> None:
        await self.collection.insert_one({
            "eventName": event_name,
            "userId": user_id,
            "timestamp": datetime.utcnow(),
            "properties": properties or {}
        })
        logger.debug(f"📈 Tracked {event_name} for {user_id}")
