"""
Conversation Store
Append-only persistence for AI question/answer pairs
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import models
import logging

logger = logging.getLogger(__name__)

SIMILARITY_WINDOW_MINUTES = 10
HISTORY_WINDOW_HOURS = 1
HISTORY_LIMIT = 2
LIST_LIMIT = 20


class ConversationStore:
    """Reads and appends AiConversation rows for one database session"""

    def __init__(self, db: Session):
        self.db = db

    def save(
        self,
        user_id: int,
        question: str,
        answer: str,
        conversation_type: str = "advice",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> models.AiConversation:
        """
        Store a conversation. Rows are never updated afterwards.

        Returns:
            Created AiConversation
        """
        conversation = models.AiConversation(
            user_id=user_id,
            question=question,
            answer=answer,
            type=conversation_type,
            meta_data=metadata or {},
        )
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)

        logger.info(f"Saved {conversation_type} conversation {conversation.conversation_id} for user {user_id}")
        return conversation

    def recent_answers(
        self,
        user_id: int,
        conversation_type: str = "advice",
        minutes: int = SIMILARITY_WINDOW_MINUTES,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Answers given to the user within the last `minutes`."""
        since = (now or models.utcnow()) - timedelta(minutes=minutes)
        rows = (
            self.db.query(models.AiConversation.answer)
            .filter(
                models.AiConversation.user_id == user_id,
                models.AiConversation.type == conversation_type,
                models.AiConversation.created_at >= since,
            )
            .all()
        )
        return [row.answer for row in rows]

    def recent_history(
        self,
        user_id: int,
        hours: int = HISTORY_WINDOW_HOURS,
        limit: int = HISTORY_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[models.AiConversation]:
        """Latest advice conversations from the last `hours`, newest first."""
        since = (now or models.utcnow()) - timedelta(hours=hours)
        return (
            self.db.query(models.AiConversation)
            .filter(
                models.AiConversation.user_id == user_id,
                models.AiConversation.type == "advice",
                models.AiConversation.created_at >= since,
            )
            .order_by(models.AiConversation.created_at.desc(), models.AiConversation.conversation_id.desc())
            .limit(limit)
            .all()
        )

    def list_recent(self, user_id: int, limit: int = LIST_LIMIT) -> List[models.AiConversation]:
        return (
            self.db.query(models.AiConversation)
            .filter(models.AiConversation.user_id == user_id)
            .order_by(models.AiConversation.created_at.desc(), models.AiConversation.conversation_id.desc())
            .limit(limit)
            .all()
        )
