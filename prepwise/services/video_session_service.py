# prepwise/services/video_session_service.py

import logging
from typing import Optional

from fastapi import HTTPException

from prepwise.base.config import settings
from prepwise.base.models import ConversationCreateRequest
from prepwise.models.tavus_client import TavusAPIError, TavusClient

logger = logging.getLogger("video_session_service")


class VideoSessionService:
    """
    Pass-through operations on the video provider's personas and conversations.
    """

    def __init__(self, tavus_client: Optional[TavusClient] = None):
        self.tavus = tavus_client

    def _client(self) -> TavusClient:
        if self.tavus is None:
            raise HTTPException(status_code=400, detail="TAVUS_API_KEY not configured")
        return self.tavus

    def create_conversation(self, req: ConversationCreateRequest) -> dict:
        client = self._client()

        properties = req.properties.model_dump(exclude_none=True) if req.properties else None

        try:
            conversation = client.create_conversation(
                replica_id=req.replica_id,
                persona_id=req.persona_id,
                conversation_name=req.conversation_name,
                callback_url=req.callback_url or settings.TAVUS_CALLBACK_URL,
                properties=properties,
            )
        except (TavusAPIError, ValueError) as e:
            logger.error(f"[Conversation] Create failed: {e}")
            raise HTTPException(status_code=400, detail=str(e))

        logger.info(f"[Conversation] Created {conversation.get('conversation_id')}")
        return conversation

    def delete_persona(self, persona_id: str) -> dict:
        client = self._client()
        try:
            client.delete_persona(persona_id)
        except TavusAPIError as e:
            logger.error(f"[Persona] Delete {persona_id} failed: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "persona_id": persona_id}

    def end_conversation(self, conversation_id: str) -> dict:
        client = self._client()
        try:
            client.end_conversation(conversation_id)
        except TavusAPIError as e:
            logger.error(f"[Conversation] End {conversation_id} failed: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "conversation_id": conversation_id}
