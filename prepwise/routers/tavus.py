# prepwise/routers/tavus.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from prepwise.base.database import get_db
from prepwise.base.dependencies import get_tavus_client, verify_api_key
from prepwise.base.models import ConversationCreateRequest, TavusCallbackPayload
from prepwise.services.callback_service import CallbackService
from prepwise.services.video_session_service import VideoSessionService

router = APIRouter(prefix="/tavus", tags=["Tavus"])
secured = [Depends(verify_api_key)]
callbacks = CallbackService()


@router.post("/conversations", summary="Create a video conversation", dependencies=secured)
def create_conversation(req: ConversationCreateRequest, tavus=Depends(get_tavus_client)):
    return VideoSessionService(tavus).create_conversation(req)


@router.post("/conversations/{conversation_id}/end", summary="End a video conversation", dependencies=secured)
def end_conversation(conversation_id: str, tavus=Depends(get_tavus_client)):
    return VideoSessionService(tavus).end_conversation(conversation_id)


@router.delete("/personas/{persona_id}", summary="Delete a persona", dependencies=secured)
def delete_persona(persona_id: str, tavus=Depends(get_tavus_client)):
    return VideoSessionService(tavus).delete_persona(persona_id)


@router.post("/callback", summary="Video provider webhook")
def tavus_callback(payload: TavusCallbackPayload, db: Session = Depends(get_db)):
    return callbacks.handle(payload, db)
