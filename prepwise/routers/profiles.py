# prepwise/routers/profiles.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from prepwise.base.database import get_db
from prepwise.base.models import ConversationMinutes, ProfileResponse, ProfileUpsertRequest
from prepwise.services.profile_service import ProfileService

router = APIRouter(tags=["Profiles"])
profiles = ProfileService()


@router.post("/profiles", response_model=ProfileResponse, summary="Create or update a profile")
def ensure_profile(req: ProfileUpsertRequest, db: Session = Depends(get_db)):
    return profiles.ensure_profile(req, db)


@router.get("/profiles/{user_id}/minutes", response_model=ConversationMinutes, summary="Conversation minutes ledger")
def get_minutes(user_id: str, db: Session = Depends(get_db)):
    return profiles.get_conversation_minutes(user_id, db)
