# prepwise/services/profile_service.py

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from prepwise.base.config import settings
from prepwise.base.models import ConversationMinutes, ProfileResponse, ProfileUpsertRequest
from prepwise.base.schema import ProfileModel
from prepwise.utils.db_procedures import update_conversation_minutes

logger = logging.getLogger("profile_service")


class ProfileService:
    """
    Owns the per-user conversation-minutes ledger.
    """

    def ensure_profile(self, req: ProfileUpsertRequest, db: Session) -> ProfileResponse:
        profile = db.query(ProfileModel).filter_by(id=req.user_id).first()

        if profile is None:
            profile = ProfileModel(
                id=req.user_id,
                name=req.name or "Candidate",
                email=req.email,
                total_conversation_minutes=settings.FREE_TIER_MINUTES,
                used_conversation_minutes=0,
                subscription_tier="free",
            )
            db.add(profile)
            logger.info(f"[Profile] Created {req.user_id} with {settings.FREE_TIER_MINUTES} free minutes")
        else:
            if req.name:
                profile.name = req.name
            if req.email:
                profile.email = req.email
            logger.info(f"[Profile] Updated {req.user_id}")

        db.commit()
        db.refresh(profile)
        return ProfileResponse.model_validate(profile)

    def get_profile(self, user_id: str, db: Session) -> Optional[ProfileModel]:
        return db.query(ProfileModel).filter_by(id=user_id).first()

    def get_conversation_minutes(self, user_id: str, db: Session) -> ConversationMinutes:
        profile = self.get_profile(user_id, db)
        if not profile:
            raise HTTPException(status_code=404, detail="Unable to fetch user conversation minutes")

        total = profile.total_conversation_minutes or 0
        used = profile.used_conversation_minutes or 0
        return ConversationMinutes(total=total, used=used, remaining=total - used)

    def reserve_minutes(self, user_id: str, minutes: int, db: Session) -> bool:
        return update_conversation_minutes(db, user_id, minutes)
