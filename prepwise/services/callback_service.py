# prepwise/services/callback_service.py

import logging
import random
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prepwise.base.metrics import tavus_callback_counter
from prepwise.base.models import TavusCallbackPayload
from prepwise.models.prompt_templates import (
    CALLBACK_DEFAULT_FEEDBACK,
    CALLBACK_DEFAULT_IMPROVEMENTS,
    CALLBACK_DEFAULT_STRENGTHS,
    CALLBACK_DEFAULT_SUMMARY,
    CALLBACK_SIMULATED_SUMMARY,
    CALLBACK_SIMULATED_TECHNICAL_FEEDBACK,
)
from prepwise.utils.db_procedures import complete_feedback_processing, fail_feedback_processing

logger = logging.getLogger("callback_service")

# Inclusive bounds used when the provider omits a score
DEFAULT_SCORE_BOUNDS = {
    "overall": (70, 99),
    "technical": (75, 94),
    "communication": (80, 99),
    "problem_solving": (70, 89),
    "experience": (75, 94),
}


class CallbackService:
    """
    Applies video-provider webhook events to interviews and feedback.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _default_score(self, name: str) -> int:
        low, high = DEFAULT_SCORE_BOUNDS[name]
        return self.rng.randint(low, high)

    def handle(self, payload: TavusCallbackPayload, db: Session) -> dict:
        event_type = payload.event_type or "unknown"
        tavus_callback_counter.labels(event_type=event_type).inc()
        logger.info(f"[Callback] {event_type} for conversation {payload.conversation_id}")

        if event_type in ("conversation.completed", "conversation.failed") and not payload.conversation_id:
            logger.warning(f"[Callback] {event_type} without conversation_id, ignoring")
        elif event_type == "conversation.completed" and payload.data:
            self._complete(payload.conversation_id, payload.data, db)
        elif event_type == "conversation.failed" and payload.error:
            self._fail(payload.conversation_id, payload.error, db)
        else:
            logger.warning(f"[Callback] Unhandled event type or missing data: {event_type}")
            if payload.conversation_id:
                self._simulate(payload.conversation_id, db)

        return {"message": "Callback received and processed"}

    def _complete(self, conversation_id: Optional[str], data: dict, db: Session) -> None:
        skills = data.get("skill_assessment") or {}

        def skill(name: str) -> dict:
            return skills.get(name) or {}

        try:
            interview_id = complete_feedback_processing(
                db,
                conversation_id,
                overall_score=data.get("overall_score") or self._default_score("overall"),
                summary=data.get("summary") or CALLBACK_DEFAULT_SUMMARY,
                strengths=data.get("strengths") or list(CALLBACK_DEFAULT_STRENGTHS),
                improvements=data.get("improvements") or list(CALLBACK_DEFAULT_IMPROVEMENTS),
                technical_score=skill("technical").get("score") or self._default_score("technical"),
                communication_score=skill("communication").get("score") or self._default_score("communication"),
                problem_solving_score=skill("problem_solving").get("score") or self._default_score("problem_solving"),
                experience_score=skill("experience").get("score") or self._default_score("experience"),
                technical_feedback=skill("technical").get("feedback") or CALLBACK_DEFAULT_FEEDBACK["technical"],
                communication_feedback=skill("communication").get("feedback") or CALLBACK_DEFAULT_FEEDBACK["communication"],
                problem_solving_feedback=skill("problem_solving").get("feedback") or CALLBACK_DEFAULT_FEEDBACK["problem_solving"],
                experience_feedback=skill("experience").get("feedback") or CALLBACK_DEFAULT_FEEDBACK["experience"],
            )
        except (LookupError, SQLAlchemyError) as e:
            db.rollback()
            logger.error(f"[Callback] complete_feedback_processing failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"[Callback] Feedback completed for interview {interview_id}")

    def _fail(self, conversation_id: Optional[str], error: dict, db: Session) -> None:
        message = error.get("message") or "Tavus conversation failed."
        try:
            interview_id = fail_feedback_processing(db, conversation_id, message)
        except (LookupError, SQLAlchemyError) as e:
            db.rollback()
            logger.error(f"[Callback] fail_feedback_processing failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"[Callback] Feedback marked failed for interview {interview_id}: {message}")

    def _simulate(self, conversation_id: str, db: Session) -> None:
        logger.info(f"[Callback] Simulating feedback completion for {conversation_id}")
        try:
            complete_feedback_processing(
                db,
                conversation_id,
                overall_score=self._default_score("overall"),
                summary=CALLBACK_SIMULATED_SUMMARY,
                strengths=list(CALLBACK_DEFAULT_STRENGTHS),
                improvements=list(CALLBACK_DEFAULT_IMPROVEMENTS),
                technical_score=self._default_score("technical"),
                communication_score=self._default_score("communication"),
                problem_solving_score=self._default_score("problem_solving"),
                experience_score=self._default_score("experience"),
                technical_feedback=CALLBACK_SIMULATED_TECHNICAL_FEEDBACK,
                communication_feedback=CALLBACK_DEFAULT_FEEDBACK["communication"],
                problem_solving_feedback=CALLBACK_DEFAULT_FEEDBACK["problem_solving"],
                experience_feedback=CALLBACK_DEFAULT_FEEDBACK["experience"],
            )
        except (LookupError, SQLAlchemyError) as e:
            db.rollback()
            logger.warning(f"[Callback] Simulated completion failed: {e}")
