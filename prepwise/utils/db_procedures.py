"""
Database routines shared by the interview, prompt and feedback services.

Each routine is named after the database procedure it stands for
(get_cached_prompt, cache_prompt, update_conversation_minutes,
complete_feedback_processing, fail_feedback_processing) so callers and
dashboards can keep referring to them by name.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prepwise.base.schema import (
    FeedbackModel,
    FeedbackProcessingJobModel,
    InterviewModel,
    ProfileModel,
    PromptCacheModel,
)

logger = logging.getLogger("db_procedures")

FEEDBACK_FIELDS = (
    "overall_score",
    "summary",
    "strengths",
    "improvements",
    "technical_score",
    "communication_score",
    "problem_solving_score",
    "experience_score",
    "technical_feedback",
    "communication_feedback",
    "problem_solving_feedback",
    "experience_feedback",
    "transcript",
    "tavus_analysis",
)


def _cache_query(db: Session, interview_type: str, role: str, company: str,
                 experience_level: str, difficulty_level: str):
    return db.query(PromptCacheModel).filter_by(
        interview_type=interview_type,
        role=role,
        company=company or "",
        experience_level=experience_level,
        difficulty_level=difficulty_level,
    )


def get_cached_prompt(
    db: Session,
    interview_type: str,
    role: str,
    company: str,
    experience_level: str,
    difficulty_level: str,
) -> Optional[PromptCacheModel]:
    entry = _cache_query(db, interview_type, role, company, experience_level, difficulty_level).first()
    if entry is None:
        return None

    entry.use_count = (entry.use_count or 0) + 1
    entry.last_used_at = datetime.utcnow()
    db.commit()
    db.refresh(entry)
    return entry


def cache_prompt(
    db: Session,
    interview_type: str,
    role: str,
    company: str,
    experience_level: str,
    difficulty_level: str,
    system_prompt: str,
    initial_message: str,
    persona_name: Optional[str] = None,
    persona_description: Optional[str] = None,
) -> PromptCacheModel:
    entry = _cache_query(db, interview_type, role, company, experience_level, difficulty_level).first()
    if entry is None:
        entry = PromptCacheModel(
            interview_type=interview_type,
            role=role,
            company=company or "",
            experience_level=experience_level,
            difficulty_level=difficulty_level,
            use_count=0,
        )
        db.add(entry)

    entry.conversational_context = system_prompt
    entry.custom_greeting = initial_message
    entry.persona_name = persona_name
    entry.persona_description = persona_description
    entry.last_used_at = datetime.utcnow()
    db.commit()
    db.refresh(entry)
    return entry


def update_conversation_minutes(db: Session, user_id: str, minutes: int) -> bool:
    """Adds ``minutes`` to the profile's used counter. Returns False instead of raising."""
    try:
        profile = db.query(ProfileModel).filter_by(id=user_id).first()
        if profile is None:
            logger.warning(f"[Minutes] No profile for user {user_id}")
            return False

        profile.used_conversation_minutes = (profile.used_conversation_minutes or 0) + minutes
        db.commit()
        logger.info(f"[Minutes] Reserved {minutes} min for {user_id} (used={profile.used_conversation_minutes})")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[Minutes] Failed to update minutes for {user_id}: {e}")
        return False


def _interview_for_conversation(db: Session, tavus_conversation_id: Optional[str]) -> InterviewModel:
    if not tavus_conversation_id:
        raise LookupError("A conversation id is required")
    interview = db.query(InterviewModel).filter_by(tavus_conversation_id=tavus_conversation_id).first()
    if interview is None:
        raise LookupError(f"No interview found for conversation {tavus_conversation_id}")
    return interview


def upsert_feedback(db: Session, interview: InterviewModel, tavus_conversation_id: Optional[str],
                    values: Dict[str, Any]) -> FeedbackModel:
    feedback = db.query(FeedbackModel).filter_by(interview_id=interview.id).first()
    if feedback is None:
        feedback = FeedbackModel(interview_id=interview.id)
        db.add(feedback)

    feedback.tavus_conversation_id = tavus_conversation_id
    for field in FEEDBACK_FIELDS:
        if field in values:
            setattr(feedback, field, values[field])
    return feedback


def mark_job(db: Session, interview: InterviewModel, status: str, error_message: Optional[str] = None) -> None:
    job = db.query(FeedbackProcessingJobModel).filter_by(interview_id=interview.id).first()
    if job is None:
        return
    job.status = status
    job.error_message = error_message
    if status in ("completed", "failed"):
        job.completed_at = datetime.utcnow()


def complete_feedback_processing(
    db: Session,
    tavus_conversation_id: str,
    overall_score: float,
    summary: str,
    strengths: List[str],
    improvements: List[str],
    technical_score: float,
    communication_score: float,
    problem_solving_score: float,
    experience_score: float,
    technical_feedback: str,
    communication_feedback: str,
    problem_solving_feedback: str,
    experience_feedback: str,
) -> str:
    interview = _interview_for_conversation(db, tavus_conversation_id)

    upsert_feedback(db, interview, tavus_conversation_id, {
        "overall_score": overall_score,
        "summary": summary,
        "strengths": strengths,
        "improvements": improvements,
        "technical_score": technical_score,
        "communication_score": communication_score,
        "problem_solving_score": problem_solving_score,
        "experience_score": experience_score,
        "technical_feedback": technical_feedback,
        "communication_feedback": communication_feedback,
        "problem_solving_feedback": problem_solving_feedback,
        "experience_feedback": experience_feedback,
    })

    interview.status = "completed"
    interview.feedback_processing_status = "completed"
    interview.score = overall_score
    interview.completed_at = datetime.utcnow()
    mark_job(db, interview, "completed")
    db.commit()
    return interview.id


def fail_feedback_processing(db: Session, tavus_conversation_id: str, error_message: str) -> str:
    interview = _interview_for_conversation(db, tavus_conversation_id)

    interview.feedback_processing_status = "failed"
    interview.prompt_error = error_message
    mark_job(db, interview, "failed", error_message)
    db.commit()
    return interview.id
