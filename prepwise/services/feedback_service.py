# prepwise/services/feedback_service.py

import json
import random
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from prepwise.base.error_handlers import ExternalServiceError
from prepwise.base.logging_config import feedback_logger as logger
from prepwise.base.metrics import feedback_generation_counter
from prepwise.base.models import (
    FeedbackGenerationRequest,
    FeedbackGenerationResult,
    FeedbackPayload,
    SkillAssessment,
    SkillScore,
)
from prepwise.base.schema import FeedbackModel, InterviewModel
from prepwise.models.gpt_writer import GPTWriter
from prepwise.models.prompt_templates import (
    FEEDBACK_SYSTEM_PROMPT,
    FEEDBACK_USER_PROMPT,
    MOCK_IMPROVEMENTS,
    MOCK_SKILL_FEEDBACK,
    MOCK_STRENGTHS,
    MOCK_SUMMARY,
    MOCK_WORDING,
    NO_TRANSCRIPT_BLOCK,
    TRANSCRIPT_BLOCK,
)
from prepwise.models.tavus_client import TavusClient
from prepwise.utils.db_procedures import mark_job, upsert_feedback

MOCK_CONVERSATION_ID = "mock-conversation-id"

# Inclusive (low, high) bounds of the mock overall score per difficulty
SCORE_RANGES = {
    "easy": (75, 95),
    "medium": (70, 92),
    "hard": (62, 88),
}
DEFAULT_SCORE_RANGE = (70, 95)

SKILLS = ("technical", "communication", "problem_solving", "experience")


def score_range(difficulty: Optional[str], duration: Optional[int]) -> Tuple[int, int]:
    low, high = SCORE_RANGES.get(difficulty or "", DEFAULT_SCORE_RANGE)
    duration = duration or 0
    if duration < 10:
        high -= 5
    elif duration >= 30:
        low += 3
    return low, high


def feedback_tone(overall_score: float) -> str:
    if overall_score >= 85:
        return "excellent"
    if overall_score >= 75:
        return "good"
    return "satisfactory"


def extract_conversation_artifacts(conversation: dict) -> Tuple[Optional[str], Optional[Any]]:
    """
    Pulls the transcript and perception analysis out of a verbose conversation.
    The transcript is rendered as ``role: content`` entries separated by blank lines.
    """
    transcript = None
    analysis = None

    for event in conversation.get("events") or []:
        event_type = event.get("event_type")
        properties = event.get("properties") or {}

        if event_type == "application.transcription_ready" and transcript is None:
            entries = properties.get("transcript") or []
            if entries:
                transcript = "\n\n".join(f"{e.get('role')}: {e.get('content')}" for e in entries)
        elif event_type == "application.perception_analysis" and analysis is None:
            analysis = properties.get("analysis") or None

    return transcript, analysis


def payload_from_row(row: FeedbackModel) -> FeedbackPayload:
    return FeedbackPayload(
        overall_score=row.overall_score or 0,
        summary=row.summary or "",
        strengths=row.strengths or [],
        improvements=row.improvements or [],
        transcript=row.transcript,
        tavus_analysis=row.tavus_analysis,
        skill_assessment=SkillAssessment(
            technical=SkillScore(score=row.technical_score or 0, feedback=row.technical_feedback or ""),
            communication=SkillScore(score=row.communication_score or 0, feedback=row.communication_feedback or ""),
            problem_solving=SkillScore(score=row.problem_solving_score or 0, feedback=row.problem_solving_feedback or ""),
            experience=SkillScore(score=row.experience_score or 0, feedback=row.experience_feedback or ""),
        ),
    )


def is_complete(row: Optional[FeedbackModel]) -> bool:
    if row is None:
        return False
    has_source = bool(row.transcript) or bool(row.tavus_analysis)
    return has_source and (row.overall_score or 0) > 0 and bool(row.strengths)


class FeedbackService:
    """
    Synthesises post-interview feedback.

    Existing complete feedback is returned as-is. Otherwise the transcript is
    fetched from the video provider (when available), scored by the LLM, and
    replaced by templated mock feedback when the LLM is missing, fails, or
    answers with something that is not the expected JSON.
    """

    def __init__(
        self,
        llm: Optional[GPTWriter] = None,
        tavus_client: Optional[TavusClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self.llm = llm
        self.tavus = tavus_client
        self.rng = rng or random.Random()

    def _resolve_interview(self, req: FeedbackGenerationRequest, conversation_id: str, db: Session) -> InterviewModel:
        interview = None
        if req.interview_id:
            interview = db.query(InterviewModel).filter_by(id=req.interview_id).first()
        if interview is None:
            interview = db.query(InterviewModel).filter_by(tavus_conversation_id=conversation_id).first()
        if interview is None:
            logger.warning(f"[Resolve] No interview for conversation {conversation_id}")
            raise HTTPException(status_code=404, detail="interview_not_found")
        return interview

    def generate(self, req: FeedbackGenerationRequest, db: Session) -> FeedbackGenerationResult:
        conversation_id = req.conversation_id or MOCK_CONVERSATION_ID
        interview = self._resolve_interview(req, conversation_id, db)

        existing = db.query(FeedbackModel).filter_by(interview_id=interview.id).first()
        if is_complete(existing):
            logger.info(f"[Cache] Reusing stored feedback for {interview.id}")
            if interview.feedback_processing_status == "processing":
                interview.feedback_processing_status = "completed"
                interview.status = "completed"
                interview.completed_at = existing.created_at or datetime.utcnow()
                db.commit()
            feedback_generation_counter.labels(source="cache").inc()
            return FeedbackGenerationResult(
                success=True,
                message="Using cached feedback",
                interview_id=interview.id,
                feedback=payload_from_row(existing),
                cached=True,
            )

        if interview.feedback_processing_status == "pending":
            interview.feedback_processing_status = "processing"
            db.commit()

        transcript, analysis = self.fetch_artifacts(conversation_id)

        feedback, source = self.generate_llm_feedback(interview, transcript)
        feedback = feedback.model_copy(update={"transcript": transcript, "tavus_analysis": analysis})

        try:
            self.store(interview, conversation_id, feedback, db)
        except Exception as e:
            db.rollback()
            logger.error(f"[Store] Failed to store feedback for {interview.id}: {e}")
            interview.feedback_processing_status = "failed"
            interview.prompt_error = str(e)
            mark_job(db, interview, "failed", str(e))
            db.commit()
            raise HTTPException(status_code=500, detail=f"Failed to generate or store feedback: {e}")

        feedback_generation_counter.labels(source=source).inc()
        logger.info(f"[Generate] Feedback stored for {interview.id} (source={source}, score={feedback.overall_score})")
        return FeedbackGenerationResult(
            success=True,
            message="New feedback generated and stored successfully",
            interview_id=interview.id,
            feedback=feedback,
            cached=False,
        )

    def fetch_artifacts(self, conversation_id: str) -> Tuple[Optional[str], Optional[Any]]:
        if self.tavus is None or conversation_id.startswith("mock-"):
            return None, None
        try:
            conversation = self.tavus.get_conversation(conversation_id, verbose=True)
        except (ExternalServiceError, ValueError) as e:
            logger.error(f"[Transcript] Could not fetch conversation {conversation_id}: {e}")
            return None, None

        transcript, analysis = extract_conversation_artifacts(conversation)
        logger.info(
            f"[Transcript] {conversation_id}: transcript={'yes' if transcript else 'no'}, "
            f"analysis={'yes' if analysis else 'no'}"
        )
        return transcript, analysis

    def generate_llm_feedback(self, interview: InterviewModel, transcript: Optional[str]) -> Tuple[FeedbackPayload, str]:
        if self.llm is None:
            logger.warning("[LLM] Not configured, falling back to mock feedback")
            return self.generate_mock_feedback(interview), "mock"

        interview_type = interview.interview_type.type if interview.interview_type else None
        system_prompt = FEEDBACK_SYSTEM_PROMPT.format(
            role=interview.role,
            company=interview.company or "Not specified",
            interview_type=interview_type or "General",
            experience_level=interview.experience_level.label if interview.experience_level else "Not specified",
            difficulty_level=interview.difficulty_level.label if interview.difficulty_level else "Standard",
            context=interview.llm_generated_context or "A standard job interview for the specified role.",
        )
        user_prompt = FEEDBACK_USER_PROMPT.format(
            transcript_block=TRANSCRIPT_BLOCK.format(transcript=transcript) if transcript else NO_TRANSCRIPT_BLOCK,
            role=interview.role,
            company_or_default=interview.company or "the company",
        )

        try:
            raw = self.llm.write(user_prompt, system_prompt=system_prompt, temperature=0.7)
        except ExternalServiceError as e:
            logger.error(f"[LLM] Feedback generation failed: {e}")
            return self.generate_mock_feedback(interview), "mock"

        try:
            return FeedbackPayload(**json.loads(raw)), "llm"
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"[ParseFail:Feedback] {e}")
            return self.generate_mock_feedback(interview), "mock"

    def generate_mock_feedback(self, interview: InterviewModel) -> FeedbackPayload:
        difficulty = interview.difficulty_level.value if interview.difficulty_level else None
        low, high = score_range(difficulty, interview.duration)
        overall = self.rng.randint(low, high)
        tone = feedback_tone(overall)
        logger.info(f"[Mock] Interview {interview.id}: score={overall} tone={tone}")

        interview_type = interview.interview_type.type if interview.interview_type else None
        words = dict(MOCK_WORDING[tone])
        words.update(
            tone=tone,
            role=interview.role,
            company=interview.company or "company",
            technical_area="core technologies and frameworks" if interview_type == "technical" else "industry concepts",
        )

        skills = {}
        for skill in SKILLS:
            score = min(100, max(50, overall + self.rng.uniform(-10, 10)))
            skills[skill] = SkillScore(score=round(score), feedback=MOCK_SKILL_FEEDBACK[skill].format(**words))

        return FeedbackPayload(
            overall_score=overall,
            summary=MOCK_SUMMARY.format(**words),
            strengths=[s.format(**words) for s in MOCK_STRENGTHS],
            improvements=[s.format(**words) for s in MOCK_IMPROVEMENTS],
            skill_assessment=SkillAssessment(**skills),
        )

    def store(self, interview: InterviewModel, conversation_id: str, feedback: FeedbackPayload, db: Session) -> None:
        skills = feedback.skill_assessment
        upsert_feedback(db, interview, conversation_id, {
            "overall_score": feedback.overall_score,
            "summary": feedback.summary,
            "strengths": feedback.strengths,
            "improvements": feedback.improvements,
            "technical_score": skills.technical.score,
            "communication_score": skills.communication.score,
            "problem_solving_score": skills.problem_solving.score,
            "experience_score": skills.experience.score,
            "technical_feedback": skills.technical.feedback,
            "communication_feedback": skills.communication.feedback,
            "problem_solving_feedback": skills.problem_solving.feedback,
            "experience_feedback": skills.experience.feedback,
            "transcript": feedback.transcript,
            "tavus_analysis": feedback.tavus_analysis,
        })

        interview.feedback_processing_status = "completed"
        interview.status = "completed"
        interview.score = feedback.overall_score
        interview.completed_at = datetime.utcnow()
        mark_job(db, interview, "completed")
        db.commit()


def run_feedback_task(
    session_factory: Callable[[], Session],
    req: FeedbackGenerationRequest,
    llm: Optional[GPTWriter],
    tavus_client: Optional[TavusClient],
) -> None:
    """Background entry point. Opens its own session; never raises."""
    db = session_factory()
    try:
        FeedbackService(llm=llm, tavus_client=tavus_client).generate(req, db)
    except Exception as e:
        logger.error(f"[Background] Feedback for {req.interview_id or req.conversation_id} failed: {e}")
    finally:
        db.close()
