# prepwise/services/interview_service.py

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.orm import Session

from prepwise.base.config import settings
from prepwise.base.logging_config import interview_logger as logger
from prepwise.base.models import (
    CompleteInterviewRequest,
    FeedbackGenerationRequest,
    FeedbackView,
    InterviewCreateRequest,
    InterviewResponse,
    InterviewSession,
    InterviewUpdateRequest,
    PromptGenerationRequest,
    SkillAssessment,
)
from prepwise.base.schema import (
    DifficultyLevelModel,
    ExperienceLevelModel,
    FeedbackModel,
    FeedbackProcessingJobModel,
    InterviewModel,
    InterviewTypeModel,
)
from prepwise.models.gpt_writer import GPTWriter
from prepwise.models.tavus_client import TavusClient
from prepwise.services.feedback_service import MOCK_CONVERSATION_ID, payload_from_row, run_feedback_task
from prepwise.services.profile_service import ProfileService
from prepwise.services.prompt_generation_service import run_prompt_generation_task

FEEDBACK_PENDING_MESSAGE = "Your feedback is being generated. This may take a few minutes."

REQUIRED_FIELDS = (
    ("interview_type", "Interview type is required"),
    ("role", "Job role is required"),
    ("company", "Company is required"),
    ("experience", "Experience level is required"),
    ("difficulty", "Difficulty level is required"),
)


def to_response(interview: InterviewModel) -> InterviewResponse:
    return InterviewResponse(
        id=interview.id,
        user_id=interview.user_id,
        title=interview.title,
        company=interview.company,
        role=interview.role,
        interview_type=interview.interview_type.type if interview.interview_type else None,
        experience_level=interview.experience_level.value if interview.experience_level else None,
        difficulty_level=interview.difficulty_level.value if interview.difficulty_level else None,
        status=interview.status,
        scheduled_at=interview.scheduled_at,
        completed_at=interview.completed_at,
        duration=interview.duration,
        score=interview.score,
        prompt_status=interview.prompt_status,
        prompt_error=interview.prompt_error,
        llm_generated_context=interview.llm_generated_context,
        llm_generated_greeting=interview.llm_generated_greeting,
        tavus_persona_id=interview.tavus_persona_id,
        tavus_conversation_id=interview.tavus_conversation_id,
        tavus_conversation_url=interview.tavus_conversation_url,
        feedback_processing_status=interview.feedback_processing_status,
        feedback_requested_at=interview.feedback_requested_at,
        created_at=interview.created_at,
    )


class InterviewService:
    """
    Handles scheduling, cancellation, deletion and the prompt/feedback
    lifecycle of interviews, with best-effort persona cleanup on the video
    provider.
    """

    def __init__(
        self,
        tavus_client: Optional[TavusClient] = None,
        llm: Optional[GPTWriter] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        profile_service: Optional[ProfileService] = None,
    ):
        self.tavus = tavus_client
        self.llm = llm
        self.session_factory = session_factory
        self.profiles = profile_service or ProfileService()

    def _get(self, interview_id: str, db: Session) -> InterviewModel:
        interview = db.query(InterviewModel).filter_by(id=interview_id).first()
        if not interview:
            raise HTTPException(status_code=404, detail="Interview not found")
        return interview

    def _dispatch_prompts(self, req: PromptGenerationRequest, background_tasks: Optional[BackgroundTasks]) -> None:
        if background_tasks is None or self.session_factory is None:
            logger.warning(f"[Dispatch] No background runner, prompt generation for {req.interview_id} skipped")
            return
        background_tasks.add_task(run_prompt_generation_task, self.session_factory, req, self.llm, self.tavus)
        logger.info(f"[Dispatch] Prompt generation queued for {req.interview_id}")

    # === Scheduling ===

    def create_interview(
        self,
        req: InterviewCreateRequest,
        db: Session,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> InterviewResponse:
        for field, message in REQUIRED_FIELDS:
            value = getattr(req, field)
            if not value or not str(value).strip():
                raise HTTPException(status_code=400, detail=message)

        minutes = self.profiles.get_conversation_minutes(req.user_id, db)
        if minutes.remaining < req.duration:
            logger.info(f"[Quota] {req.user_id} has {minutes.remaining} min, needs {req.duration}")
            raise HTTPException(
                status_code=402,
                detail=(
                    f"Insufficient conversation minutes. You have {minutes.remaining} minutes remaining, "
                    f"but need {req.duration} minutes for this interview. Please upgrade your plan to continue."
                ),
            )

        interview_type = db.query(InterviewTypeModel).filter_by(type=req.interview_type).first()
        if not interview_type:
            raise HTTPException(status_code=400, detail=f"Unknown interview type: {req.interview_type}")
        difficulty = db.query(DifficultyLevelModel).filter_by(value=req.difficulty).first()
        if not difficulty:
            raise HTTPException(status_code=400, detail=f"Unknown difficulty level: {req.difficulty}")
        experience = db.query(ExperienceLevelModel).filter_by(value=req.experience).first()

        if req.interview_mode == "complete":
            title = f"Complete {req.role} Interview"
        else:
            title = f"{req.role} {req.interview_type} Interview"

        interview = InterviewModel(
            user_id=req.user_id,
            title=title,
            company=req.company,
            role=req.role,
            interview_type_id=interview_type.id,
            experience_level_id=experience.id if experience else None,
            difficulty_level_id=difficulty.id,
            status="scheduled",
            scheduled_at=req.scheduled_at or datetime.utcnow() + timedelta(hours=24),
            duration=req.duration,
            prompt_status="pending",
        )
        db.add(interview)
        db.commit()
        db.refresh(interview)
        logger.info(f"[Create] Interview {interview.id} scheduled for {req.user_id} ({req.duration} min)")

        # Separate write; a failure here leaves the interview in place
        if not self.profiles.reserve_minutes(req.user_id, req.duration, db):
            logger.warning(f"[Quota] Failed to reserve {req.duration} min for {req.user_id}")

        profile = self.profiles.get_profile(req.user_id, db)
        self._dispatch_prompts(
            PromptGenerationRequest(
                interview_id=interview.id,
                interview_type=req.interview_type,
                role=req.role,
                company=req.company or "",
                experience_level=req.experience,
                difficulty_level=req.difficulty,
                user_name=(profile.name if profile and profile.name else "Candidate"),
            ),
            background_tasks,
        )
        return to_response(interview)

    def list_interviews(self, user_id: str, db: Session) -> List[InterviewResponse]:
        interviews = db.query(InterviewModel).filter_by(user_id=user_id).order_by(
            InterviewModel.scheduled_at.desc()
        ).all()

        logger.info(f"[List] {len(interviews)} interviews for {user_id}")
        return [to_response(i) for i in interviews]

    def get_interview(self, interview_id: str, db: Session) -> InterviewResponse:
        return to_response(self._get(interview_id, db))

    def update_interview(self, interview_id: str, req: InterviewUpdateRequest, db: Session) -> InterviewResponse:
        interview = self._get(interview_id, db)
        for field, value in req.model_dump(exclude_none=True).items():
            setattr(interview, field, value)
        db.commit()
        db.refresh(interview)

        logger.info(f"[Update] Interview {interview_id} updated")
        return to_response(interview)

    def cancel_interview(self, interview_id: str, db: Session) -> InterviewResponse:
        interview = self._get(interview_id, db)

        if interview.status == "completed":
            raise HTTPException(status_code=409, detail="Completed interviews cannot be canceled")
        if interview.status != "canceled":
            interview.status = "canceled"
            db.commit()
            db.refresh(interview)
            logger.info(f"[Cancel] Interview {interview_id} canceled")

        return to_response(interview)

    def delete_interview(self, interview_id: str, db: Session) -> dict:
        interview = self._get(interview_id, db)

        if interview.tavus_persona_id:
            try:
                if self.tavus is None:
                    raise RuntimeError("TAVUS_API_KEY not configured")
                self.tavus.delete_persona(interview.tavus_persona_id)
                logger.info(f"[Delete] Persona {interview.tavus_persona_id} deleted")
            except Exception as e:
                logger.warning(f"[Tavus] Failed to delete persona {interview.tavus_persona_id}: {e}")

        db.delete(interview)
        db.commit()

        logger.info(f"[Delete] Interview {interview_id} deleted")
        return {"status": "deleted", "interview_id": interview_id}

    # === Prompt lifecycle ===

    def retry_prompt_generation(
        self,
        interview_id: str,
        user_name: Optional[str],
        db: Session,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> InterviewResponse:
        interview = self._get(interview_id, db)

        interview.prompt_status = "generating"
        interview.prompt_error = None
        db.commit()
        db.refresh(interview)
        logger.info(f"[Retry] Prompt generation reset for {interview_id}")

        self._dispatch_prompts(
            PromptGenerationRequest(
                interview_id=interview.id,
                interview_type=interview.interview_type.type if interview.interview_type else None,
                role=interview.role,
                company=interview.company or "",
                experience_level=interview.experience_level.value if interview.experience_level else "mid",
                difficulty_level=interview.difficulty_level.value if interview.difficulty_level else "medium",
                user_name=user_name or "Candidate",
            ),
            background_tasks,
        )
        return to_response(interview)

    def start_session(self, interview_id: str, db: Session) -> InterviewSession:
        interview = self._get(interview_id, db)

        if interview.status != "scheduled":
            raise HTTPException(status_code=409, detail=f"Interview is {interview.status}")
        if interview.prompt_status != "ready" or not interview.tavus_conversation_id:
            raise HTTPException(status_code=409, detail="Interview is not ready to start")

        logger.info(f"[Session] Starting {interview_id} on conversation {interview.tavus_conversation_id}")
        return InterviewSession(
            interview_id=interview.id,
            conversation_id=interview.tavus_conversation_id,
            conversation_url=interview.tavus_conversation_url,
            greeting=interview.llm_generated_greeting,
            context=interview.llm_generated_context,
        )

    # === Feedback lifecycle ===

    def start_feedback_processing(
        self,
        interview_id: str,
        req: CompleteInterviewRequest,
        db: Session,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> InterviewResponse:
        interview = self._get(interview_id, db)
        conversation_id = req.conversation_id or interview.tavus_conversation_id or MOCK_CONVERSATION_ID
        now = datetime.utcnow()

        interview.status = "completed"
        interview.completed_at = now
        interview.feedback_processing_status = "processing"
        interview.feedback_requested_at = now
        if req.conversation_id and not interview.tavus_conversation_id:
            interview.tavus_conversation_id = req.conversation_id

        job = db.query(FeedbackProcessingJobModel).filter_by(interview_id=interview.id).first()
        if job is None:
            job = FeedbackProcessingJobModel(interview_id=interview.id)
            db.add(job)
        job.tavus_conversation_id = conversation_id
        job.callback_url = settings.TAVUS_CALLBACK_URL
        job.status = "processing"
        job.error_message = None
        job.started_at = now
        job.completed_at = None

        db.commit()
        db.refresh(interview)
        logger.info(f"[Complete] Feedback processing started for {interview_id} (conversation={conversation_id})")

        if background_tasks is not None and self.session_factory is not None:
            background_tasks.add_task(
                run_feedback_task,
                self.session_factory,
                FeedbackGenerationRequest(conversation_id=conversation_id, interview_id=interview.id),
                self.llm,
                self.tavus,
            )
        return to_response(interview)

    def get_feedback(self, interview_id: str, db: Session) -> FeedbackView:
        interview = self._get(interview_id, db)
        row = db.query(FeedbackModel).filter_by(interview_id=interview.id).first()

        base = dict(
            interview_id=interview.id,
            title=interview.title or "Interview Feedback",
            date=interview.created_at,
            company=interview.company,
            role=interview.role,
            completed_at=interview.completed_at,
            duration=interview.duration or settings.DEFAULT_INTERVIEW_DURATION,
            difficulty_level=interview.difficulty_level.label if interview.difficulty_level else None,
            experience_level=interview.experience_level.label if interview.experience_level else None,
        )

        if row is None:
            error = interview.processing_job.error_message if interview.processing_job else None
            return FeedbackView(
                **base,
                processing_status=interview.feedback_processing_status or "pending",
                error_message=error or (interview.prompt_error if interview.feedback_processing_status == "failed" else None),
                overall_score=0,
                summary=FEEDBACK_PENDING_MESSAGE,
                skill_assessment=SkillAssessment(),
            )

        payload = payload_from_row(row)
        return FeedbackView(
            **base,
            processing_status=interview.feedback_processing_status or "completed",
            error_message=interview.processing_job.error_message if interview.processing_job else None,
            overall_score=payload.overall_score,
            summary=payload.summary,
            strengths=payload.strengths,
            improvements=payload.improvements,
            transcript=payload.transcript,
            tavus_analysis=payload.tavus_analysis,
            skill_assessment=payload.skill_assessment,
        )
