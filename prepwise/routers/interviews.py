# prepwise/routers/interviews.py

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from prepwise.base.database import get_db, get_session_factory
from prepwise.base.dependencies import get_llm, get_tavus_client
from prepwise.base.models import (
    CompleteInterviewRequest,
    FeedbackView,
    InterviewCreateRequest,
    InterviewResponse,
    InterviewSession,
    InterviewUpdateRequest,
    RetryPromptRequest,
)
from prepwise.services.interview_service import InterviewService

router = APIRouter(prefix="/interviews", tags=["Interviews"])


def get_interview_service(
    tavus=Depends(get_tavus_client),
    llm=Depends(get_llm),
    session_factory=Depends(get_session_factory),
) -> InterviewService:
    return InterviewService(tavus_client=tavus, llm=llm, session_factory=session_factory)


# === Scheduling ===

@router.post("", response_model=InterviewResponse, status_code=201, summary="Schedule an interview")
def create_interview(
    req: InterviewCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    service: InterviewService = Depends(get_interview_service),
):
    return service.create_interview(req, db, background_tasks)


@router.get("", response_model=List[InterviewResponse], summary="List a user's interviews")
def list_interviews(user_id: str, db: Session = Depends(get_db),
                    service: InterviewService = Depends(get_interview_service)):
    return service.list_interviews(user_id, db)


@router.get("/{interview_id}", response_model=InterviewResponse)
def get_interview(interview_id: str, db: Session = Depends(get_db),
                  service: InterviewService = Depends(get_interview_service)):
    return service.get_interview(interview_id, db)


@router.patch("/{interview_id}", response_model=InterviewResponse)
def update_interview(interview_id: str, req: InterviewUpdateRequest, db: Session = Depends(get_db),
                     service: InterviewService = Depends(get_interview_service)):
    return service.update_interview(interview_id, req, db)


@router.delete("/{interview_id}")
def delete_interview(interview_id: str, db: Session = Depends(get_db),
                     service: InterviewService = Depends(get_interview_service)):
    return service.delete_interview(interview_id, db)


@router.post("/{interview_id}/cancel", response_model=InterviewResponse)
def cancel_interview(interview_id: str, db: Session = Depends(get_db),
                     service: InterviewService = Depends(get_interview_service)):
    return service.cancel_interview(interview_id, db)


# === Prompt & Session ===

@router.post("/{interview_id}/retry-prompts", response_model=InterviewResponse, summary="Retry prompt generation")
def retry_prompts(
    interview_id: str,
    background_tasks: BackgroundTasks,
    req: Optional[RetryPromptRequest] = None,
    db: Session = Depends(get_db),
    service: InterviewService = Depends(get_interview_service),
):
    user_name = req.user_name if req else None
    return service.retry_prompt_generation(interview_id, user_name, db, background_tasks)


@router.post("/{interview_id}/session", response_model=InterviewSession, summary="Start the video session")
def start_session(interview_id: str, db: Session = Depends(get_db),
                  service: InterviewService = Depends(get_interview_service)):
    return service.start_session(interview_id, db)


# === Feedback ===

@router.post("/{interview_id}/complete", response_model=InterviewResponse, summary="Finish and request feedback")
def complete_interview(
    interview_id: str,
    background_tasks: BackgroundTasks,
    req: Optional[CompleteInterviewRequest] = None,
    db: Session = Depends(get_db),
    service: InterviewService = Depends(get_interview_service),
):
    return service.start_feedback_processing(interview_id, req or CompleteInterviewRequest(), db, background_tasks)


@router.get("/{interview_id}/feedback", response_model=FeedbackView)
def get_feedback(interview_id: str, db: Session = Depends(get_db),
                 service: InterviewService = Depends(get_interview_service)):
    return service.get_feedback(interview_id, db)
