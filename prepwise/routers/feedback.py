# prepwise/routers/feedback.py

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from prepwise.base.database import get_db
from prepwise.base.dependencies import get_llm, get_tavus_client
from prepwise.base.models import FeedbackGenerationRequest, FeedbackGenerationResult
from prepwise.services.feedback_service import FeedbackService

router = APIRouter(prefix="/feedback", tags=["Feedback"])


@router.post("/generate", response_model=FeedbackGenerationResult, summary="Generate or reuse interview feedback")
def generate_feedback(
    req: Optional[FeedbackGenerationRequest] = None,
    db: Session = Depends(get_db),
    llm=Depends(get_llm),
    tavus=Depends(get_tavus_client),
):
    return FeedbackService(llm=llm, tavus_client=tavus).generate(req or FeedbackGenerationRequest(), db)
