# prepwise/routers/prompts.py

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from prepwise.base.database import get_db
from prepwise.base.dependencies import get_llm, get_tavus_client
from prepwise.base.models import PromptGenerationRequest, PromptGenerationResult
from prepwise.services.prompt_generation_service import PromptGenerationService

router = APIRouter(prefix="/prompts", tags=["Prompt Generation"])


@router.post("/generate", response_model=PromptGenerationResult, summary="Generate interviewer prompts and session")
def generate_prompts(
    req: PromptGenerationRequest,
    db: Session = Depends(get_db),
    llm=Depends(get_llm),
    tavus=Depends(get_tavus_client),
):
    result = PromptGenerationService(llm=llm, tavus_client=tavus).run(req, db)
    if not result.success:
        return JSONResponse(status_code=500, content=jsonable_encoder(result))
    return result
