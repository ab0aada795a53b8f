# prepwise/services/prompt_generation_service.py

import json
import re
from datetime import datetime
from typing import Callable, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from prepwise.base.config import AppConfig, settings
from prepwise.base.error_handlers import LLMUnavailableError
from prepwise.base.logging_config import prompt_logger as logger
from prepwise.base.metrics import prompt_generation_counter
from prepwise.base.models import GeneratedPrompts, PromptGenerationRequest, PromptGenerationResult
from prepwise.base.schema import InterviewModel
from prepwise.models.gpt_writer import GPTWriter
from prepwise.models.prompt_templates import (
    FALLBACK_GREETING,
    FALLBACK_PERSONA_DESCRIPTION,
    FALLBACK_PERSONA_NAME,
    FALLBACK_SYSTEM_PROMPT,
    INTERVIEWER_SYSTEM_PROMPT,
    INTERVIEWER_USER_PROMPT,
    PARSE_FALLBACK_PERSONA_DESCRIPTION,
    PARSE_FALLBACK_PERSONA_NAME,
    PARTICIPANT_PLACEHOLDER,
)
from prepwise.models.tavus_client import TavusClient, replica_for_interview_type
from prepwise.utils.db_procedures import cache_prompt, get_cached_prompt

# Process-local memo; lives as long as the worker process
_memory_cache: Dict[str, GeneratedPrompts] = {}

_FIELD_PATTERNS = {
    "persona_name": re.compile(
        r'persona_name["\s:]+(.+?)(?=persona_description|system_prompt|initial_message|$)', re.DOTALL
    ),
    "persona_description": re.compile(
        r'persona_description["\s:]+(.+?)(?=persona_name|system_prompt|initial_message|$)', re.DOTALL
    ),
    "system_prompt": re.compile(
        r'system_prompt["\s:]+(.+?)(?=persona_name|persona_description|initial_message|$)', re.DOTALL
    ),
    "initial_message": re.compile(r'initial_message["\s:]+(.+)$', re.DOTALL),
}


def cache_key(interview_type: str, role: str, company: str, experience_level: str, difficulty_level: str) -> str:
    return f"{interview_type}:{role}:{company}:{experience_level}:{difficulty_level}"


def clear_memory_cache() -> None:
    _memory_cache.clear()


def _type_title(interview_type: str) -> str:
    return interview_type[:1].upper() + interview_type[1:]


def _clean_extracted(value: str) -> str:
    value = value.strip().rstrip("}").strip().rstrip(",").strip()
    return re.sub(r'^["\']|["\']$', "", value).strip()


def parse_generated_prompts(raw: str, interview_type: str, role: str, company: str) -> GeneratedPrompts:
    """
    Parses the LLM answer as JSON, falling back to a per-field regex scan.
    Fields the scan cannot find are filled from templates.
    """
    try:
        parsed = json.loads(raw)
        return GeneratedPrompts(**parsed)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"[ParseFail:Prompts] {e}")

    extracted = {}
    for field, pattern in _FIELD_PATTERNS.items():
        match = pattern.search(raw)
        if match:
            extracted[field] = _clean_extracted(match.group(1))

    fmt = {
        "type_title": _type_title(interview_type),
        "interview_type": interview_type,
        "role": role,
        "company": company,
    }
    return GeneratedPrompts(
        persona_name=extracted.get("persona_name") or PARSE_FALLBACK_PERSONA_NAME.format(**fmt),
        persona_description=extracted.get("persona_description") or PARSE_FALLBACK_PERSONA_DESCRIPTION.format(**fmt),
        system_prompt=extracted.get("system_prompt") or FALLBACK_SYSTEM_PROMPT.format(**fmt),
        initial_message=extracted.get("initial_message") or FALLBACK_GREETING.format(user_name=PARTICIPANT_PLACEHOLDER, **fmt),
    )


def fallback_prompts(interview_type: str, role: str, company: str, user_name: str) -> GeneratedPrompts:
    fmt = {
        "type_title": _type_title(interview_type),
        "interview_type": interview_type,
        "role": role,
        "company": company,
        "user_name": user_name,
    }
    return GeneratedPrompts(
        persona_name=FALLBACK_PERSONA_NAME.format(**fmt),
        persona_description=FALLBACK_PERSONA_DESCRIPTION.format(**fmt),
        system_prompt=FALLBACK_SYSTEM_PROMPT.format(**fmt),
        initial_message=FALLBACK_GREETING.format(**fmt),
    )


def personalize(prompts: GeneratedPrompts, user_name: str) -> GeneratedPrompts:
    return prompts.model_copy(update={
        "initial_message": prompts.initial_message.replace(PARTICIPANT_PLACEHOLDER, user_name),
    })


class PromptGenerationService:
    """
    Generates interviewer framing text and provisions the video persona and
    conversation for an interview.

    Generated prompts are memoised twice: in a process-local dict and in the
    ``llm_prompt_cache`` table. Both keep the greeting as a template with the
    participant placeholder; the name is substituted per interview.
    """

    def __init__(
        self,
        llm: Optional[GPTWriter] = None,
        tavus_client: Optional[TavusClient] = None,
        config: AppConfig = settings,
    ):
        self.llm = llm
        self.tavus = tavus_client
        self.config = config

    # === Prompt text ===

    def generate_prompts(self, req: PromptGenerationRequest, db: Session) -> GeneratedPrompts:
        company = req.company or ""
        experience = req.experience_level or "mid"
        difficulty = req.difficulty_level or "medium"
        key = cache_key(req.interview_type, req.role, company, experience, difficulty)

        cached = _memory_cache.get(key)
        if cached:
            logger.info(f"[Cache] Memory hit for {key}")
            return cached

        entry = get_cached_prompt(db, req.interview_type, req.role, company, experience, difficulty)
        if entry:
            logger.info(f"[Cache] Database hit for {key} (use_count={entry.use_count})")
            prompts = GeneratedPrompts(
                persona_name=entry.persona_name or FALLBACK_PERSONA_NAME.format(type_title=_type_title(req.interview_type)),
                persona_description=entry.persona_description
                or FALLBACK_PERSONA_DESCRIPTION.format(role=req.role, company=company),
                system_prompt=entry.conversational_context,
                initial_message=entry.custom_greeting,
            )
            _memory_cache[key] = prompts
            return prompts

        logger.info(f"[Cache] Miss for {key}, calling LLM")
        if self.llm is None:
            raise LLMUnavailableError("OpenAI API key not configured")

        fmt = {
            "interview_type": req.interview_type,
            "role": req.role,
            "company": company,
            "experience_level": experience,
            "difficulty_level": difficulty,
        }
        raw = self.llm.write(
            INTERVIEWER_USER_PROMPT.format(**fmt),
            system_prompt=INTERVIEWER_SYSTEM_PROMPT.format(**fmt),
            temperature=0.7,
            max_tokens=1500,
        )
        prompts = parse_generated_prompts(raw, req.interview_type, req.role, company)
        _memory_cache[key] = prompts

        try:
            cache_prompt(
                db,
                req.interview_type,
                req.role,
                company,
                experience,
                difficulty,
                system_prompt=prompts.system_prompt,
                initial_message=prompts.initial_message,
                persona_name=prompts.persona_name,
                persona_description=prompts.persona_description,
            )
            logger.info(f"[Cache] Stored prompts for {key}")
        except Exception as e:
            db.rollback()
            logger.error(f"[Cache] Failed to store prompts for {key}: {e}")

        return prompts

    # === Interview updates ===

    def _store(
        self,
        interview: InterviewModel,
        prompts: GeneratedPrompts,
        db: Session,
        status: str,
        error: Optional[str] = None,
        persona_id: Optional[str] = None,
        conversation: Optional[dict] = None,
    ) -> None:
        interview.prompt_status = status
        interview.prompt_error = error
        interview.llm_generated_context = prompts.system_prompt
        interview.llm_generated_greeting = prompts.initial_message
        if persona_id:
            interview.tavus_persona_id = persona_id
        if conversation:
            interview.tavus_conversation_id = conversation.get("conversation_id")
            interview.tavus_conversation_url = conversation.get("conversation_url")
        db.commit()
        prompt_generation_counter.labels(outcome=status).inc()

    # === Composite ===

    def run(self, req: PromptGenerationRequest, db: Session) -> PromptGenerationResult:
        if not req.interview_id:
            raise HTTPException(status_code=400, detail="interview_id is required")
        if not req.interview_type:
            raise HTTPException(status_code=400, detail="interview_type is required")
        if not req.role:
            raise HTTPException(status_code=400, detail="role is required")

        interview = db.query(InterviewModel).filter_by(id=req.interview_id).first()
        if not interview:
            raise HTTPException(status_code=404, detail="Interview not found")

        user_name = req.user_name or "Candidate"
        company = req.company or ""

        interview.prompt_status = "generating"
        db.commit()
        logger.info(f"[Generate] Interview {interview.id}: {req.interview_type} / {req.role} / {company}")

        try:
            prompts = personalize(self.generate_prompts(req, db), user_name)
        except Exception as e:
            logger.exception(f"[Generate] Prompt generation failed for {interview.id}")
            db.rollback()
            prompts = fallback_prompts(req.interview_type, req.role, company, user_name)
            self._store(interview, prompts, db, "failed", error=str(e))
            return PromptGenerationResult(
                success=False,
                message="Failed to generate prompts",
                prompts=prompts,
                error=str(e),
            )

        # Persona
        if self.tavus is None:
            error = "TAVUS_API_KEY not configured"
            self._store(interview, prompts, db, "failed", error=error)
            return PromptGenerationResult(success=False, message=error, prompts=prompts, error=error)

        try:
            persona = self.tavus.create_persona(prompts.persona_name, prompts.system_prompt)
            persona_id = persona.get("persona_id")
            if not persona_id:
                raise ValueError("Tavus did not return a persona_id")
            logger.info(f"[Persona] Created {persona_id} for interview {interview.id}")
        except Exception as e:
            logger.error(f"[Persona] Failed for interview {interview.id}: {e}")
            error = str(e) or "Failed to create Tavus persona"
            self._store(interview, prompts, db, "failed", error=error)
            return PromptGenerationResult(success=False, message=error, prompts=prompts, error=error)

        # Conversation; the persona above is kept even when this fails
        try:
            replica_id, _ = replica_for_interview_type(req.interview_type, self.config)
            if not replica_id:
                raise ValueError(f"No replica configured for interview type: {req.interview_type}")

            conversation = self.tavus.create_conversation(
                replica_id=replica_id,
                persona_id=persona_id,
                conversation_name=f"{req.role} Interview - {datetime.utcnow().isoformat()}",
                callback_url=self.config.TAVUS_CALLBACK_URL,
                properties={
                    "apply_greenscreen": False,
                    "max_call_duration": 3600,
                    "participant_left_timeout": 60,
                    "participant_absent_timeout": 300,
                    "enable_recording": True,
                    "enable_transcription": True,
                    "language": "English",
                    "conversational_context": prompts.system_prompt,
                    "custom_greeting": prompts.initial_message,
                },
            )
        except Exception as e:
            logger.error(f"[Conversation] Failed for interview {interview.id}: {e}")
            error = f"Failed to create conversation: {e}"
            self._store(interview, prompts, db, "failed", error=error, persona_id=persona_id)
            return PromptGenerationResult(
                success=False, message=error, prompts=prompts, persona_id=persona_id, error=error
            )

        self._store(interview, prompts, db, "ready", persona_id=persona_id, conversation=conversation)
        logger.info(f"[Generate] Interview {interview.id} ready (conversation={conversation.get('conversation_id')})")
        return PromptGenerationResult(
            success=True,
            message="Prompts generated successfully",
            prompts=prompts,
            persona_id=persona_id,
            conversation_id=conversation.get("conversation_id"),
        )


def run_prompt_generation_task(
    session_factory: Callable[[], Session],
    req: PromptGenerationRequest,
    llm: Optional[GPTWriter],
    tavus_client: Optional[TavusClient],
) -> None:
    """Background entry point. Opens its own session; never raises."""
    db = session_factory()
    try:
        PromptGenerationService(llm=llm, tavus_client=tavus_client).run(req, db)
    except Exception as e:
        logger.error(f"[Background] Prompt generation for {req.interview_id} failed: {e}")
    finally:
        db.close()
