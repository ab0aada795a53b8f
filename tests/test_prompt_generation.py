"""
Prompt generation: LLM answer parsing, the two cache layers and the
persona/conversation provisioning outcomes.
"""
import json

import pytest
from fastapi import HTTPException

from conftest import GENERATED_PROMPTS, FakeLLM
from prepwise.base.config import AppConfig
from prepwise.base.error_handlers import LLMUnavailableError
from prepwise.base.models import PromptGenerationRequest
from prepwise.base.schema import PromptCacheModel
from prepwise.models.prompt_templates import PARTICIPANT_PLACEHOLDER
from prepwise.services.prompt_generation_service import (
    PromptGenerationService,
    clear_memory_cache,
    parse_generated_prompts,
)

CONFIG = AppConfig(
    TAVUS_TECHNICAL_REPLICA_ID="r-technical",
    TAVUS_HR_REPLICA_ID="r-hr",
    PUBLIC_BASE_URL="https://api.prepwise.test",
)


def request_for(interview, **overrides):
    fields = dict(
        interview_id=interview.id,
        interview_type="technical",
        role="Backend Engineer",
        company="Acme",
        experience_level="mid",
        difficulty_level="medium",
        user_name="Ada",
    )
    fields.update(overrides)
    return PromptGenerationRequest(**fields)


# === Parsing ===

def test_parse_json_answer():
    prompts = parse_generated_prompts(json.dumps(GENERATED_PROMPTS), "technical", "Backend Engineer", "Acme")
    assert prompts.persona_name == "Senior Engineering Manager at Acme"
    assert prompts.initial_message.startswith("Hi [PARTICIPANT_NAME]")


def test_parse_loose_answer_with_field_scan():
    raw = (
        'Here you go:\n'
        'persona_name: "Jordan, Staff Engineer"\n'
        'persona_description: "Runs the infrastructure team"\n'
        'system_prompt: "Ask about queues and caching"\n'
        'initial_message: "Hello [PARTICIPANT_NAME]!"'
    )
    prompts = parse_generated_prompts(raw, "technical", "Backend Engineer", "Acme")
    assert prompts.persona_name == "Jordan, Staff Engineer"
    assert prompts.persona_description == "Runs the infrastructure team"
    assert prompts.system_prompt == "Ask about queues and caching"
    assert prompts.initial_message == "Hello [PARTICIPANT_NAME]!"


def test_parse_unusable_answer_uses_templates():
    prompts = parse_generated_prompts("I cannot help with that.", "technical", "Backend Engineer", "Acme")
    assert prompts.persona_name == "Technical Interviewer at Acme"
    assert PARTICIPANT_PLACEHOLDER in prompts.initial_message
    assert "Backend Engineer" in prompts.initial_message


# === Caching ===

def test_memory_cache_skips_llm(db, interview):
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])
    service = PromptGenerationService(llm=llm, config=CONFIG)

    first = service.generate_prompts(request_for(interview), db)
    second = service.generate_prompts(request_for(interview), db)
    assert first == second
    assert len(llm.calls) == 1


def test_database_cache_counts_uses(db, interview):
    PromptGenerationService(llm=FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)]), config=CONFIG).generate_prompts(
        request_for(interview), db
    )
    entry = db.query(PromptCacheModel).one()
    assert entry.use_count == 0
    assert PARTICIPANT_PLACEHOLDER in entry.custom_greeting

    clear_memory_cache()
    failing = FakeLLM(error=LLMUnavailableError("should not be called"))
    prompts = PromptGenerationService(llm=failing, config=CONFIG).generate_prompts(request_for(interview), db)

    assert prompts.persona_name == GENERATED_PROMPTS["persona_name"]
    assert failing.calls == []
    db.refresh(entry)
    assert entry.use_count == 1


def test_cache_key_includes_difficulty(db, interview):
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS), json.dumps(GENERATED_PROMPTS)])
    service = PromptGenerationService(llm=llm, config=CONFIG)

    service.generate_prompts(request_for(interview), db)
    service.generate_prompts(request_for(interview, difficulty_level="hard"), db)
    assert len(llm.calls) == 2
    assert db.query(PromptCacheModel).count() == 2


def test_missing_llm_raises(db, interview):
    with pytest.raises(LLMUnavailableError):
        PromptGenerationService(llm=None, config=CONFIG).generate_prompts(request_for(interview), db)


# === Provisioning ===

def test_run_marks_interview_ready(db, interview, fake_tavus):
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])
    result = PromptGenerationService(llm=llm, tavus_client=fake_tavus, config=CONFIG).run(request_for(interview), db)

    assert result.success
    assert result.persona_id == "p-1"
    assert result.conversation_id == "c-1"
    assert result.prompts.initial_message == "Hi Ada, thanks for joining the Acme backend interview today."

    db.refresh(interview)
    assert interview.prompt_status == "ready"
    assert interview.tavus_conversation_url == "https://tavus.daily.co/c-1"
    assert fake_tavus.conversations[0]["properties"]["max_call_duration"] == 3600


def test_run_without_llm_stores_fallback(db, interview, fake_tavus):
    result = PromptGenerationService(llm=None, tavus_client=fake_tavus, config=CONFIG).run(request_for(interview), db)

    assert not result.success
    assert result.error == "OpenAI API key not configured"
    assert fake_tavus.personas == []

    db.refresh(interview)
    assert interview.prompt_status == "failed"
    assert interview.llm_generated_greeting.startswith(
        "Hello Ada, welcome to your interview for the Backend Engineer position at Acme."
    )


def test_run_without_video_client(db, interview):
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])
    result = PromptGenerationService(llm=llm, tavus_client=None, config=CONFIG).run(request_for(interview), db)

    assert not result.success
    assert result.error == "TAVUS_API_KEY not configured"
    db.refresh(interview)
    assert interview.prompt_status == "failed"


def test_persona_failure_marks_failed(db, interview, fake_tavus):
    fake_tavus.fail_persona = True
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])
    result = PromptGenerationService(llm=llm, tavus_client=fake_tavus, config=CONFIG).run(request_for(interview), db)

    assert not result.success
    assert "persona service down" in result.error
    db.refresh(interview)
    assert interview.prompt_status == "failed"
    assert interview.tavus_persona_id is None


def test_conversation_failure_keeps_persona(db, interview, fake_tavus):
    fake_tavus.fail_conversation = True
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])
    result = PromptGenerationService(llm=llm, tavus_client=fake_tavus, config=CONFIG).run(request_for(interview), db)

    assert not result.success
    assert result.persona_id == "p-1"
    db.refresh(interview)
    assert interview.prompt_status == "failed"
    assert interview.tavus_persona_id == "p-1"
    assert interview.tavus_conversation_id is None
    assert interview.prompt_error.startswith("Failed to create conversation:")


def test_missing_replica_fails_conversation(db, interview, fake_tavus):
    config = AppConfig(TAVUS_TECHNICAL_REPLICA_ID=None, TAVUS_HR_REPLICA_ID=None, TAVUS_BEHAVIORAL_REPLICA_ID=None)
    llm = FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])
    result = PromptGenerationService(llm=llm, tavus_client=fake_tavus, config=config).run(request_for(interview), db)

    assert not result.success
    assert "No replica configured for interview type: technical" in result.error
    assert fake_tavus.conversations == []


def test_run_validates_request(db, interview):
    service = PromptGenerationService(config=CONFIG)

    with pytest.raises(HTTPException) as exc:
        service.run(request_for(interview, role=None), db)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        service.run(request_for(interview, interview_id="missing"), db)
    assert exc.value.status_code == 404


def test_generate_endpoint_reports_failure_as_500(client, interview, fake_tavus):
    fake_tavus.fail_persona = True
    res = client.post("/prompts/generate", json=request_for(interview).model_dump())

    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["prompts"]["persona_name"] == GENERATED_PROMPTS["persona_name"]
