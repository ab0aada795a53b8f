import pytest

from prepwise.base.database import seed_lookup_tables
from prepwise.base.schema import InterviewTypeModel, PromptCacheModel
from prepwise.utils.db_procedures import (
    cache_prompt,
    complete_feedback_processing,
    fail_feedback_processing,
    get_cached_prompt,
    update_conversation_minutes,
)


def test_seeding_is_idempotent(db):
    seed_lookup_tables(db)
    assert db.query(InterviewTypeModel).count() == 5


def test_update_conversation_minutes(db, profile):
    assert update_conversation_minutes(db, profile.id, 15)
    assert update_conversation_minutes(db, profile.id, 5)
    db.refresh(profile)
    assert profile.used_conversation_minutes == 20

    assert update_conversation_minutes(db, "ghost", 5) is False


def test_cache_prompt_overwrites_existing_key(db):
    key = ("technical", "Backend Engineer", "", "mid", "medium")
    cache_prompt(db, *key, system_prompt="v1", initial_message="Hi [PARTICIPANT_NAME]")
    cache_prompt(db, *key, system_prompt="v2", initial_message="Hello [PARTICIPANT_NAME]")

    assert db.query(PromptCacheModel).count() == 1
    entry = get_cached_prompt(db, *key)
    assert entry.conversational_context == "v2"
    assert entry.use_count == 1

    assert get_cached_prompt(db, "technical", "Backend Engineer", "Acme", "mid", "medium") is None


def test_feedback_procedures_need_a_known_conversation(db):
    with pytest.raises(LookupError):
        fail_feedback_processing(db, "c-missing", "boom")

    with pytest.raises(LookupError):
        complete_feedback_processing(
            db,
            "c-missing",
            overall_score=80,
            summary="",
            strengths=[],
            improvements=[],
            technical_score=80,
            communication_score=80,
            problem_solving_score=80,
            experience_score=80,
            technical_feedback="",
            communication_feedback="",
            problem_solving_feedback="",
            experience_feedback="",
        )


def test_complete_feedback_processing_is_an_upsert(db, interview):
    interview.tavus_conversation_id = "c-5"
    db.commit()

    scores = dict(
        summary="First pass",
        strengths=["Calm"],
        improvements=["Depth"],
        technical_score=70,
        communication_score=70,
        problem_solving_score=70,
        experience_score=70,
        technical_feedback="t",
        communication_feedback="c",
        problem_solving_feedback="p",
        experience_feedback="e",
    )
    complete_feedback_processing(db, "c-5", overall_score=72, **scores)
    complete_feedback_processing(db, "c-5", overall_score=84, **dict(scores, summary="Second pass"))

    db.refresh(interview)
    assert interview.feedback.summary == "Second pass"
    assert interview.score == 84
    assert interview.status == "completed"
