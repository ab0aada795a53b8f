# prepwise/base/schema.py

import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class ProfileModel(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, default="Candidate")
    email = Column(String, nullable=True)
    total_conversation_minutes = Column(Integer, nullable=False, default=25)
    used_conversation_minutes = Column(Integer, nullable=False, default=0)
    subscription_tier = Column(String, default="free")  # free, intro, professional, executive
    subscription_status = Column(String, nullable=True)
    stripe_customer_id = Column(String, nullable=True, index=True)
    current_subscription_id = Column(String, nullable=True)
    subscription_current_period_start = Column(DateTime, nullable=True)
    subscription_current_period_end = Column(DateTime, nullable=True)
    subscription_cancel_at_period_end = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    interviews = relationship("InterviewModel", back_populates="profile", passive_deletes=True)


class InterviewTypeModel(Base):
    __tablename__ = "interview_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    icon = Column(String, nullable=False, default="Briefcase")
    created_at = Column(DateTime, default=datetime.utcnow)


class ExperienceLevelModel(Base):
    __tablename__ = "experience_levels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    value = Column(String, unique=True, nullable=False)
    label = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class DifficultyLevelModel(Base):
    __tablename__ = "difficulty_levels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    value = Column(String, unique=True, nullable=False)
    label = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class InterviewModel(Base):
    __tablename__ = "interviews"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=True)
    role = Column(String, nullable=False)
    interview_type_id = Column(Integer, ForeignKey("interview_types.id"), nullable=False)
    experience_level_id = Column(Integer, ForeignKey("experience_levels.id"), nullable=True)
    difficulty_level_id = Column(Integer, ForeignKey("difficulty_levels.id"), nullable=False)

    status = Column(String, nullable=False, default="scheduled")  # scheduled, completed, canceled
    scheduled_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=False, default=20)
    score = Column(Float, nullable=True)

    prompt_status = Column(String, default="pending")  # pending, generating, ready, failed
    prompt_error = Column(Text, nullable=True)
    llm_generated_context = Column(Text, nullable=True)
    llm_generated_greeting = Column(Text, nullable=True)

    tavus_persona_id = Column(String, nullable=True)
    tavus_conversation_id = Column(String, nullable=True, index=True)
    tavus_conversation_url = Column(String, nullable=True)

    feedback_processing_status = Column(String, nullable=True)  # pending, processing, completed, failed
    feedback_requested_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    profile = relationship("ProfileModel", back_populates="interviews")
    interview_type = relationship("InterviewTypeModel", lazy="joined")
    experience_level = relationship("ExperienceLevelModel", lazy="joined")
    difficulty_level = relationship("DifficultyLevelModel", lazy="joined")
    feedback = relationship(
        "FeedbackModel",
        back_populates="interview",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    processing_job = relationship(
        "FeedbackProcessingJobModel",
        back_populates="interview",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class FeedbackModel(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    interview_id = Column(String, ForeignKey("interviews.id", ondelete="CASCADE"), unique=True, nullable=False)
    tavus_conversation_id = Column(String, nullable=True)
    overall_score = Column(Float, nullable=False, default=0)
    summary = Column(Text, nullable=False, default="")
    strengths = Column(JSON, nullable=True)  # list of strings
    improvements = Column(JSON, nullable=True)  # list of strings
    technical_score = Column(Float, nullable=True)
    communication_score = Column(Float, nullable=True)
    problem_solving_score = Column(Float, nullable=True)
    experience_score = Column(Float, nullable=True)
    technical_feedback = Column(Text, nullable=True)
    communication_feedback = Column(Text, nullable=True)
    problem_solving_feedback = Column(Text, nullable=True)
    experience_feedback = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)
    tavus_analysis = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    interview = relationship("InterviewModel", back_populates="feedback")


class FeedbackProcessingJobModel(Base):
    __tablename__ = "feedback_processing_jobs"

    id = Column(String, primary_key=True, default=_uuid)
    interview_id = Column(String, ForeignKey("interviews.id", ondelete="CASCADE"), unique=True, nullable=False)
    tavus_conversation_id = Column(String, nullable=False)
    callback_url = Column(String, nullable=False)
    status = Column(String, nullable=False, default="processing")
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    interview = relationship("InterviewModel", back_populates="processing_job")


class PromptCacheModel(Base):
    __tablename__ = "llm_prompt_cache"
    __table_args__ = (
        UniqueConstraint(
            "interview_type", "role", "company", "experience_level", "difficulty_level",
            name="uq_llm_prompt_cache_key",
        ),
    )

    id = Column(String, primary_key=True, default=_uuid)
    interview_type = Column(String, nullable=False)
    role = Column(String, nullable=False)
    company = Column(String, nullable=False, default="")
    experience_level = Column(String, nullable=False)
    difficulty_level = Column(String, nullable=False)
    conversational_context = Column(Text, nullable=False)
    custom_greeting = Column(Text, nullable=False)
    persona_name = Column(String, nullable=True)
    persona_description = Column(Text, nullable=True)
    use_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_used_at = Column(DateTime, default=datetime.utcnow)
