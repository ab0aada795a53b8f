from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# === 👤 Profiles & Conversation Minutes ===

class ProfileUpsertRequest(BaseModel):
    user_id: str = Field(..., description="Identifier issued by the auth provider")
    name: Optional[str] = Field("Candidate", description="Display name used in interviewer greetings")
    email: Optional[str] = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    total_conversation_minutes: int
    used_conversation_minutes: int
    subscription_tier: Optional[str] = "free"
    subscription_status: Optional[str] = None


class ConversationMinutes(BaseModel):
    total: int
    used: int
    remaining: int


# === 🗓 Interview Scheduling ===

class InterviewCreateRequest(BaseModel):
    user_id: str
    interview_type: str = Field("", description="screening, technical, behavioral, mixed, phone")
    role: str = ""
    company: Optional[str] = ""
    experience: str = Field("", description="entry, mid, senior")
    difficulty: str = Field("", description="easy, medium, hard")
    duration: int = Field(20, ge=1, le=180, description="Interview length in minutes")
    interview_mode: Optional[str] = Field(None, description="'complete' for a full multi-round interview")
    scheduled_at: Optional[datetime] = None


class InterviewUpdateRequest(BaseModel):
    title: Optional[str] = None
    company: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    role: Optional[str] = None


class RetryPromptRequest(BaseModel):
    user_name: Optional[str] = "Candidate"


class CompleteInterviewRequest(BaseModel):
    conversation_id: Optional[str] = Field(None, description="Defaults to the interview's stored conversation")


class InterviewResponse(BaseModel):
    id: str
    user_id: str
    title: str
    company: Optional[str] = None
    role: str
    interview_type: Optional[str] = None
    experience_level: Optional[str] = None
    difficulty_level: Optional[str] = None
    status: str
    scheduled_at: datetime
    completed_at: Optional[datetime] = None
    duration: int
    score: Optional[float] = None
    prompt_status: Optional[str] = None
    prompt_error: Optional[str] = None
    llm_generated_context: Optional[str] = None
    llm_generated_greeting: Optional[str] = None
    tavus_persona_id: Optional[str] = None
    tavus_conversation_id: Optional[str] = None
    tavus_conversation_url: Optional[str] = None
    feedback_processing_status: Optional[str] = None
    feedback_requested_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InterviewSession(BaseModel):
    interview_id: str
    conversation_id: str
    conversation_url: Optional[str] = None
    greeting: Optional[str] = None
    context: Optional[str] = None


# === 🧠 Prompt Generation ===

class PromptGenerationRequest(BaseModel):
    interview_id: Optional[str] = None
    interview_type: Optional[str] = None
    role: Optional[str] = None
    company: Optional[str] = ""
    experience_level: Optional[str] = "mid"
    difficulty_level: Optional[str] = "medium"
    user_name: Optional[str] = "Candidate"


class GeneratedPrompts(BaseModel):
    persona_name: str
    persona_description: str
    system_prompt: str
    initial_message: str


class PromptGenerationResult(BaseModel):
    success: bool
    message: str
    prompts: GeneratedPrompts
    persona_id: Optional[str] = None
    conversation_id: Optional[str] = None
    error: Optional[str] = None


# === 📊 Feedback ===

class SkillScore(BaseModel):
    score: float = 0
    feedback: str = ""


class SkillAssessment(BaseModel):
    technical: SkillScore = Field(default_factory=SkillScore)
    communication: SkillScore = Field(default_factory=SkillScore)
    problem_solving: SkillScore = Field(default_factory=SkillScore)
    experience: SkillScore = Field(default_factory=SkillScore)


class FeedbackPayload(BaseModel):
    overall_score: float
    summary: str
    strengths: List[str] = []
    improvements: List[str] = []
    skill_assessment: SkillAssessment = Field(default_factory=SkillAssessment)
    transcript: Optional[str] = None
    tavus_analysis: Optional[Any] = None


class FeedbackGenerationRequest(BaseModel):
    conversation_id: Optional[str] = None
    interview_id: Optional[str] = None


class FeedbackGenerationResult(BaseModel):
    success: bool
    message: str
    interview_id: str
    feedback: Optional[FeedbackPayload] = None
    cached: bool = False


class FeedbackView(BaseModel):
    interview_id: str
    title: str
    date: Optional[datetime] = None
    company: Optional[str] = None
    role: Optional[str] = None
    completed_at: Optional[datetime] = None
    duration: int
    difficulty_level: Optional[str] = None
    experience_level: Optional[str] = None
    processing_status: str
    error_message: Optional[str] = None
    overall_score: float = 0
    summary: str = ""
    strengths: List[str] = []
    improvements: List[str] = []
    transcript: Optional[str] = None
    tavus_analysis: Optional[Any] = None
    skill_assessment: SkillAssessment = Field(default_factory=SkillAssessment)


# === 🎥 Video Provider ===

class ConversationProperties(BaseModel):
    max_call_duration: Optional[int] = None
    participant_left_timeout: Optional[int] = None
    participant_absent_timeout: Optional[int] = None
    enable_recording: Optional[bool] = None
    enable_transcription: Optional[bool] = None
    language: Optional[str] = None
    apply_greenscreen: Optional[bool] = None
    conversational_context: Optional[str] = None
    custom_greeting: Optional[str] = None


class ConversationCreateRequest(BaseModel):
    replica_id: str
    persona_id: str
    conversation_name: Optional[str] = None
    callback_url: Optional[str] = None
    properties: Optional[ConversationProperties] = None


class TavusCallbackPayload(BaseModel):
    conversation_id: Optional[str] = None
    event_type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


# === 💳 Billing ===

class CheckoutRequest(BaseModel):
    price_id: Optional[str] = None
    user_id: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutSession(BaseModel):
    id: str
    url: str


class PortalRequest(BaseModel):
    customer_id: Optional[str] = None
    return_url: Optional[str] = None


class PortalSession(BaseModel):
    url: str


class SubscriptionSummary(BaseModel):
    id: str
    status: str
    current_period_end: Optional[int] = None
    product_id: Optional[str] = None
    cancel_at_period_end: bool = False


class CancelSubscriptionRequest(BaseModel):
    subscription_id: Optional[str] = None


class CancelSubscriptionResult(BaseModel):
    success: bool = True
    subscription: SubscriptionSummary
