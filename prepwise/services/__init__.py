"""
PrepWise Services Module

Centralised access to the service layer. Each service owns one part of the
mock-interview lifecycle: the minutes ledger, scheduling, interviewer prompt
generation, provider callbacks, feedback synthesis, video-provider proxies and
billing.
"""

# === Profiles & Minutes Ledger ===
from .profile_service import ProfileService

# === Interview Lifecycle ===
from .interview_service import InterviewService
from .prompt_generation_service import PromptGenerationService
from .callback_service import CallbackService

# === Feedback ===
from .feedback_service import FeedbackService

# === External Providers ===
from .video_session_service import VideoSessionService
from .billing_service import BillingService

# === Exported Interface ===
__all__ = [
    "ProfileService",
    "InterviewService",
    "PromptGenerationService",
    "CallbackService",
    "FeedbackService",
    "VideoSessionService",
    "BillingService",
]
