import logging
from typing import Any, Dict, Optional, Tuple

import requests

from prepwise.base.config import AppConfig, settings
from prepwise.base.error_handlers import ExternalServiceError

logger = logging.getLogger("tavus_client")

DEFAULT_CONVERSATION_PROPERTIES = {
    "max_call_duration": 3600,
    "participant_left_timeout": 60,
    "participant_absent_timeout": 300,
    "enable_recording": True,
    "enable_transcription": True,
    "language": "English",
    "apply_greenscreen": False,
}


class TavusAPIError(ExternalServiceError):
    service = "tavus"


class TavusClient:
    """
    REST client for the Tavus video-interview API (personas and conversations).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://tavusapi.com",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("TAVUS_API_KEY environment variable is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, endpoint: str, payload: Optional[Dict] = None,
                 params: Optional[Dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        logger.info(f"[Tavus] {method} {endpoint}")

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Tavus] Transport error on {endpoint}: {e}")
            raise TavusAPIError(f"Tavus API unreachable: {e}")

        if not response.ok:
            try:
                message = response.json().get("message") or response.reason
            except ValueError:
                message = response.text or response.reason
            logger.error(f"[Tavus] {response.status_code} on {endpoint}: {message}")
            raise TavusAPIError(f"Tavus API Error: {response.status_code} - {message}", status_code=response.status_code)

        if not response.text.strip():
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TavusAPIError(f"Invalid JSON response from Tavus API: {e}")

    # === Personas ===

    def create_persona(self, persona_name: str, system_prompt: str) -> Dict[str, Any]:
        if not persona_name:
            raise ValueError("persona_name is required for Tavus persona")
        if not system_prompt:
            raise ValueError("system_prompt is required for Tavus persona")
        return self._request("POST", "/v2/personas", {
            "persona_name": persona_name,
            "system_prompt": system_prompt,
        })

    def get_persona(self, persona_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/v2/personas/{persona_id}")

    def delete_persona(self, persona_id: str) -> None:
        self._request("DELETE", f"/v2/personas/{persona_id}")
        logger.info(f"[Tavus] Deleted persona {persona_id}")

    # === Conversations ===

    def create_conversation(
        self,
        replica_id: str,
        persona_id: str,
        conversation_name: Optional[str] = None,
        callback_url: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not replica_id:
            raise ValueError("replica_id is required for Tavus conversation")
        if not persona_id:
            raise ValueError("persona_id is required for Tavus conversation")

        merged = dict(DEFAULT_CONVERSATION_PROPERTIES)
        merged.update({k: v for k, v in (properties or {}).items() if v is not None})

        return self._request("POST", "/v2/conversations", {
            "replica_id": replica_id,
            "persona_id": persona_id,
            "conversation_name": conversation_name,
            "callback_url": callback_url or settings.TAVUS_CALLBACK_URL,
            "properties": merged,
        })

    def get_conversation(self, conversation_id: str, verbose: bool = False) -> Dict[str, Any]:
        params = {"verbose": "true"} if verbose else None
        return self._request("GET", f"/v2/conversations/{conversation_id}", params=params)

    def end_conversation(self, conversation_id: str) -> None:
        self._request("POST", f"/v2/conversations/{conversation_id}/end")
        logger.info(f"[Tavus] Ended conversation {conversation_id}")


def replica_for_interview_type(interview_type: str, config: AppConfig = settings) -> Tuple[Optional[str], Optional[str]]:
    """Maps an interview type to its (replica_id, persona_id) from configuration."""
    hr = (config.TAVUS_HR_REPLICA_ID, config.TAVUS_HR_PERSONA_ID)
    technical = (config.TAVUS_TECHNICAL_REPLICA_ID, config.TAVUS_TECHNICAL_PERSONA_ID)
    behavioral = (config.TAVUS_BEHAVIORAL_REPLICA_ID, config.TAVUS_BEHAVIORAL_PERSONA_ID)

    mapping = {
        "screening": hr,
        "phone": hr,
        "technical": technical,
        "mixed": technical,
        "behavioral": behavioral,
    }
    return mapping.get(interview_type, (None, None))


def build_tavus_client() -> Optional[TavusClient]:
    if not settings.TAVUS_API_KEY:
        logger.warning("[Tavus] TAVUS_API_KEY not set, video features unavailable")
        return None
    return TavusClient(
        api_key=settings.TAVUS_API_KEY,
        base_url=settings.TAVUS_BASE_URL,
        timeout=settings.TAVUS_TIMEOUT_SECONDS,
    )
