from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from prepwise.base.config import settings
from prepwise.models.gpt_writer import GPTWriter, build_writer
from prepwise.models.stripe_client import StripeClient, build_stripe_client
from prepwise.models.tavus_client import TavusClient, build_tavus_client

# --- API key header config ---
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def verify_api_key(key: str = Security(api_key_header)):
    if settings.ENABLE_API_KEY_SECURITY and key != settings.API_KEY:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or missing API key")


# --- External clients (overridden in tests) ---

def get_llm() -> Optional[GPTWriter]:
    return build_writer()


def get_tavus_client() -> Optional[TavusClient]:
    return build_tavus_client()


def get_stripe_client() -> Optional[StripeClient]:
    return build_stripe_client()
