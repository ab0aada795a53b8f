"""
Shared fixtures: in-memory SQLite database, fake provider clients and a
TestClient wired to them through dependency overrides.
"""
import json
from datetime import datetime
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TAVUS_HR_REPLICA_ID", "r-hr")
os.environ.setdefault("TAVUS_TECHNICAL_REPLICA_ID", "r-technical")
os.environ.setdefault("TAVUS_BEHAVIORAL_REPLICA_ID", "r-behavioral")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("PUBLIC_BASE_URL", "https://api.prepwise.test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prepwise.base.database import build_engine, get_db, get_session_factory, init_db
from prepwise.base.dependencies import get_llm, get_stripe_client, get_tavus_client
from prepwise.base.error_handlers import LLMUnavailableError
from prepwise.base.schema import (
    Base,
    DifficultyLevelModel,
    ExperienceLevelModel,
    InterviewModel,
    InterviewTypeModel,
    ProfileModel,
)
from prepwise.main import app
from prepwise.models.stripe_client import StripeAPIError
from prepwise.models.tavus_client import TavusAPIError
from prepwise.services.prompt_generation_service import clear_memory_cache

GENERATED_PROMPTS = {
    "persona_name": "Senior Engineering Manager at Acme",
    "persona_description": "Leads the platform team at Acme and has run hundreds of backend interviews.",
    "system_prompt": "You are interviewing a mid-level backend engineer for Acme. Cover APIs, databases and scaling.",
    "initial_message": "Hi [PARTICIPANT_NAME], thanks for joining the Acme backend interview today.",
}


class FakeLLM:
    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def write(self, prompt, system_prompt=None, temperature=None, max_tokens=None):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error:
            raise self.error
        if not self.responses:
            raise LLMUnavailableError("no scripted response left")
        return self.responses.pop(0)


class FakeTavus:
    def __init__(self):
        self.personas = []
        self.deleted_personas = []
        self.conversations = []
        self.ended = []
        self.conversation_details = {}
        self.fail_persona = False
        self.fail_conversation = False
        self.fail_delete = False

    def create_persona(self, persona_name, system_prompt):
        if self.fail_persona:
            raise TavusAPIError("Tavus API Error: 500 - persona service down", status_code=500)
        persona_id = f"p-{len(self.personas) + 1}"
        self.personas.append({"persona_id": persona_id, "persona_name": persona_name, "system_prompt": system_prompt})
        return {"persona_id": persona_id, "persona_name": persona_name}

    def delete_persona(self, persona_id):
        if self.fail_delete:
            raise TavusAPIError("Tavus API Error: 404 - persona not found", status_code=404)
        self.deleted_personas.append(persona_id)

    def create_conversation(self, replica_id, persona_id, conversation_name=None, callback_url=None, properties=None):
        if self.fail_conversation:
            raise TavusAPIError("Tavus API Error: 400 - replica unavailable", status_code=400)
        conversation_id = f"c-{len(self.conversations) + 1}"
        self.conversations.append({
            "conversation_id": conversation_id,
            "replica_id": replica_id,
            "persona_id": persona_id,
            "conversation_name": conversation_name,
            "callback_url": callback_url,
            "properties": properties or {},
        })
        return {
            "conversation_id": conversation_id,
            "conversation_url": f"https://tavus.daily.co/{conversation_id}",
            "status": "active",
        }

    def get_conversation(self, conversation_id, verbose=False):
        if conversation_id not in self.conversation_details:
            raise TavusAPIError("Tavus API Error: 404 - conversation not found", status_code=404)
        return self.conversation_details[conversation_id]

    def end_conversation(self, conversation_id):
        self.ended.append(conversation_id)


class FakeStripe:
    def __init__(self):
        self.prices = {}
        self.products = {}
        self.subscriptions = {}
        self.customers = []
        self.checkout_sessions = []
        self.portal_sessions = []

    def add_plan(self, price_id, product_id, product_name, interval="month"):
        self.prices[price_id] = {"id": price_id, "product": product_id, "recurring": {"interval": interval}}
        self.products[product_id] = {"id": product_id, "name": product_name}

    def add_subscription(self, subscription_id, price_id, customer="cus_1", user_id=None, status="active"):
        subscription = {
            "id": subscription_id,
            "status": status,
            "customer": customer,
            "current_period_start": 1700000000,
            "current_period_end": 1702592000,
            "cancel_at_period_end": False,
            "metadata": {"user_id": user_id} if user_id else {},
            "items": {"data": [{"price": {"id": price_id, "product": self.prices[price_id]["product"]}}]},
        }
        self.subscriptions[subscription_id] = subscription
        return subscription

    def retrieve_price(self, price_id):
        if price_id not in self.prices:
            raise StripeAPIError(f"No such price: '{price_id}'", status_code=404, code="resource_missing")
        return self.prices[price_id]

    def retrieve_product(self, product_id):
        return self.products[product_id]

    def create_customer(self, email, name, user_id):
        customer = {"id": f"cus_{len(self.customers) + 1}", "email": email, "name": name}
        self.customers.append(customer)
        return customer

    def create_checkout_session(self, customer_id, price_id, success_url, cancel_url, user_id):
        session = {
            "id": f"cs_{len(self.checkout_sessions) + 1}",
            "url": "https://checkout.stripe.test/session",
            "customer": customer_id,
            "price": price_id,
            "user_id": user_id,
        }
        self.checkout_sessions.append(session)
        return session

    def create_portal_session(self, customer_id, return_url):
        self.portal_sessions.append((customer_id, return_url))
        return {"url": f"https://billing.stripe.test/{customer_id}"}

    def retrieve_subscription(self, subscription_id):
        if subscription_id not in self.subscriptions:
            raise StripeAPIError(f"No such subscription: '{subscription_id}'", status_code=404)
        return self.subscriptions[subscription_id]

    def cancel_at_period_end(self, subscription_id):
        subscription = self.retrieve_subscription(subscription_id)
        subscription["cancel_at_period_end"] = True
        return subscription

    def list_subscriptions(self, customer_id, status="active", limit=1):
        found = [s for s in self.subscriptions.values() if s["customer"] == customer_id and s["status"] == status]
        return found[:limit]


@pytest.fixture(autouse=True)
def reset_prompt_cache():
    clear_memory_cache()
    yield
    clear_memory_cache()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    init_db(bind=engine, session_factory=factory)
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def profile(db):
    user = ProfileModel(
        id="user-1",
        name="Ada",
        email="ada@example.com",
        total_conversation_minutes=25,
        used_conversation_minutes=0,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def fake_tavus():
    return FakeTavus()


@pytest.fixture
def fake_llm():
    return FakeLLM(responses=[json.dumps(GENERATED_PROMPTS)])


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest.fixture
def client(session_factory, fake_tavus, fake_llm, fake_stripe):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_llm] = lambda: fake_llm
    app.dependency_overrides[get_tavus_client] = lambda: fake_tavus
    app.dependency_overrides[get_stripe_client] = lambda: fake_stripe

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def interview(db, profile):
    row = InterviewModel(
        user_id=profile.id,
        title="Backend Engineer technical Interview",
        company="Acme",
        role="Backend Engineer",
        interview_type_id=db.query(InterviewTypeModel).filter_by(type="technical").one().id,
        experience_level_id=db.query(ExperienceLevelModel).filter_by(value="mid").one().id,
        difficulty_level_id=db.query(DifficultyLevelModel).filter_by(value="medium").one().id,
        status="scheduled",
        scheduled_at=datetime(2026, 11, 2, 15, 0),
        duration=20,
        prompt_status="pending",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
