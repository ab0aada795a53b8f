# prepwise/base/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from prepwise.base.config import settings
from prepwise.base.logging_config import app_logger as logger
from prepwise.base.schema import (
    Base,
    InterviewTypeModel,
    ExperienceLevelModel,
    DifficultyLevelModel,
)

INTERVIEW_TYPES = [
    {"type": "screening", "title": "Screening", "description": "HR screening and motivation questions", "icon": "Phone"},
    {"type": "technical", "title": "Technical", "description": "Coding, system design, and technical knowledge questions", "icon": "Code"},
    {"type": "behavioral", "title": "Behavioral", "description": "Questions about your past experiences and situations", "icon": "User"},
    {"type": "mixed", "title": "Mixed", "description": "Combination of technical and behavioral questions", "icon": "Briefcase"},
    {"type": "phone", "title": "Phone", "description": "Short phone-style screening conversation", "icon": "Phone"},
]

EXPERIENCE_LEVELS = [
    {"value": "entry", "label": "Entry Level (0-2 years)"},
    {"value": "mid", "label": "Mid Level (3-5 years)"},
    {"value": "senior", "label": "Senior Level (6+ years)"},
]

DIFFICULTY_LEVELS = [
    {"value": "easy", "label": "Easy - Beginner friendly questions"},
    {"value": "medium", "label": "Medium - Standard interview difficulty"},
    {"value": "hard", "label": "Hard - Challenging interview questions"},
]


def build_engine(url: str, **kwargs):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args, **kwargs)

    if url.startswith("sqlite"):
        # SQLite only honours ON DELETE CASCADE with foreign keys switched on
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def seed_lookup_tables(db: Session) -> None:
    if db.query(InterviewTypeModel).count() == 0:
        db.add_all([InterviewTypeModel(**row) for row in INTERVIEW_TYPES])
    if db.query(ExperienceLevelModel).count() == 0:
        db.add_all([ExperienceLevelModel(**row) for row in EXPERIENCE_LEVELS])
    if db.query(DifficultyLevelModel).count() == 0:
        db.add_all([DifficultyLevelModel(**row) for row in DIFFICULTY_LEVELS])
    db.commit()


def init_db(bind=None, session_factory=None) -> None:
    bind = bind or engine
    session_factory = session_factory or SessionLocal

    Base.metadata.create_all(bind=bind)
    db = session_factory()
    try:
        seed_lookup_tables(db)
    finally:
        db.close()
    logger.info("[Database] Schema ready and lookup tables seeded")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    return SessionLocal
