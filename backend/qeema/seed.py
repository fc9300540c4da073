"""Idempotent bootstrap data: admin account, school profile, sample lessons.

Running the seed twice leaves the database unchanged the second time.
"""

import logging

from sqlalchemy.engine import Engine
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .services import hash_password

logger = logging.getLogger("qeema.seed")

SCHOOL_NAME = "Qeema Academy"

SAMPLE_LESSONS = [
    {
        "title": "Introduction to Algebra",
        "description": "Variables, expressions and solving simple linear equations step by step.",
        "image_url": "https://images.unsplash.com/photo-1635070041078-e363dbe005cb",
    },
    {
        "title": "The Water Cycle",
        "description": "How evaporation, condensation and precipitation move water around the planet.",
        "image_url": "https://images.unsplash.com/photo-1500375592092-40eb2168fd21",
    },
    {
        "title": "World War II Overview",
        "description": "The causes, major events and consequences of the Second World War.",
        "image_url": "https://images.unsplash.com/photo-1461360370896-922624d12aa1",
    },
    {
        "title": "Basics of Python Programming",
        "description": "Write your first programs: values, loops, functions and simple data structures.",
        "image_url": "https://images.unsplash.com/photo-1526379095098-d400fd0bf935",
    },
    {
        "title": "English Grammar Essentials",
        "description": "Parts of speech, sentence structure and the tenses used in everyday writing.",
        "image_url": None,
    },
]


def seed_admin(session: Session, email: str, password: str) -> models.User:
    repo = repositories.UserRepository(session)
    user = repo.get_by_email(email)
    if user is not None:
        return user
    user = repo.create(models.User(email=email, password_hash=hash_password(password), role=models.Role.ADMIN))
    logger.info("seeded admin user email=%s", email)
    return user


def seed_school(session: Session) -> models.School:
    repo = repositories.SchoolRepository(session)
    school = repo.get()
    if school is not None:
        return school
    return repo.update({"name": SCHOOL_NAME})


def seed_lessons(session: Session) -> int:
    """Insert the sample lessons if the catalogue is empty; return how many."""
    repo = repositories.LessonRepository(session)
    if repo.count():
        return 0
    for data in SAMPLE_LESSONS:
        repo.create(models.Lesson(**data))
    logger.info("seeded %d lessons", len(SAMPLE_LESSONS))
    return len(SAMPLE_LESSONS)


def run_seed(engine: Engine, settings: Settings, with_lessons: bool = True) -> dict:
    with Session(engine) as session:
        admin = seed_admin(session, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
        school = seed_school(session)
        lessons = seed_lessons(session) if with_lessons else 0
        return {"admin": admin.email, "school": school.name, "lessons_created": lessons}
