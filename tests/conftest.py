"""
Shared fixtures: a three-requirement file challenge, a pending submission for it,
and an in-memory review service reachable through the real HTTP client.
"""
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.orm import sessionmaker

from review_engine.client import ReviewApiClient
from review_engine.models import (
    Challenge, FileConfig, FilePayload, Requirement, RequirementReview, Submission, UploadedFile,
)
from review_engine.server import main
from review_engine.server.db import init_db, make_engine


@pytest.fixture
def requirements():
    return (
        Requirement(id="r1", name="Project plan", points=10),
        Requirement(id="r2", name="Demo video", points=20, submission_kind="link"),
        Requirement(id="r3", name="Final report", points=5, accepted_types=("pdf",)),
    )


@pytest.fixture
def challenge(requirements):
    return Challenge(
        id=7, title="Build a prototype", evaluation_type="file", points=35,
        file=FileConfig(allowed_types=("pdf", "png"), max_files=5, requirements=requirements),
    )


@pytest.fixture
def submission():
    return Submission(
        id=42, challenge_id=7, user_id=3,
        submission_data=FilePayload(
            files=(
                UploadedFile(name="plan.pdf", size=1024, requirement_id="r1"),
                UploadedFile(link_url="https://example.org/demo", requirement_id="r2"),
            ),
            requirement_reviews=(RequirementReview("r1", "approved", "Clear plan"),),
        ),
        admin_feedback="First pass",
    )


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def app(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    def _get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[main.get_db] = _get_db
    yield main.app
    main.app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api(app):
    async with ReviewApiClient(
        base_url="http://testserver", api_key="", transport=httpx.ASGITransport(app=app)
    ) as client:
        yield client
