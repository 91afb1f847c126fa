import logging
from dataclasses import replace
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from ..errors import EvaluationError, UnknownSubmissionTypeError
from ..evaluation import evaluate, filter_uploads
from ..models import FilePayload, RequirementReview
from ..schemas import (
    ChallengeCreate, ChallengeOut, GranularReviewRequest, HolisticReviewRequest, SubmissionCreate,
    SubmissionOut, decode_submission_data, encode_submission_data,
)
from ..scoring import compute_totals, derive_status
from . import repository
from .db import SessionLocal, init_db

logger = logging.getLogger(__name__)

app = FastAPI(title="Gamification Review Service", version="0.1.0")

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@app.on_event("startup")
def _startup():
    init_db()

@app.get("/healthz")
def healthz():
    return {"status": "ok"}

def _load_submission(db: Session, submission_id: int) -> SubmissionOut:
    row = repository.get_submission(db, submission_id)
    if not row:
        raise HTTPException(status_code=404, detail="Submission not found")
    return row

def _load_challenge(db: Session, challenge_id: int) -> ChallengeOut:
    row = repository.get_challenge(db, challenge_id)
    if not row:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return row

@app.post("/api/gamification/challenges", response_model=ChallengeOut, status_code=201)
def create_challenge(body: ChallengeCreate, db: Session = Depends(get_db)):
    return repository.insert_challenge(db, body)

@app.get("/api/gamification/challenges/{challenge_id}", response_model=ChallengeOut)
def get_challenge(challenge_id: int, db: Session = Depends(get_db)):
    return _load_challenge(db, challenge_id)

@app.get(
    "/api/gamification/challenges/{challenge_id}/submissions",
    response_model=List[SubmissionOut],
)
def list_submissions(challenge_id: int, db: Session = Depends(get_db)):
    _load_challenge(db, challenge_id)
    return repository.list_submissions(db, challenge_id)

@app.post(
    "/api/gamification/challenges/{challenge_id}/submissions",
    response_model=SubmissionOut, status_code=201,
)
def create_submission(challenge_id: int, body: SubmissionCreate, db: Session = Depends(get_db)):
    challenge = _load_challenge(db, challenge_id).to_model()
    if not challenge.is_active:
        raise HTTPException(status_code=409, detail="Challenge is not active")
    try:
        data = decode_submission_data(body.submission_type, body.submission_data)
    except UnknownSubmissionTypeError as e:
        raise HTTPException(status_code=422, detail=f"Unknown submission type: {e}")

    if isinstance(data, FilePayload):
        # reviews are only ever written by the review endpoints
        data = replace(data, requirement_reviews=())
        if challenge.file is not None:
            accepted, _ = filter_uploads(challenge.file, data.files)
            if not accepted:
                raise HTTPException(status_code=422, detail="No upload meets the challenge limits")
            data = replace(data, files=tuple(accepted))

    submission = SubmissionOut(
        id=0, challenge_id=challenge_id, user_id=body.user_id,
        submission_type=body.submission_type, submission_data=encode_submission_data(data),
    ).to_model()
    try:
        outcome = evaluate(challenge, submission)
    except EvaluationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    row = repository.insert_submission(
        db, challenge_id, body.user_id, body.submission_type, encode_submission_data(data),
        outcome.status, outcome.points,
    )
    logger.info("submission %s to challenge %s: %s (%s points)", row.id, challenge_id, row.status, row.points)
    return row

@app.get("/api/gamification/submissions/{submission_id}", response_model=SubmissionOut)
def get_submission(submission_id: int, db: Session = Depends(get_db)):
    return _load_submission(db, submission_id)

@app.put(
    "/api/gamification/submissions/{submission_id}/review-granular",
    response_model=SubmissionOut,
)
def review_granular(submission_id: int, body: GranularReviewRequest, db: Session = Depends(get_db)):
    row = _load_submission(db, submission_id)
    submission = row.to_model()
    if not isinstance(submission.submission_data, FilePayload):
        raise HTTPException(status_code=400, detail="Granular review needs a file submission")
    requirements = _load_challenge(db, row.challenge_id).to_model().requirements

    # one review per requirement, in requirement order; unknown ids are dropped
    given = {}
    for review in body.requirement_reviews:
        given.setdefault(review.requirement_id, review.to_model())
    reviews = tuple(given.get(req.id, RequirementReview(req.id)) for req in requirements)

    totals = compute_totals(requirements, reviews)
    status = derive_status(totals, submission.status)
    # without requirements there is nothing to score; a holistic outcome stands
    points = totals.earned_points if requirements else submission.points
    data = replace(submission.submission_data, requirement_reviews=reviews)
    updated = repository.update_review(
        db, submission_id, encode_submission_data(data), status, points, body.admin_feedback,
    )
    logger.info(
        "granular review of submission %s: %s/%s points, %s",
        submission_id, totals.earned_points, totals.possible_points, status,
    )
    return updated

@app.put(
    "/api/gamification/submissions/{submission_id}/review",
    response_model=SubmissionOut,
)
def review(submission_id: int, body: HolisticReviewRequest, db: Session = Depends(get_db)):
    row = _load_submission(db, submission_id)
    updated = repository.update_review(
        db, submission_id, row.submission_data, body.status, body.points, body.admin_feedback,
    )
    logger.info("review of submission %s: %s (%s points)", submission_id, body.status, body.points)
    return updated
