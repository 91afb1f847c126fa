from __future__ import annotations
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..schemas import ChallengeCreate, ChallengeOut, SubmissionOut

_SUBMISSION_COLUMNS = (
    "id, challenge_id, user_id, submission_type, submission_data, status, points, admin_feedback, reviewed_at"
)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _challenge_row(row: Dict[str, Any]) -> ChallengeOut:
    return ChallengeOut(
        id=row["id"],
        title=row["title"],
        evaluation_type=row["evaluation_type"],
        evaluation_config=json.loads(row["evaluation_config"]),
        points=row["points"],
        is_active=bool(row["is_active"]),
    )

def _submission_row(row: Dict[str, Any]) -> SubmissionOut:
    return SubmissionOut(
        id=row["id"],
        challenge_id=row["challenge_id"],
        user_id=row["user_id"],
        submission_type=row["submission_type"],
        submission_data=json.loads(row["submission_data"]),
        status=row["status"],
        points=row["points"],
        admin_feedback=row["admin_feedback"],
        reviewed_at=row["reviewed_at"],
    )

def insert_challenge(db: Session, body: ChallengeCreate) -> ChallengeOut:
    result = db.execute(
        text("""INSERT INTO challenges (title, evaluation_type, evaluation_config, points, is_active)
                VALUES (:title, :evaluation_type, :evaluation_config, :points, :is_active)"""),
        {
            "title": body.title,
            "evaluation_type": body.evaluation_type,
            "evaluation_config": json.dumps(
                body.evaluation_config.model_dump(by_alias=True, exclude_none=True), ensure_ascii=False
            ),
            "points": body.points,
            "is_active": int(body.is_active),
        },
    )
    db.commit()
    return get_challenge(db, result.lastrowid)

def get_challenge(db: Session, challenge_id: int) -> Optional[ChallengeOut]:
    row = db.execute(
        text("SELECT id, title, evaluation_type, evaluation_config, points, is_active FROM challenges WHERE id=:id"),
        {"id": challenge_id},
    ).mappings().first()
    return _challenge_row(row) if row else None

def insert_submission(
    db: Session, challenge_id: int, user_id: int, submission_type: str,
    submission_data: Dict[str, Any], status: str, points: int,
) -> SubmissionOut:
    result = db.execute(
        text("""INSERT INTO submissions (challenge_id, user_id, submission_type, submission_data, status, points)
                VALUES (:challenge_id, :user_id, :submission_type, :submission_data, :status, :points)"""),
        {
            "challenge_id": challenge_id,
            "user_id": user_id,
            "submission_type": submission_type,
            "submission_data": json.dumps(submission_data, ensure_ascii=False),
            "status": status,
            "points": points,
        },
    )
    db.commit()
    return get_submission(db, result.lastrowid)

def get_submission(db: Session, submission_id: int) -> Optional[SubmissionOut]:
    row = db.execute(
        text(f"SELECT {_SUBMISSION_COLUMNS} FROM submissions WHERE id=:id"), {"id": submission_id}
    ).mappings().first()
    return _submission_row(row) if row else None

def list_submissions(db: Session, challenge_id: int) -> List[SubmissionOut]:
    rows = db.execute(
        text(f"SELECT {_SUBMISSION_COLUMNS} FROM submissions WHERE challenge_id=:cid ORDER BY id ASC"),
        {"cid": challenge_id},
    ).mappings().all()
    return [_submission_row(r) for r in rows]

def update_review(
    db: Session, submission_id: int, submission_data: Dict[str, Any], status: str, points: int,
    admin_feedback: Optional[str],
) -> SubmissionOut:
    db.execute(
        text("""UPDATE submissions
                SET submission_data=:submission_data, status=:status, points=:points,
                    admin_feedback=:admin_feedback, reviewed_at=:reviewed_at, updated_at=CURRENT_TIMESTAMP
                WHERE id=:id"""),
        {
            "id": submission_id,
            "submission_data": json.dumps(submission_data, ensure_ascii=False),
            "status": status,
            "points": points,
            "admin_feedback": admin_feedback,
            "reviewed_at": _now(),
        },
    )
    db.commit()
    return get_submission(db, submission_id)
