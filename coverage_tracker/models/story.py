"""
Story and CoverageHistory models.

Story
    One unit of QA work tied to an external ticket. ``creator_id`` and
    ``reviewer_id`` are plain foreign keys with no ORM relationship: the
    referenced users are resolved through the user repository when a
    response needs them.

CoverageHistory
    Audit trail of coverage updates. Rows are APPEND-ONLY: one row per
    successful coverage update, never updated or deleted. ``previous_score``
    is NULL for the first score recorded on a story.

Scores are stored as NUMERIC(5, 2) and surface as ``Decimal`` in Python.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from coverage_tracker.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _score(value):
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value else None


class StoryStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    REVIEWED = "reviewed"


# Forward-only ordering of the review lifecycle
STATUS_ORDER = {
    StoryStatus.PENDING: 0,
    StoryStatus.IN_REVIEW: 1,
    StoryStatus.REVIEWED: 2,
}


class Story(db.Model):
    __tablename__ = "stories"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_id = db.Column(db.String(64), unique=True, nullable=False)
    title = db.Column(db.Text, nullable=False)
    creator_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True,
    )
    reviewer_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True, index=True,
    )
    coverage_score = db.Column(db.Numeric(5, 2), nullable=True)
    status = db.Column(
        db.Enum(
            StoryStatus,
            name="story_status",
            values_callable=lambda enum_cls: [m.value for m in enum_cls],
        ),
        nullable=False,
        default=StoryStatus.PENDING,
    )
    comments = db.Column(db.Text)
    date_completed = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "title": self.title,
            "creator_id": self.creator_id,
            "reviewer_id": self.reviewer_id,
            "coverage_score": _score(self.coverage_score),
            "status": self.status.value if self.status else None,
            "comments": self.comments,
            "date_completed": _iso(self.date_completed),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Story id={self.id} ticket={self.ticket_id!r} status={self.status}>"


class CoverageHistory(db.Model):
    __tablename__ = "coverage_history"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    story_id = db.Column(
        db.String(36),
        db.ForeignKey("stories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    updated_by_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    previous_score = db.Column(db.Numeric(5, 2), nullable=True)
    new_score = db.Column(db.Numeric(5, 2), nullable=False)
    comments = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "story_id": self.story_id,
            "updated_by_id": self.updated_by_id,
            "previous_score": _score(self.previous_score),
            "new_score": _score(self.new_score),
            "comments": self.comments,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return (
            f"<CoverageHistory story={self.story_id} "
            f"{self.previous_score} -> {self.new_score}>"
        )
