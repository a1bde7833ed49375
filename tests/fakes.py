"""
In-memory repositories for service-level tests.

Rows are transient ORM instances (never added to a session), so services
see the same attribute types they get from SQLAlchemy. ``transaction()``
snapshots every row's column values on entry and restores them if the block
raises, giving the same all-or-nothing behaviour as the SQL implementation.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from coverage_tracker.core.exceptions import NotFoundError
from coverage_tracker.models.story import CoverageHistory, Story, StoryStatus
from coverage_tracker.models.user import User, UserRole
from coverage_tracker.repositories import (
    CoverageHistoryRepository,
    Repositories,
    StoryRepository,
    UserRepository,
)


class _Clock:
    """Strictly increasing timestamps so ordering by created_at is stable."""

    def __init__(self):
        self._now = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        self._now += timedelta(seconds=1)
        return self._now


def _columns(model):
    return model.__table__.columns.keys()


def _snapshot(rows: dict, model) -> dict:
    return {
        row_id: {col: getattr(row, col) for col in _columns(model)}
        for row_id, row in rows.items()
    }


def _restore(rows: dict, snapshot: dict, model):
    for row_id in list(rows):
        if row_id not in snapshot:
            del rows[row_id]
    for row_id, values in snapshot.items():
        row = rows.get(row_id) or model()
        for col, value in values.items():
            setattr(row, col, value)
        rows[row_id] = row


class FakeUserRepository(UserRepository):
    def __init__(self, clock):
        self.rows: dict[str, User] = {}
        self._clock = clock

    def get(self, user_id):
        return self.rows.get(user_id) if user_id else None

    def get_by_username(self, username):
        return next((u for u in self.rows.values() if u.username == username), None)

    def get_by_email(self, email):
        return next((u for u in self.rows.values() if u.email == email), None)

    def list_all(self):
        return sorted(self.rows.values(), key=lambda u: u.created_at)

    def create(self, **fields):
        now = self._clock()
        fields.setdefault("id", str(uuid.uuid4()))
        fields.setdefault("created_at", now)
        fields.setdefault("updated_at", now)
        user = User(**fields)
        self.rows[user.id] = user
        return user


class FakeStoryRepository(StoryRepository):
    def __init__(self, clock):
        self.rows: dict[str, Story] = {}
        self._clock = clock
        self.locked: list[str] = []

    def get(self, story_id, for_update=False):
        if for_update:
            self.locked.append(story_id)
        return self.rows.get(story_id) if story_id else None

    def get_by_ticket_id(self, ticket_id):
        return next((s for s in self.rows.values() if s.ticket_id == ticket_id), None)

    def _newest_first(self, stories):
        return sorted(stories, key=lambda s: s.created_at, reverse=True)

    def list_by_creator(self, user_id):
        return self._newest_first(s for s in self.rows.values() if s.creator_id == user_id)

    def list_by_reviewer(self, user_id):
        return self._newest_first(s for s in self.rows.values() if s.reviewer_id == user_id)

    def list_all(self):
        return self._newest_first(self.rows.values())

    def create(self, **fields):
        now = self._clock()
        fields.setdefault("id", str(uuid.uuid4()))
        fields["created_at"] = fields.get("created_at") or now
        fields["updated_at"] = fields.get("updated_at") or now
        story = Story(**fields)
        self.rows[story.id] = story
        return story

    def update(self, story_id, patch):
        story = self.rows.get(story_id)
        if story is None:
            raise NotFoundError("Story", story_id)
        for key, value in patch.items():
            setattr(story, key, value)
        story.updated_at = self._clock()
        return story


class FakeCoverageHistoryRepository(CoverageHistoryRepository):
    def __init__(self, clock):
        self.rows: dict[str, CoverageHistory] = {}
        self._clock = clock
        self.fail_on_append = False

    def append(self, **fields):
        if self.fail_on_append:
            raise RuntimeError("history store unavailable")
        fields.setdefault("id", str(uuid.uuid4()))
        fields["created_at"] = self._clock()
        record = CoverageHistory(**fields)
        self.rows[record.id] = record
        return record

    def list_by_story(self, story_id):
        return sorted(
            (r for r in self.rows.values() if r.story_id == story_id),
            key=lambda r: r.created_at,
            reverse=True,
        )


class FakeRepositories(Repositories):
    def __init__(self):
        self.clock = _Clock()
        self.users = FakeUserRepository(self.clock)
        self.stories = FakeStoryRepository(self.clock)
        self.history = FakeCoverageHistoryRepository(self.clock)
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self):
        snapshot = {
            "users": _snapshot(self.users.rows, User),
            "stories": _snapshot(self.stories.rows, Story),
            "history": _snapshot(self.history.rows, CoverageHistory),
        }
        try:
            yield
        except Exception:
            _restore(self.users.rows, snapshot["users"], User)
            _restore(self.stories.rows, snapshot["stories"], Story)
            _restore(self.history.rows, snapshot["history"], CoverageHistory)
            self.rollbacks += 1
            raise
        self.commits += 1

    # ── Seeding helpers ───────────────────────────────────────────────

    def add_user(self, username, role, **fields):
        return self.users.create(
            username=username,
            password_hash="x",
            role=UserRole(role),
            **fields,
        )

    def add_story(self, ticket_id, creator, reviewer=None, score=None, status=None, **fields):
        return self.stories.create(
            ticket_id=ticket_id,
            title=fields.pop("title", f"Story {ticket_id}"),
            creator_id=creator.id,
            reviewer_id=reviewer.id if reviewer else None,
            coverage_score=score,
            status=status or StoryStatus.PENDING,
            **fields,
        )
