"""
Repository interfaces and their SQLAlchemy implementation.

Services never touch ``db.session`` directly: they receive a
``Repositories`` bundle and run writes inside ``repos.transaction()``.
Bundles are built per request (``request_repositories()``); tests pass
in-memory implementations of the same interfaces.

Transaction boundary:
    with repos.transaction():
        story = repos.stories.get(story_id, for_update=True)
        repos.history.append(...)
        repos.stories.update(story_id, {...})

    Commits on normal exit. Any exception rolls back every write made
    inside the block and is re-raised unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import ContextManager

from flask import g

from coverage_tracker.core.exceptions import NotFoundError
from coverage_tracker.models import db
from coverage_tracker.models.story import CoverageHistory, Story
from coverage_tracker.models.user import User


# ═════════════════════════════════════════════════════════════════════════════
# Interfaces
# ═════════════════════════════════════════════════════════════════════════════

class UserRepository(ABC):
    @abstractmethod
    def get(self, user_id: str) -> User | None: ...

    @abstractmethod
    def get_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    def get_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    def list_all(self) -> list[User]: ...

    @abstractmethod
    def create(self, **fields) -> User: ...


class StoryRepository(ABC):
    @abstractmethod
    def get(self, story_id: str, for_update: bool = False) -> Story | None: ...

    @abstractmethod
    def get_by_ticket_id(self, ticket_id: str) -> Story | None: ...

    @abstractmethod
    def list_by_creator(self, user_id: str) -> list[Story]: ...

    @abstractmethod
    def list_by_reviewer(self, user_id: str) -> list[Story]: ...

    @abstractmethod
    def list_all(self) -> list[Story]: ...

    @abstractmethod
    def create(self, **fields) -> Story: ...

    @abstractmethod
    def update(self, story_id: str, patch: dict) -> Story:
        """Apply ``patch`` to the story and refresh ``updated_at``."""


class CoverageHistoryRepository(ABC):
    @abstractmethod
    def append(self, **fields) -> CoverageHistory: ...

    @abstractmethod
    def list_by_story(self, story_id: str) -> list[CoverageHistory]:
        """History rows for a story, newest first."""


class Repositories(ABC):
    """The collaborators one workflow call needs, plus its transaction scope."""

    users: UserRepository
    stories: StoryRepository
    history: CoverageHistoryRepository

    @abstractmethod
    def transaction(self) -> ContextManager[None]:
        """Unit of work: commit on exit, roll back and re-raise on error."""


# ═════════════════════════════════════════════════════════════════════════════
# SQLAlchemy implementation
# ═════════════════════════════════════════════════════════════════════════════

class SqlUserRepository(UserRepository):
    def __init__(self, session):
        self.session = session

    def get(self, user_id):
        if not user_id:
            return None
        return self.session.get(User, user_id)

    def get_by_username(self, username):
        return self.session.execute(
            db.select(User).filter_by(username=username)
        ).scalar_one_or_none()

    def get_by_email(self, email):
        return self.session.execute(
            db.select(User).filter_by(email=email)
        ).scalar_one_or_none()

    def list_all(self):
        return list(
            self.session.execute(db.select(User).order_by(User.created_at)).scalars()
        )

    def create(self, **fields):
        user = User(**fields)
        self.session.add(user)
        self.session.flush()
        return user


class SqlStoryRepository(StoryRepository):
    def __init__(self, session):
        self.session = session

    def get(self, story_id, for_update=False):
        if not story_id:
            return None
        stmt = db.select(Story).filter_by(id=story_id)
        if for_update:
            # Row lock on PostgreSQL; SQLite ignores FOR UPDATE
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_ticket_id(self, ticket_id):
        return self.session.execute(
            db.select(Story).filter_by(ticket_id=ticket_id)
        ).scalar_one_or_none()

    def _list(self, *criteria):
        stmt = db.select(Story).where(*criteria).order_by(Story.created_at.desc())
        return list(self.session.execute(stmt).scalars())

    def list_by_creator(self, user_id):
        return self._list(Story.creator_id == user_id)

    def list_by_reviewer(self, user_id):
        return self._list(Story.reviewer_id == user_id)

    def list_all(self):
        return self._list()

    def create(self, **fields):
        story = Story(**fields)
        self.session.add(story)
        self.session.flush()
        return story

    def update(self, story_id, patch):
        story = self.session.get(Story, story_id)
        if story is None:
            raise NotFoundError("Story", story_id)
        for key, value in patch.items():
            setattr(story, key, value)
        story.updated_at = datetime.now(timezone.utc)
        self.session.flush()
        return story


class SqlCoverageHistoryRepository(CoverageHistoryRepository):
    def __init__(self, session):
        self.session = session

    def append(self, **fields):
        record = CoverageHistory(**fields)
        self.session.add(record)
        self.session.flush()
        return record

    def list_by_story(self, story_id):
        stmt = (
            db.select(CoverageHistory)
            .filter_by(story_id=story_id)
            .order_by(CoverageHistory.created_at.desc(), CoverageHistory.id.desc())
        )
        return list(self.session.execute(stmt).scalars())


class SqlRepositories(Repositories):
    """Repositories sharing one SQLAlchemy session."""

    def __init__(self, session):
        self.session = session
        self.users = SqlUserRepository(session)
        self.stories = SqlStoryRepository(session)
        self.history = SqlCoverageHistoryRepository(session)

    @contextmanager
    def transaction(self):
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


def request_repositories() -> SqlRepositories:
    """Return the repositories for the current request, bound to ``db.session``."""
    repos = getattr(g, "repositories", None)
    if repos is None:
        repos = SqlRepositories(db.session)
        g.repositories = repos
    return repos
