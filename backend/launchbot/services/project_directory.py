"""Read-only access to the project store for the chatbot and notifications.

The chatbot never touches ORM objects directly: the directory maps rows to
frozen records so the processor can be exercised against an in-memory fake and
so detached SQLAlchemy instances never leak across threads.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from sqlalchemy.orm import Session

from launchbot.db import repository
from launchbot.db.models import Activity, ChecklistItem, Project, ProjectMember, Task, User
from launchbot.db.session import create_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: int
    username: str
    name: str
    email: str
    role: str = "member"
    password_hash: str = field(default="", repr=False)


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    id: int
    name: str
    status: str
    progress: int = 0
    description: str | None = None
    deadline: datetime | None = None
    created_by: int | None = None


@dataclass(frozen=True, slots=True)
class MemberRecord:
    project_id: int
    user_id: int
    role: str = "member"


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: int
    project_id: int
    name: str
    status: str
    priority: str
    description: str | None = None
    assigned_to: int | None = None
    due_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class ChecklistItemRecord:
    id: int
    task_id: int
    text: str
    is_completed: bool
    order: int = 0


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    id: int
    user_id: int
    project_id: int
    action: str
    subject: str
    created_at: datetime
    task_id: int | None = None
    details: str | None = None


class ProjectDirectory(Protocol):
    """Domain lookups used by the chatbot.

    Not-found is reported as ``None`` or an empty list, never as an exception.
    """

    async def get_user(self, user_id: int) -> UserRecord | None: ...

    async def get_user_by_username(self, username: str) -> UserRecord | None: ...

    async def get_projects_by_user(self, user_id: int) -> list[ProjectRecord]: ...

    async def get_project(self, project_id: int) -> ProjectRecord | None: ...

    async def get_project_members(self, project_id: int) -> list[MemberRecord]: ...

    async def get_tasks_by_user(self, user_id: int) -> list[TaskRecord]: ...

    async def get_tasks_by_project(self, project_id: int) -> list[TaskRecord]: ...

    async def get_checklist_items(self, task_id: int) -> list[ChecklistItemRecord]: ...

    async def get_activities_by_project(
        self, project_id: int, limit: int | None = None
    ) -> list[ActivityRecord]: ...


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; treat naive timestamps as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _enum_value(value: object) -> str:
    return str(getattr(value, "value", value))


def user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        name=user.name,
        email=user.email,
        role=_enum_value(user.role),
        password_hash=user.password,
    )


def project_record(project: Project) -> ProjectRecord:
    return ProjectRecord(
        id=project.id,
        name=project.name,
        status=_enum_value(project.status),
        progress=project.progress or 0,
        description=project.description,
        deadline=as_utc(project.deadline),
        created_by=project.created_by,
    )


def member_record(member: ProjectMember) -> MemberRecord:
    return MemberRecord(
        project_id=member.project_id, user_id=member.user_id, role=_enum_value(member.role)
    )


def task_record(task: Task) -> TaskRecord:
    return TaskRecord(
        id=task.id,
        project_id=task.project_id,
        name=task.name,
        status=_enum_value(task.status),
        priority=_enum_value(task.priority),
        description=task.description,
        assigned_to=task.assigned_to,
        due_date=as_utc(task.due_date),
    )


def checklist_item_record(item: ChecklistItem) -> ChecklistItemRecord:
    return ChecklistItemRecord(
        id=item.id,
        task_id=item.task_id,
        text=item.text,
        is_completed=bool(item.is_completed),
        order=item.order,
    )


def activity_record(activity: Activity) -> ActivityRecord:
    return ActivityRecord(
        id=activity.id,
        user_id=activity.user_id,
        project_id=activity.project_id,
        task_id=activity.task_id,
        action=activity.action,
        subject=activity.subject,
        details=activity.details,
        created_at=as_utc(activity.created_at) or datetime.now(UTC),
    )


class SqlProjectDirectory:
    """ProjectDirectory backed by the SQLAlchemy repository.

    Each lookup opens a short-lived session in a worker thread so the event
    loop is never blocked on the database.
    """

    def __init__(self, session_factory: Callable[[], Session] = create_session) -> None:
        self._session_factory = session_factory

    async def _run(self, fn: Callable[[Session], T]) -> T:
        def _call() -> T:
            session = self._session_factory()
            try:
                return fn(session)
            finally:
                session.close()

        return await asyncio.to_thread(_call)

    async def get_user(self, user_id: int) -> UserRecord | None:
        def _q(session: Session) -> UserRecord | None:
            user = repository.get_user_by_id(session, user_id)
            return user_record(user) if user else None

        return await self._run(_q)

    async def get_user_by_username(self, username: str) -> UserRecord | None:
        def _q(session: Session) -> UserRecord | None:
            user = repository.get_user_by_username(session, username)
            return user_record(user) if user else None

        return await self._run(_q)

    async def get_projects_by_user(self, user_id: int) -> list[ProjectRecord]:
        return await self._run(
            lambda s: [project_record(p) for p in repository.get_projects_by_user(s, user_id)]
        )

    async def get_project(self, project_id: int) -> ProjectRecord | None:
        def _q(session: Session) -> ProjectRecord | None:
            project = repository.get_project_by_id(session, project_id)
            return project_record(project) if project else None

        return await self._run(_q)

    async def get_project_members(self, project_id: int) -> list[MemberRecord]:
        return await self._run(
            lambda s: [member_record(m) for m in repository.get_project_members(s, project_id)]
        )

    async def get_tasks_by_user(self, user_id: int) -> list[TaskRecord]:
        return await self._run(
            lambda s: [task_record(t) for t in repository.get_tasks_by_user(s, user_id)]
        )

    async def get_tasks_by_project(self, project_id: int) -> list[TaskRecord]:
        return await self._run(
            lambda s: [task_record(t) for t in repository.get_tasks_by_project(s, project_id)]
        )

    async def get_checklist_items(self, task_id: int) -> list[ChecklistItemRecord]:
        return await self._run(
            lambda s: [
                checklist_item_record(i) for i in repository.get_checklist_items(s, task_id)
            ]
        )

    async def get_activities_by_project(
        self, project_id: int, limit: int | None = None
    ) -> list[ActivityRecord]:
        return await self._run(
            lambda s: [
                activity_record(a)
                for a in repository.get_activities_by_project(s, project_id, limit)
            ]
        )
