from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from launchbot.db.models import (
    Activity,
    ChecklistItem,
    Project,
    ProjectMember,
    ProjectStatus,
    Role,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)

logger = logging.getLogger(__name__)


# --- User Repository Functions ---


def get_user_by_id(session: Session, user_id: int) -> User | None:
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> User | None:
    """Case-insensitive username lookup."""
    return session.execute(
        select(User).where(func.lower(User.username) == username.strip().lower())
    ).scalar_one_or_none()


def create_user(
    session: Session,
    *,
    username: str,
    password_hash: str,
    name: str,
    email: str,
    role: Role = Role.member,
) -> User:
    user = User(
        username=username,
        password=password_hash,
        name=name,
        email=email,
        role=role,
    )
    session.add(user)
    session.flush()
    return user


# --- Project Repository Functions ---


def get_project_by_id(session: Session, project_id: int) -> Project | None:
    return session.get(Project, project_id)


def get_projects_by_user(session: Session, user_id: int) -> Sequence[Project]:
    """Projects the user is a member of or created, in creation order."""
    member_project_ids = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    return (
        session.execute(
            select(Project)
            .where((Project.created_by == user_id) | Project.id.in_(member_project_ids))
            .order_by(Project.id)
        )
        .scalars()
        .all()
    )


def get_project_members(session: Session, project_id: int) -> Sequence[ProjectMember]:
    return (
        session.execute(
            select(ProjectMember)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.id)
        )
        .scalars()
        .all()
    )


def create_project(
    session: Session,
    *,
    name: str,
    created_by: int,
    description: str | None = None,
    status: ProjectStatus = ProjectStatus.planning,
    progress: int = 0,
    deadline: datetime | None = None,
) -> Project:
    project = Project(
        name=name,
        description=description,
        status=status,
        progress=progress,
        deadline=deadline,
        created_by=created_by,
    )
    session.add(project)
    session.flush()
    return project


def add_project_member(
    session: Session, *, project_id: int, user_id: int, role: Role = Role.member
) -> ProjectMember:
    member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
    session.add(member)
    session.flush()
    return member


# --- Task Repository Functions ---


def get_task_by_id(session: Session, task_id: int) -> Task | None:
    return session.get(Task, task_id)


def get_tasks_by_user(session: Session, user_id: int) -> Sequence[Task]:
    """Tasks assigned to the user, in creation order."""
    return (
        session.execute(select(Task).where(Task.assigned_to == user_id).order_by(Task.id))
        .scalars()
        .all()
    )


def get_tasks_by_project(session: Session, project_id: int) -> Sequence[Task]:
    return (
        session.execute(select(Task).where(Task.project_id == project_id).order_by(Task.id))
        .scalars()
        .all()
    )


def create_task(
    session: Session,
    *,
    project_id: int,
    name: str,
    description: str | None = None,
    assigned_to: int | None = None,
    priority: TaskPriority = TaskPriority.medium,
    status: TaskStatus = TaskStatus.todo,
    due_date: datetime | None = None,
) -> Task:
    task = Task(
        project_id=project_id,
        name=name,
        description=description,
        assigned_to=assigned_to,
        priority=priority,
        status=status,
        due_date=due_date,
    )
    session.add(task)
    session.flush()
    return task


def get_checklist_items(session: Session, task_id: int) -> Sequence[ChecklistItem]:
    return (
        session.execute(
            select(ChecklistItem)
            .where(ChecklistItem.task_id == task_id)
            .order_by(ChecklistItem.order, ChecklistItem.id)
        )
        .scalars()
        .all()
    )


def create_checklist_item(
    session: Session, *, task_id: int, text: str, order: int, is_completed: bool = False
) -> ChecklistItem:
    item = ChecklistItem(task_id=task_id, text=text, order=order, is_completed=is_completed)
    session.add(item)
    session.flush()
    return item


# --- Activity Repository Functions ---


def get_activities_by_project(
    session: Session, project_id: int, limit: int | None = None
) -> Sequence[Activity]:
    """Activities of a project, newest first."""
    stmt = (
        select(Activity)
        .where(Activity.project_id == project_id)
        .order_by(desc(Activity.created_at), desc(Activity.id))
    )
    if limit:
        stmt = stmt.limit(limit)
    return session.execute(stmt).scalars().all()


def create_activity(
    session: Session,
    *,
    user_id: int,
    project_id: int,
    action: str,
    subject: str,
    task_id: int | None = None,
    details: str | None = None,
    created_at: datetime | None = None,
) -> Activity:
    activity = Activity(
        user_id=user_id,
        project_id=project_id,
        task_id=task_id,
        action=action,
        subject=subject,
        details=details,
    )
    if created_at is not None:
        activity.created_at = created_at
    session.add(activity)
    session.flush()
    logger.debug("Recorded activity %s %s on project %s", action, subject, project_id)
    return activity
