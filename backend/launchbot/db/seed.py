"""Demo data for local development and the chat CLI."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from launchbot.core.auth import hash_password
from launchbot.db.models import ProjectStatus, Role, TaskPriority, TaskStatus, User
from launchbot.db.repository import (
    add_project_member,
    create_activity,
    create_checklist_item,
    create_project,
    create_task,
    create_user,
    get_user_by_username,
)

logger = logging.getLogger(__name__)

DEMO_USERNAME = "admin"
DEMO_PASSWORD = "admin123"


def seed_demo_data(session: Session, *, now: datetime | None = None) -> User:
    """Create the demo admin with two projects. Idempotent on the username."""
    existing = get_user_by_username(session, DEMO_USERNAME)
    if existing is not None:
        logger.info("Demo user already present (id=%s), skipping seed", existing.id)
        return existing

    now = now or datetime.now(UTC)
    admin = create_user(
        session,
        username=DEMO_USERNAME,
        password_hash=hash_password(DEMO_PASSWORD),
        name="Administrador",
        email="admin@launchrocket.com",
        role=Role.admin,
    )
    ana = create_user(
        session,
        username="ana",
        password_hash=hash_password("ana123"),
        name="Ana Souza",
        email="ana@launchrocket.com",
    )

    site = create_project(
        session,
        name="Site Institucional",
        created_by=admin.id,
        description="Novo site da empresa com blog e área de clientes",
        status=ProjectStatus.in_progress,
        progress=45,
        deadline=now + timedelta(days=30),
    )
    app = create_project(
        session,
        name="Aplicativo Mobile",
        created_by=admin.id,
        description="App de acompanhamento de pedidos",
        status=ProjectStatus.planning,
        progress=10,
        deadline=now + timedelta(days=90),
    )
    for project in (site, app):
        add_project_member(session, project_id=project.id, user_id=admin.id, role=Role.admin)
    add_project_member(session, project_id=site.id, user_id=ana.id)

    layout = create_task(
        session,
        project_id=site.id,
        name="Criar layout da home",
        description="Wireframe e layout final da página inicial",
        assigned_to=admin.id,
        priority=TaskPriority.high,
        status=TaskStatus.in_progress,
        due_date=now + timedelta(days=2),
    )
    for order, (text, done) in enumerate(
        [("Wireframe", True), ("Paleta de cores", True), ("Layout final", False)]
    ):
        create_checklist_item(session, task_id=layout.id, text=text, order=order, is_completed=done)

    create_task(
        session,
        project_id=site.id,
        name="Configurar domínio",
        assigned_to=admin.id,
        priority=TaskPriority.low,
        status=TaskStatus.completed,
        due_date=now - timedelta(days=3),
    )
    create_task(
        session,
        project_id=app.id,
        name="Levantar requisitos",
        description="Entrevistas com a equipe de vendas",
        assigned_to=admin.id,
        priority=TaskPriority.medium,
        status=TaskStatus.todo,
        due_date=now + timedelta(days=7),
    )
    create_task(
        session,
        project_id=site.id,
        name="Escrever textos do blog",
        assigned_to=ana.id,
        status=TaskStatus.review,
    )

    create_activity(
        session,
        user_id=admin.id,
        project_id=site.id,
        action="criado",
        subject="projeto",
        details="Site Institucional",
        created_at=now - timedelta(days=10),
    )
    create_activity(
        session,
        user_id=ana.id,
        project_id=site.id,
        task_id=layout.id,
        action="atualizada",
        subject="tarefa",
        details="Criar layout da home",
        created_at=now - timedelta(hours=5),
    )
    logger.info("Seeded demo data: user %s with %d projects", admin.username, 2)
    return admin
