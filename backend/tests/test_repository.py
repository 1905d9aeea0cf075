from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from launchbot.db.base import Base

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def seeded(session_factory):
    from launchbot.db.seed import seed_demo_data

    with session_factory() as session:
        admin = seed_demo_data(session, now=NOW)
        session.commit()
        admin_id = admin.id
    return session_factory, admin_id


def test_seed_is_idempotent(seeded):
    from launchbot.db import repository
    from launchbot.db.seed import seed_demo_data

    factory, admin_id = seeded
    with factory() as session:
        again = seed_demo_data(session, now=NOW)
        session.commit()
        assert again.id == admin_id
        assert len(repository.get_projects_by_user(session, admin_id)) == 2


def test_username_lookup_is_case_insensitive(seeded):
    from launchbot.db import repository

    factory, admin_id = seeded
    with factory() as session:
        assert repository.get_user_by_username(session, " ADMIN ").id == admin_id
        assert repository.get_user_by_username(session, "nobody") is None


def test_projects_include_memberships_and_creations(seeded):
    from launchbot.db import repository

    factory, admin_id = seeded
    with factory() as session:
        ana = repository.get_user_by_username(session, "ana")
        admin_projects = [p.name for p in repository.get_projects_by_user(session, admin_id)]
        ana_projects = [p.name for p in repository.get_projects_by_user(session, ana.id)]

    assert admin_projects == ["Site Institucional", "Aplicativo Mobile"]
    assert ana_projects == ["Site Institucional"]


def test_checklist_items_are_ordered(seeded):
    from launchbot.db import repository

    factory, admin_id = seeded
    with factory() as session:
        [layout] = [t for t in repository.get_tasks_by_user(session, admin_id) if t.name.startswith("Criar")]
        items = repository.get_checklist_items(session, layout.id)

    assert [i.text for i in items] == ["Wireframe", "Paleta de cores", "Layout final"]
    assert [i.is_completed for i in items] == [True, True, False]


def test_activities_are_newest_first_and_limited(seeded):
    from launchbot.db import repository

    factory, admin_id = seeded
    with factory() as session:
        [site, _] = repository.get_projects_by_user(session, admin_id)
        repository.create_activity(
            session,
            user_id=admin_id,
            project_id=site.id,
            action="atualizado",
            subject="projeto",
            created_at=NOW - timedelta(minutes=1),
        )
        session.commit()
        activities = repository.get_activities_by_project(session, site.id)
        latest = repository.get_activities_by_project(session, site.id, limit=1)

    assert [a.action for a in activities] == ["atualizado", "atualizada", "criado"]
    assert [a.action for a in latest] == ["atualizado"]


@pytest.mark.asyncio
async def test_sql_directory_returns_plain_records(seeded):
    from launchbot.services.project_directory import SqlProjectDirectory

    factory, admin_id = seeded
    directory = SqlProjectDirectory(session_factory=factory)

    user = await directory.get_user_by_username("admin")
    projects = await directory.get_projects_by_user(admin_id)
    tasks = await directory.get_tasks_by_user(admin_id)
    members = await directory.get_project_members(projects[0].id)
    activities = await directory.get_activities_by_project(projects[0].id, limit=5)

    assert user.id == admin_id
    assert user.role == "admin"
    assert projects[0].status == "in_progress"
    assert projects[0].deadline.tzinfo is not None
    assert [t.status for t in tasks] == ["in_progress", "completed", "todo"]
    assert tasks[0].priority == "high"
    assert tasks[0].due_date == NOW + timedelta(days=2)
    assert {m.role for m in members} == {"admin", "member"}
    assert activities[0].created_at == NOW - timedelta(hours=5)
    assert await directory.get_user(9999) is None
    assert await directory.get_project(9999) is None
    assert await directory.get_tasks_by_project(9999) == []


@pytest.mark.asyncio
async def test_directory_credentials_against_seeded_hashes(seeded):
    from launchbot.core.auth import DirectoryCredentialVerifier
    from launchbot.db.seed import DEMO_PASSWORD, DEMO_USERNAME
    from launchbot.services.project_directory import SqlProjectDirectory

    factory, _ = seeded
    verifier = DirectoryCredentialVerifier(SqlProjectDirectory(session_factory=factory))

    assert (await verifier.verify_credentials(DEMO_USERNAME, DEMO_PASSWORD)).status == "ok"
    assert (await verifier.verify_credentials(DEMO_USERNAME, "wrong")).status == "wrong_password"
    assert (await verifier.verify_credentials("ghost", DEMO_PASSWORD)).status == "user_not_found"
