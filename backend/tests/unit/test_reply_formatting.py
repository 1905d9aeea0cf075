from datetime import UTC, datetime

import pytest

from launchbot.services.project_directory import ProjectRecord, TaskRecord, UserRecord


@pytest.mark.unit
def test_status_labels_translate_and_pass_unknown_values_through():
    from launchbot.chatbot.formatting import (
        project_status_label,
        task_priority_label,
        task_status_label,
    )

    assert task_status_label("todo") == "A fazer"
    assert task_status_label("review") == "Em revisão"
    assert task_priority_label("high") == "Alta"
    assert project_status_label("on_hold") == "Em pausa"
    assert project_status_label("archived") == "archived"
    assert task_priority_label("urgent") == "urgent"


@pytest.mark.unit
def test_dates_render_pt_br():
    from launchbot.chatbot.formatting import format_date, format_datetime

    value = datetime(2024, 3, 5, 14, 7, tzinfo=UTC)
    assert format_date(value) == "05/03/2024"
    assert format_datetime(value) == "05/03/2024 14:07"
    assert format_date(None) == "Não definido"


@pytest.mark.unit
def test_upcoming_deadlines_skip_completed_and_undated_tasks():
    from launchbot.chatbot.formatting import upcoming_deadlines

    tasks = [
        TaskRecord(id=1, project_id=1, name="c", status="todo", priority="low", due_date=datetime(2024, 5, 3, tzinfo=UTC)),
        TaskRecord(id=2, project_id=1, name="a", status="completed", priority="low", due_date=datetime(2024, 5, 1, tzinfo=UTC)),
        TaskRecord(id=3, project_id=1, name="b", status="review", priority="low", due_date=datetime(2024, 5, 2, tzinfo=UTC)),
        TaskRecord(id=4, project_id=1, name="x", status="todo", priority="low"),
        TaskRecord(id=5, project_id=1, name="d", status="in_progress", priority="low", due_date=datetime(2024, 5, 4, tzinfo=UTC)),
        TaskRecord(id=6, project_id=1, name="e", status="todo", priority="low", due_date=datetime(2024, 5, 9, tzinfo=UTC)),
    ]

    assert [t.name for t in upcoming_deadlines(tasks)] == ["b", "c", "d"]


@pytest.mark.unit
def test_report_without_tasks_or_activities():
    from launchbot.chatbot.formatting import project_report

    project = ProjectRecord(id=1, name="Vazio", status="planning")

    reply = project_report(project, [], [], [])

    assert "- Não há tarefas cadastradas" in reply
    assert "*Prazo:* Não definido" in reply
    assert "*Atividades Recentes:*" not in reply


@pytest.mark.unit
def test_status_without_deadlines_omits_section():
    from launchbot.chatbot.formatting import user_status

    user = UserRecord(id=1, username="ana", name="Ana", email="ana@example.com")

    reply = user_status(user, [], [])

    assert reply.splitlines()[0] == "*Status de Ana*"
    assert "*Pendentes:* 0 tarefas" in reply
    assert "Próximos prazos" not in reply


@pytest.mark.unit
def test_user_record_repr_hides_password_hash():
    user = UserRecord(id=1, username="ana", name="Ana", email="ana@example.com", password_hash="abc.def")

    assert "abc.def" not in repr(user)


@pytest.mark.unit
def test_report_rounds_half_percentages_up():
    from launchbot.chatbot.formatting import project_report

    project = ProjectRecord(id=1, name="Site", status="in_progress", progress=40)
    tasks = [
        TaskRecord(id=i, project_id=1, name=f"T{i}", status="completed" if i == 0 else "todo", priority="low")
        for i in range(8)
    ]

    reply = project_report(project, tasks, [], [])

    assert "- 13% concluído (1/8)" in reply


@pytest.mark.unit
def test_dates_render_in_display_timezone():
    from zoneinfo import ZoneInfo

    from launchbot.chatbot.formatting import format_date, task_detail

    sao_paulo = ZoneInfo("America/Sao_Paulo")
    due = datetime(2024, 5, 12, 1, 0, tzinfo=UTC)
    task = TaskRecord(id=1, project_id=1, name="Deploy", status="todo", priority="low", due_date=due)

    assert format_date(due) == "12/05/2024"
    assert format_date(due, tz=sao_paulo) == "11/05/2024"
    assert "*Prazo:* 11/05/2024" in task_detail(task, None, [], tz=sao_paulo)
