"""Reply text for the WhatsApp chatbot.

Messages use WhatsApp markup (``*bold*``) and newline-separated bodies. All
user-facing copy is Brazilian Portuguese.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, tzinfo

from launchbot.services.project_directory import (
    ActivityRecord,
    ChecklistItemRecord,
    MemberRecord,
    ProjectRecord,
    TaskRecord,
    UserRecord,
)

PROJECT_STATUS_LABELS: dict[str, str] = {
    "planning": "Em planejamento",
    "in_progress": "Em andamento",
    "testing": "Em testes",
    "completed": "Concluído",
    "on_hold": "Em pausa",
}

TASK_STATUS_LABELS: dict[str, str] = {
    "todo": "A fazer",
    "in_progress": "Em andamento",
    "review": "Em revisão",
    "completed": "Concluído",
}

TASK_PRIORITY_LABELS: dict[str, str] = {
    "low": "Baixa",
    "medium": "Média",
    "high": "Alta",
}

PENDING_TASK_STATUSES = frozenset({"todo", "in_progress", "review"})

COMMAND_SUMMARY = (
    "- *projetos*: Listar seus projetos\n"
    "- *tarefas*: Listar suas tarefas\n"
    "- *pendente*: Ver tarefas pendentes\n"
    "- *relatorio X*: Gerar relatório do projeto X\n"
    "- *status*: Ver seu status atual\n"
    "- *ajuda*: Ver lista de comandos"
)

HELP_TEXT = (
    "Comandos disponíveis:\n\n"
    "- *projetos*: Listar seus projetos\n"
    "- *tarefas*: Listar suas tarefas\n"
    "- *pendente*: Ver tarefas pendentes\n"
    "- *relatorio X*: Gerar relatório do projeto X\n"
    "- *projeto X*: Ver detalhes do projeto X\n"
    "- *tarefa X*: Ver detalhes da tarefa X\n"
    "- *status*: Ver seu status atual\n"
    "- *logout*: Sair da sua conta\n"
    "- *ajuda*: Ver esta lista de comandos"
)

LOGIN_PROMPT = (
    "Bem-vindo ao LaunchRocket! Para acessar informações sobre seus projetos, "
    "por favor faça login.\n\nDigite seu nome de usuário:"
)
PASSWORD_PROMPT = "Digite sua senha:"
USER_NOT_FOUND = "Usuário não encontrado. Por favor, digite seu nome de usuário novamente:"
WRONG_PASSWORD = "Senha incorreta. Por favor, tente novamente:"
TOO_MANY_ATTEMPTS = (
    "Muitas tentativas de login sem sucesso. Aguarde alguns minutos e digite "
    '"login" para tentar novamente.'
)
AUTH_ERROR = (
    'Ocorreu um erro durante a autenticação. Por favor, tente novamente digitando "login".'
)
TYPE_LOGIN = 'Digite "login" para iniciar o processo de autenticação.'
LOGGED_OUT = 'Você saiu da sua conta. Digite "login" para entrar novamente.'
BACK_TO_MENU = (
    'Voltando ao menu principal. Digite "ajuda" para ver a lista de comandos disponíveis.'
)
UNKNOWN_COMMAND = 'Comando não reconhecido. Digite "ajuda" para ver a lista de comandos disponíveis.'
INVALID_PROJECT_NUMBER = (
    'Número de projeto inválido. Por favor, digite "projetos" para ver a lista numerada.'
)
INVALID_TASK_NUMBER = (
    'Número de tarefa inválido. Por favor, digite "tarefas" para ver a lista numerada.'
)
PROJECT_NOT_FOUND = (
    'Projeto não encontrado. Por favor, digite "projetos" para ver a lista numerada.'
)
TASK_NOT_FOUND = 'Tarefa não encontrada. Por favor, digite "tarefas" para ver a lista numerada.'
NO_PROJECTS = (
    "Você não tem projetos atribuídos. Para ver todos os projetos, peça ao administrador."
)
NO_TASKS = "Você não tem tarefas atribuídas."
NO_PENDING_TASKS = "Você não tem tarefas pendentes. Bom trabalho!"
NO_PROJECT_TASKS = "Este projeto não tem tarefas cadastradas."
USER_LOOKUP_ERROR = "Erro ao recuperar informações do usuário."
GENERIC_ERROR = "Ocorreu um erro ao {action}. Por favor, tente novamente."
PROCESSING_ERROR = "Ocorreu um erro ao processar sua mensagem. Por favor, tente novamente."


def project_status_label(status: str) -> str:
    return PROJECT_STATUS_LABELS.get(status, status)


def task_status_label(status: str) -> str:
    return TASK_STATUS_LABELS.get(status, status)


def task_priority_label(priority: str) -> str:
    return TASK_PRIORITY_LABELS.get(priority, priority)


def format_date(
    value: datetime | None, default: str = "Não definido", *, tz: tzinfo | None = None
) -> str:
    """pt-BR short date (dd/mm/YYYY), in ``tz`` when given."""
    if value is None:
        return default
    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.strftime("%d/%m/%Y")


def format_datetime(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M")


def round_half_up(value: float) -> int:
    """Round halves up (12.5 -> 13), unlike the built-in ``round``."""
    return int(value + 0.5)


def is_pending(task: TaskRecord) -> bool:
    return task.status in PENDING_TASK_STATUSES


def count_task_statuses(tasks: Sequence[TaskRecord]) -> dict[str, int]:
    counts = Counter(task.status for task in tasks)
    return {status: counts.get(status, 0) for status in TASK_STATUS_LABELS}


def welcome_message(user: UserRecord) -> str:
    return (
        f"Olá, {user.name}! Você está logado no LaunchRocket. "
        f"Você pode usar os seguintes comandos:\n\n{COMMAND_SUMMARY}"
    )


def error_message(action: str) -> str:
    return GENERIC_ERROR.format(action=action)


def _task_line(index: int, task: TaskRecord) -> str:
    return (
        f"{index}. *{task.name}* ({task_status_label(task.status)}) - "
        f"Prioridade: {task_priority_label(task.priority)}"
    )


def project_list(projects: Sequence[ProjectRecord]) -> str:
    lines = ["Seus projetos:", ""]
    lines += [
        f"{i}. *{p.name}* ({project_status_label(p.status)}) - Progresso: {p.progress}%"
        for i, p in enumerate(projects, start=1)
    ]
    lines += [
        "",
        'Digite "projeto X" para ver mais detalhes sobre um projeto específico, '
        "onde X é o número do projeto.",
    ]
    return "\n".join(lines)


def task_list(tasks: Sequence[TaskRecord], *, title: str, footer: str | None = None) -> str:
    lines = [title, ""]
    lines += [_task_line(i, t) for i, t in enumerate(tasks, start=1)]
    if footer:
        lines += ["", footer]
    return "\n".join(lines)


def project_detail(
    project: ProjectRecord,
    members: Sequence[MemberRecord],
    tasks: Sequence[TaskRecord],
    *,
    tz: tzinfo | None = None,
) -> str:
    counts = count_task_statuses(tasks)
    return "\n".join(
        [
            f"*Detalhes do Projeto: {project.name}*",
            "",
            f"*Status:* {project_status_label(project.status)}",
            f"*Progresso:* {project.progress}%",
            f"*Prazo:* {format_date(project.deadline, tz=tz)}",
            f"*Descrição:* {project.description or 'Sem descrição'}",
            "",
            f"*Equipe:* {len(members)} membros",
            f"*Tarefas:* {len(tasks)} total",
            f"  - {counts['todo']} a fazer",
            f"  - {counts['in_progress']} em andamento",
            f"  - {counts['review']} em revisão",
            f"  - {counts['completed']} concluídas",
            "",
            'Digite "tarefas projeto" para ver as tarefas deste projeto ou "voltar" '
            "para retornar ao menu principal.",
        ]
    )


def task_detail(
    task: TaskRecord,
    project: ProjectRecord | None,
    checklist: Sequence[ChecklistItemRecord],
    *,
    tz: tzinfo | None = None,
) -> str:
    lines = [
        f"*Detalhes da Tarefa: {task.name}*",
        "",
        f"*Projeto:* {project.name if project else 'Desconhecido'}",
        f"*Status:* {task_status_label(task.status)}",
        f"*Prioridade:* {task_priority_label(task.priority)}",
        f"*Prazo:* {format_date(task.due_date, tz=tz)}",
        f"*Descrição:* {task.description or 'Sem descrição'}",
        "",
    ]
    if checklist:
        lines.append("*Checklist:*")
        lines += [
            f"{i}. [{'✓' if item.is_completed else ' '}] {item.text}"
            for i, item in enumerate(checklist, start=1)
        ]
    lines += ["", 'Digite "voltar" para retornar ao menu principal.']
    return "\n".join(lines)


def project_report(
    project: ProjectRecord,
    tasks: Sequence[TaskRecord],
    members: Sequence[MemberRecord],
    activities: Sequence[ActivityRecord],
    *,
    tz: tzinfo | None = None,
) -> str:
    counts = count_task_statuses(tasks)
    lines = [
        f"*Relatório do Projeto: {project.name}*",
        "",
        f"*Status:* {project_status_label(project.status)}",
        f"*Progresso:* {project.progress}%",
        f"*Prazo:* {format_date(project.deadline, tz=tz)}",
        "",
        "*Progresso de Tarefas:*",
    ]
    total = len(tasks)
    if total:
        completed_pct = round_half_up(counts["completed"] / total * 100)
        lines += [
            f"- {completed_pct}% concluído ({counts['completed']}/{total})",
            f"- {counts['todo']} tarefas a fazer",
            f"- {counts['in_progress']} tarefas em andamento",
            f"- {counts['review']} tarefas em revisão",
        ]
    else:
        lines.append("- Não há tarefas cadastradas")
    lines += ["", f"*Equipe:* {len(members)} membros"]
    if activities:
        lines += ["", "*Atividades Recentes:*"]
        lines += [
            f"{i}. [{format_date(a.created_at, tz=tz)}] {a.action} {a.subject}"
            for i, a in enumerate(activities, start=1)
        ]
    return "\n".join(lines)


def upcoming_deadlines(tasks: Sequence[TaskRecord], limit: int = 3) -> list[TaskRecord]:
    """Pending tasks with a due date, soonest first."""
    dated = [t for t in tasks if is_pending(t) and t.due_date is not None]
    return sorted(dated, key=lambda t: t.due_date)[:limit]  # type: ignore[arg-type,return-value]


def user_status(
    user: UserRecord,
    projects: Sequence[ProjectRecord],
    tasks: Sequence[TaskRecord],
    *,
    tz: tzinfo | None = None,
) -> str:
    pending = [t for t in tasks if is_pending(t)]
    lines = [
        f"*Status de {user.name}*",
        "",
        f"*Projetos:* {len(projects)} atribuídos",
        f"*Tarefas:* {len(tasks)} total",
        f"*Pendentes:* {len(pending)} tarefas",
    ]
    upcoming = upcoming_deadlines(pending)
    if upcoming:
        lines += ["", "*Próximos prazos:*"]
        lines += [
            f"{i}. *{t.name}* - {format_date(t.due_date, tz=tz)}"
            for i, t in enumerate(upcoming, start=1)
        ]
    return "\n".join(lines)
