"""WhatsApp conversation state machine.

Each inbound text is parsed into a command, then a ``(state, command type)``
transition table picks the handler. Handlers mutate the session in place and
return the reply text. Data lookups happen before any mutation, so a failing
lookup leaves the session exactly as it was.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar
from zoneinfo import ZoneInfo

from launchbot.chatbot import formatting as fmt
from launchbot.chatbot.commands import (
    Back,
    Command,
    Help,
    InvalidIndex,
    ListPending,
    ListProjects,
    ListTasks,
    Login,
    Logout,
    ProjectReport,
    ProjectTasks,
    ShowProject,
    ShowTask,
    Status,
    parse_command,
)
from launchbot.chatbot.session import POST_LOGIN_STATES, ChatSession, ConversationState
from launchbot.core.logging import bind_phone

if TYPE_CHECKING:
    from launchbot.core.auth import CredentialVerifier
    from launchbot.core.state import ChatSessionStore
    from launchbot.services.project_directory import ProjectDirectory
    from launchbot.services.rate_limiter import LoginAttemptLimiter

logger = logging.getLogger(__name__)

Handler = Callable[[ChatSession, Command, str], Awaitable[str]]
F = TypeVar("F", bound=Callable[..., Awaitable[str]])

RECENT_ACTIVITY_LIMIT = 5


def guarded(action: str) -> Callable[[F], F]:
    """Turn a failing domain lookup into a retry prompt instead of an exception."""

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(self, session: ChatSession, command: Command, text: str) -> str:  # type: ignore[no-untyped-def]
            try:
                return await fn(self, session, command, text)
            except Exception:
                logger.exception("Chat command failed (%s)", type(command).__name__)
                return fmt.error_message(action)

        return wrapper  # type: ignore[return-value]

    return decorator


class ChatbotProcessor:
    def __init__(
        self,
        store: ChatSessionStore,
        directory: ProjectDirectory,
        verifier: CredentialVerifier,
        login_limiter: LoginAttemptLimiter | None = None,
        *,
        timezone: str | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._verifier = verifier
        self._login_limiter = login_limiter
        # Dates in replies render in this zone; None keeps stored values as-is
        self._tz = ZoneInfo(timezone) if timezone else None
        self._transitions, self._fallbacks = self._build_transitions()

    def _build_transitions(
        self,
    ) -> tuple[
        dict[tuple[ConversationState, type], Handler], dict[ConversationState, Handler]
    ]:
        S = ConversationState
        table: dict[tuple[ConversationState, type], Handler] = {
            (S.awaiting_username, Login): self._start_login,
            (S.awaiting_password, Login): self._start_login,
            (S.viewing_project, Back): self._back,
            (S.viewing_task, Back): self._back,
            (S.viewing_project, ProjectTasks): self._project_tasks,
        }
        for state in POST_LOGIN_STATES:
            table[(state, Logout)] = self._logout
            table[(state, Help)] = self._help
            table[(state, ListProjects)] = self._list_projects
            table[(state, ListTasks)] = self._list_tasks
            table[(state, ListPending)] = self._list_pending
            table[(state, ShowProject)] = self._show_project
            table[(state, ShowTask)] = self._show_task
            table[(state, ProjectReport)] = self._project_report
            table[(state, Status)] = self._status
            table[(state, InvalidIndex)] = self._invalid_index

        fallbacks: dict[ConversationState, Handler] = {
            S.initial: self._start_login,
            S.awaiting_username: self._capture_username,
            S.awaiting_password: self._check_password,
            S.authenticated: self._unknown,
            S.viewing_project: self._unknown,
            S.viewing_task: self._unknown,
        }
        return table, fallbacks

    async def handle_message(self, phone_number: str, text: str) -> str:
        """Load the sender's session, run one turn and persist the result."""
        with bind_phone(phone_number):
            session = self._store.get_or_create(phone_number)
            reply = await self.process(session, text)
            self._store.save(session)
            logger.debug("Chat turn done, state=%s", session.conversation_state.value)
            return reply

    async def process(self, session: ChatSession, text: str) -> str:
        command = parse_command(text)
        handler = self._resolve(session, command)
        return await handler(session, command, text.strip())

    def _resolve(self, session: ChatSession, command: Command) -> Handler:
        state = session.conversation_state
        if session.authenticated != (state in POST_LOGIN_STATES):
            # Inconsistent record (e.g. restored from an older deployment): only login works
            logger.warning("Inconsistent chat session in state %s", state.value)
            return self._start_login if isinstance(command, Login) else self._type_login
        handler = self._transitions.get((state, type(command)))
        if handler is None:
            handler = self._fallbacks.get(state, self._type_login)
        return handler

    # --- Authentication ---------------------------------------------------

    async def _start_login(self, session: ChatSession, command: Command, text: str) -> str:
        if session.authenticated:
            session.logout()
        session.pending_username = None
        session.conversation_state = ConversationState.awaiting_username
        return fmt.LOGIN_PROMPT

    async def _type_login(self, session: ChatSession, command: Command, text: str) -> str:
        return fmt.TYPE_LOGIN

    async def _capture_username(self, session: ChatSession, command: Command, text: str) -> str:
        session.pending_username = text
        session.conversation_state = ConversationState.awaiting_password
        return fmt.PASSWORD_PROMPT

    async def _check_password(self, session: ChatSession, command: Command, text: str) -> str:
        phone = session.phone_number
        limiter = self._login_limiter
        if limiter is not None and limiter.is_blocked(phone):
            self._reset_login(session)
            return fmt.TOO_MANY_ATTEMPTS

        username = session.pending_username or ""
        try:
            result = await self._verifier.verify_credentials(username, text)
        except Exception:
            logger.exception("Credential verification failed")
            self._reset_login(session)
            return fmt.AUTH_ERROR

        if result.ok and result.user is not None:
            if limiter is not None:
                limiter.reset(phone)
            session.login(result.user.id)
            logger.info("Chat session authenticated for user %s", result.user.id)
            return fmt.welcome_message(result.user)

        if limiter is not None and limiter.record_failure(phone) == 0:
            logger.warning("Chat login blocked after repeated failures")
            self._reset_login(session)
            return fmt.TOO_MANY_ATTEMPTS

        if result.status == "user_not_found":
            session.pending_username = None
            session.conversation_state = ConversationState.awaiting_username
            return fmt.USER_NOT_FOUND
        session.conversation_state = ConversationState.awaiting_password
        return fmt.WRONG_PASSWORD

    @staticmethod
    def _reset_login(session: ChatSession) -> None:
        session.pending_username = None
        session.conversation_state = ConversationState.initial

    # --- Navigation -------------------------------------------------------

    async def _logout(self, session: ChatSession, command: Command, text: str) -> str:
        logger.info("Chat session logged out for user %s", session.user_id)
        session.logout()
        return fmt.LOGGED_OUT

    async def _help(self, session: ChatSession, command: Command, text: str) -> str:
        return fmt.HELP_TEXT

    async def _back(self, session: ChatSession, command: Command, text: str) -> str:
        session.clear_focus()
        return fmt.BACK_TO_MENU

    async def _unknown(self, session: ChatSession, command: Command, text: str) -> str:
        return fmt.UNKNOWN_COMMAND

    async def _invalid_index(self, session: ChatSession, command: Command, text: str) -> str:
        assert isinstance(command, InvalidIndex)
        if command.kind == "task":
            return fmt.INVALID_TASK_NUMBER
        return fmt.INVALID_PROJECT_NUMBER

    # --- Queries ----------------------------------------------------------

    def _user_id(self, session: ChatSession) -> int:
        assert session.user_id is not None
        return session.user_id

    @guarded("buscar seus projetos")
    async def _list_projects(self, session: ChatSession, command: Command, text: str) -> str:
        projects = await self._directory.get_projects_by_user(self._user_id(session))
        if not projects:
            return fmt.NO_PROJECTS
        return fmt.project_list(projects)

    @guarded("buscar suas tarefas")
    async def _list_tasks(self, session: ChatSession, command: Command, text: str) -> str:
        tasks = await self._directory.get_tasks_by_user(self._user_id(session))
        if not tasks:
            return fmt.NO_TASKS
        return fmt.task_list(
            tasks,
            title="Suas tarefas:",
            footer=(
                'Digite "tarefa X" para ver mais detalhes sobre uma tarefa específica, '
                "onde X é o número da tarefa."
            ),
        )

    @guarded("buscar suas tarefas pendentes")
    async def _list_pending(self, session: ChatSession, command: Command, text: str) -> str:
        tasks = await self._directory.get_tasks_by_user(self._user_id(session))
        pending = [task for task in tasks if fmt.is_pending(task)]
        if not pending:
            return fmt.NO_PENDING_TASKS
        return fmt.task_list(pending, title="Suas tarefas pendentes:")

    @guarded("buscar os detalhes do projeto")
    async def _show_project(self, session: ChatSession, command: Command, text: str) -> str:
        assert isinstance(command, ShowProject)
        projects = await self._directory.get_projects_by_user(self._user_id(session))
        if command.index > len(projects):
            return fmt.PROJECT_NOT_FOUND
        project = projects[command.index - 1]
        members, tasks = await asyncio.gather(
            self._directory.get_project_members(project.id),
            self._directory.get_tasks_by_project(project.id),
        )
        reply = fmt.project_detail(project, members, tasks, tz=self._tz)
        session.current_project_id = project.id
        session.conversation_state = ConversationState.viewing_project
        return reply

    @guarded("buscar os detalhes da tarefa")
    async def _show_task(self, session: ChatSession, command: Command, text: str) -> str:
        assert isinstance(command, ShowTask)
        tasks = await self._directory.get_tasks_by_user(self._user_id(session))
        if command.index > len(tasks):
            return fmt.TASK_NOT_FOUND
        task = tasks[command.index - 1]
        project, checklist = await asyncio.gather(
            self._directory.get_project(task.project_id),
            self._directory.get_checklist_items(task.id),
        )
        reply = fmt.task_detail(task, project, checklist, tz=self._tz)
        session.current_task_id = task.id
        session.conversation_state = ConversationState.viewing_task
        return reply

    @guarded("gerar o relatório")
    async def _project_report(self, session: ChatSession, command: Command, text: str) -> str:
        assert isinstance(command, ProjectReport)
        projects = await self._directory.get_projects_by_user(self._user_id(session))
        if command.index > len(projects):
            return fmt.PROJECT_NOT_FOUND
        project = projects[command.index - 1]
        tasks, members, activities = await asyncio.gather(
            self._directory.get_tasks_by_project(project.id),
            self._directory.get_project_members(project.id),
            self._directory.get_activities_by_project(project.id, RECENT_ACTIVITY_LIMIT),
        )
        return fmt.project_report(project, tasks, members, activities, tz=self._tz)

    @guarded("buscar seu status")
    async def _status(self, session: ChatSession, command: Command, text: str) -> str:
        user_id = self._user_id(session)
        user, projects, tasks = await asyncio.gather(
            self._directory.get_user(user_id),
            self._directory.get_projects_by_user(user_id),
            self._directory.get_tasks_by_user(user_id),
        )
        if user is None:
            return fmt.USER_LOOKUP_ERROR
        return fmt.user_status(user, projects, tasks, tz=self._tz)

    @guarded("buscar as tarefas do projeto")
    async def _project_tasks(self, session: ChatSession, command: Command, text: str) -> str:
        if session.current_project_id is None:
            return fmt.UNKNOWN_COMMAND
        tasks = await self._directory.get_tasks_by_project(session.current_project_id)
        if not tasks:
            return fmt.NO_PROJECT_TASKS
        return fmt.task_list(
            tasks,
            title="Tarefas do projeto:",
            footer='Digite "voltar" para retornar ao menu principal.',
        )
