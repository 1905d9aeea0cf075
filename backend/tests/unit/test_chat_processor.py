import pytest

from launchbot.services.project_directory import UserRecord
from tests.chat_test_utils import FakeClock, FakeVerifier, seeded_directory

PHONE = "5511999990000"
PASSWORDS = {"ana": "Segredo1", "bruno": "bruno-pw", "carla": "carla-pw"}


def _processor(*, limiter=None, clock=None, timezone=None):
    from launchbot.chatbot.processor import ChatbotProcessor
    from launchbot.core.state import InMemorySessionStore

    directory = seeded_directory()
    directory.users[3] = UserRecord(id=3, username="carla", name="Carla", email="carla@example.com")
    verifier = FakeVerifier(directory, PASSWORDS)
    store = InMemorySessionStore(clock=clock or FakeClock())
    processor = ChatbotProcessor(store, directory, verifier, limiter, timezone=timezone)
    return processor, store, directory, verifier


async def _login(processor, username="ana", password="Segredo1"):
    await processor.handle_message(PHONE, "login")
    await processor.handle_message(PHONE, username)
    return await processor.handle_message(PHONE, password)


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("first_text", ["oi", "login", "projetos", "ajuda"])
async def test_first_message_from_new_phone_prompts_for_username(first_text):
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()

    reply = await processor.handle_message(PHONE, first_text)

    assert reply == fmt.LOGIN_PROMPT
    assert store.get(PHONE).conversation_state is ConversationState.awaiting_username


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_restarts_from_any_unauthenticated_state():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, verifier = _processor()
    await processor.handle_message(PHONE, "login")
    assert await processor.handle_message(PHONE, "login") == fmt.LOGIN_PROMPT
    assert store.get(PHONE).conversation_state is ConversationState.awaiting_username

    await processor.handle_message(PHONE, "ana")
    assert store.get(PHONE).conversation_state is ConversationState.awaiting_password

    assert await processor.handle_message(PHONE, "LOGIN") == fmt.LOGIN_PROMPT
    session = store.get(PHONE)
    assert session.conversation_state is ConversationState.awaiting_username
    assert session.pending_username is None
    assert verifier.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_username_loops_back_to_username_entry():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()

    reply = await _login(processor, username="ninguem", password="qualquer")

    session = store.get(PHONE)
    assert reply == fmt.USER_NOT_FOUND
    assert session.conversation_state is ConversationState.awaiting_username
    assert session.authenticated is False
    assert session.user_id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_wrong_password_loops_back_to_password_entry():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()

    reply = await _login(processor, password="errada")

    session = store.get(PHONE)
    assert reply == fmt.WRONG_PASSWORD
    assert session.conversation_state is ConversationState.awaiting_password
    assert session.authenticated is False
    assert session.user_id is None
    assert session.pending_username == "ana"

    # A retry with the right password succeeds without retyping the username
    await processor.handle_message(PHONE, "Segredo1")
    assert store.get(PHONE).authenticated is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_successful_login_welcomes_with_exact_command_set():
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()

    reply = await _login(processor)

    session = store.get(PHONE)
    assert session.conversation_state is ConversationState.authenticated
    assert session.authenticated is True
    assert session.user_id == 1
    assert session.pending_username is None
    assert reply.startswith("Olá, Ana Souza!")
    listed = [line[3:].split("*")[0] for line in reply.splitlines() if line.startswith("- *")]
    assert listed == ["projetos", "tarefas", "pendente", "relatorio X", "status", "ajuda"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credentials_keep_their_original_case():
    processor, _, _, verifier = _processor()

    await _login(processor, username="  ANA ", password="Segredo1")

    assert verifier.calls == [("ANA", "Segredo1")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_logout_clears_identity_and_returns_to_initial():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor)
    await processor.handle_message(PHONE, "projeto 1")

    reply = await processor.handle_message(PHONE, "logout")

    session = store.get(PHONE)
    assert reply == fmt.LOGGED_OUT
    assert session.conversation_state is ConversationState.initial
    assert session.authenticated is False
    assert session.user_id is None
    assert session.current_project_id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_show_project_without_projects_replies_not_found():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor, username="carla", password="carla-pw")

    reply = await processor.handle_message(PHONE, "projeto 1")

    assert reply == fmt.PROJECT_NOT_FOUND
    session = store.get(PHONE)
    assert session.conversation_state is ConversationState.authenticated
    assert session.current_project_id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_show_project_focuses_first_project():
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor)

    reply = await processor.handle_message(PHONE, "projeto 1")

    session = store.get(PHONE)
    assert session.conversation_state is ConversationState.viewing_project
    assert session.current_project_id == 10
    assert "*Detalhes do Projeto: Site Institucional*" in reply
    assert "*Equipe:* 2 membros" in reply
    assert "*Tarefas:* 3 total" in reply
    assert "*Prazo:* 30/06/2024" in reply


@pytest.mark.unit
@pytest.mark.asyncio
async def test_back_from_project_clears_focus():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor)
    await processor.handle_message(PHONE, "projeto 2")

    reply = await processor.handle_message(PHONE, "voltar")

    session = store.get(PHONE)
    assert reply == fmt.BACK_TO_MENU
    assert session.conversation_state is ConversationState.authenticated
    assert session.current_project_id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_project_tasks_only_from_viewing_project():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor)
    assert await processor.handle_message(PHONE, "tarefas projeto") == fmt.UNKNOWN_COMMAND
    assert await processor.handle_message(PHONE, "voltar") == fmt.UNKNOWN_COMMAND

    await processor.handle_message(PHONE, "projeto 1")
    reply = await processor.handle_message(PHONE, "tarefas projeto")

    assert reply.startswith("Tarefas do projeto:")
    assert "*Textos do blog* (Em revisão)" in reply
    assert "Levantar requisitos" not in reply
    assert store.get(PHONE).conversation_state is ConversationState.viewing_project


@pytest.mark.unit
@pytest.mark.asyncio
async def test_show_task_keeps_other_fields_untouched():
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor)
    await processor.handle_message(PHONE, "projeto 1")
    before = store.get(PHONE).to_dict()

    reply = await processor.handle_message(PHONE, "tarefa 1")

    after = store.get(PHONE).to_dict()
    assert after.pop("conversation_state") == ConversationState.viewing_task.value
    assert after.pop("current_task_id") == 100
    before.pop("conversation_state")
    before.pop("current_task_id")
    assert after == before
    assert "*Projeto:* Site Institucional" in reply
    assert "1. [✓] Wireframe" in reply
    assert "2. [ ] Layout final" in reply


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["projetos", "tarefas", "pendente", "status", "relatorio 1", "ajuda"])
async def test_read_only_commands_do_not_mutate_session(text):
    processor, store, _, _ = _processor()
    await _login(processor)
    before = store.get(PHONE).to_dict()

    await processor.handle_message(PHONE, text)

    assert store.get(PHONE).to_dict() == before


@pytest.mark.unit
@pytest.mark.asyncio
async def test_help_is_idempotent():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, _ = _processor()
    await _login(processor)

    replies = [await processor.handle_message(PHONE, "ajuda") for _ in range(3)]

    assert replies == [fmt.HELP_TEXT] * 3
    assert store.get(PHONE).conversation_state is ConversationState.authenticated


@pytest.mark.unit
@pytest.mark.asyncio
async def test_listing_commands_format_user_data():
    processor, _, _, _ = _processor()
    await _login(processor)

    projects = await processor.handle_message(PHONE, "projetos")
    tasks = await processor.handle_message(PHONE, "tarefas")
    pending = await processor.handle_message(PHONE, "pendente")

    assert "1. *Site Institucional* (Em andamento) - Progresso: 45%" in projects
    assert "2. *Aplicativo Mobile* (Em planejamento) - Progresso: 10%" in projects
    assert "2. *Configurar domínio* (Concluído) - Prioridade: Baixa" in tasks
    assert "Configurar domínio" not in pending
    assert "2. *Levantar requisitos* (A fazer) - Prioridade: Média" in pending


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_lists_counts_and_next_deadlines():
    processor, _, _, _ = _processor()
    await _login(processor)

    reply = await processor.handle_message(PHONE, "status")

    assert "*Status de Ana Souza*" in reply
    assert "*Projetos:* 2 atribuídos" in reply
    assert "*Tarefas:* 3 total" in reply
    assert "*Pendentes:* 2 tarefas" in reply
    assert reply.index("Criar layout* - 12/05/2024") < reply.index("Levantar requisitos* - 20/05/2024")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_report_shows_five_most_recent_activities():
    processor, _, directory, _ = _processor()
    await _login(processor)

    reply = await processor.handle_message(PHONE, "relatorio 1")

    assert "*Relatório do Projeto: Site Institucional*" in reply
    assert "- 33% concluído (1/3)" in reply
    assert "5. [" in reply
    assert "6. [" not in reply
    assert "get_activities_by_project" in directory.calls


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_and_out_of_range_indices():
    from launchbot.chatbot import formatting as fmt

    processor, store, _, _ = _processor()
    await _login(processor)
    before = store.get(PHONE).to_dict()

    assert await processor.handle_message(PHONE, "projeto abc") == fmt.INVALID_PROJECT_NUMBER
    assert await processor.handle_message(PHONE, "tarefa 0") == fmt.INVALID_TASK_NUMBER
    assert await processor.handle_message(PHONE, "relatorio -2") == fmt.INVALID_PROJECT_NUMBER
    assert await processor.handle_message(PHONE, "projeto 9") == fmt.PROJECT_NOT_FOUND
    assert await processor.handle_message(PHONE, "tarefa 9") == fmt.TASK_NOT_FOUND
    assert await processor.handle_message(PHONE, "relatorio 9") == fmt.PROJECT_NOT_FOUND
    assert await processor.handle_message(PHONE, "bom dia") == fmt.UNKNOWN_COMMAND
    assert store.get(PHONE).to_dict() == before


@pytest.mark.unit
@pytest.mark.asyncio
async def test_domain_failure_yields_retry_prompt_and_keeps_session():
    from launchbot.chatbot import formatting as fmt

    processor, store, directory, _ = _processor()
    await _login(processor)
    before = store.get(PHONE).to_dict()

    directory.failing = {"get_projects_by_user"}
    assert await processor.handle_message(PHONE, "projetos") == fmt.error_message("buscar seus projetos")

    directory.failing = {"get_project_members"}
    reply = await processor.handle_message(PHONE, "projeto 1")

    assert reply == fmt.error_message("buscar os detalhes do projeto")
    assert store.get(PHONE).to_dict() == before


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_with_missing_user_record():
    from launchbot.chatbot import formatting as fmt

    processor, _, directory, _ = _processor()
    await _login(processor)
    directory.users.pop(1)

    assert await processor.handle_message(PHONE, "status") == fmt.USER_LOOKUP_ERROR


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credential_lookup_error_resets_to_initial():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState

    processor, store, _, verifier = _processor()
    verifier.fail = True

    reply = await _login(processor)

    session = store.get(PHONE)
    assert reply == fmt.AUTH_ERROR
    assert session.conversation_state is ConversationState.initial
    assert session.pending_username is None
    assert session.authenticated is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_repeated_wrong_passwords_are_throttled():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ConversationState
    from launchbot.services.rate_limiter import InMemoryRateLimiterBackend, LoginAttemptLimiter

    limiter = LoginAttemptLimiter(InMemoryRateLimiterBackend(), max_attempts=2, window_seconds=900)
    processor, store, _, verifier = _processor(limiter=limiter)

    assert await _login(processor, password="errada") == fmt.WRONG_PASSWORD
    assert await processor.handle_message(PHONE, "errada") == fmt.TOO_MANY_ATTEMPTS
    assert store.get(PHONE).conversation_state is ConversationState.initial

    # Even the right password is refused while the window is open
    assert await _login(processor) == fmt.TOO_MANY_ATTEMPTS
    assert store.get(PHONE).authenticated is False
    assert len(verifier.calls) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_successful_login_resets_failure_counter():
    from launchbot.services.rate_limiter import InMemoryRateLimiterBackend, LoginAttemptLimiter

    limiter = LoginAttemptLimiter(InMemoryRateLimiterBackend(), max_attempts=3)
    processor, _, _, _ = _processor(limiter=limiter)

    await _login(processor, password="errada")
    await processor.handle_message(PHONE, "Segredo1")

    assert limiter.record_failure(PHONE) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_idle_session_expires_back_to_login():
    from launchbot.chatbot import formatting as fmt

    clock = FakeClock()
    processor, store, _, _ = _processor(clock=clock)
    await _login(processor)

    clock.advance(minutes=31)
    reply = await processor.handle_message(PHONE, "projetos")

    assert reply == fmt.LOGIN_PROMPT
    assert store.get(PHONE).authenticated is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_inconsistent_session_only_accepts_login():
    from launchbot.chatbot import formatting as fmt
    from launchbot.chatbot.session import ChatSession, ConversationState

    processor, _, _, _ = _processor()
    session = ChatSession(phone_number=PHONE, conversation_state=ConversationState.viewing_project)

    assert await processor.process(session, "projetos") == fmt.TYPE_LOGIN
    assert session.conversation_state is ConversationState.viewing_project

    assert await processor.process(session, "login") == fmt.LOGIN_PROMPT
    assert session.conversation_state is ConversationState.awaiting_username


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dates_in_replies_use_configured_timezone():
    processor, _, _, _ = _processor(timezone="America/Sao_Paulo")
    await _login(processor)

    project_reply = await processor.handle_message(PHONE, "projeto 1")
    status_reply = await processor.handle_message(PHONE, "status")

    # Midnight UTC is still the previous evening in São Paulo
    assert "*Prazo:* 29/06/2024" in project_reply
    assert "Criar layout* - 11/05/2024" in status_reply
