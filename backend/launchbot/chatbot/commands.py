"""Parse chat text into commands.

Text is trimmed and lower-cased before matching. Indexed commands
("projeto 2", "tarefa 1", "relatorio 3") carry the 1-based position typed by
the user; anything that is not a positive integer becomes ``InvalidIndex``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

IndexKind = Literal["project", "task"]


@dataclass(frozen=True, slots=True)
class Login:
    pass


@dataclass(frozen=True, slots=True)
class Logout:
    pass


@dataclass(frozen=True, slots=True)
class Help:
    pass


@dataclass(frozen=True, slots=True)
class ListProjects:
    pass


@dataclass(frozen=True, slots=True)
class ListTasks:
    pass


@dataclass(frozen=True, slots=True)
class ListPending:
    pass


@dataclass(frozen=True, slots=True)
class ShowProject:
    index: int


@dataclass(frozen=True, slots=True)
class ShowTask:
    index: int


@dataclass(frozen=True, slots=True)
class ProjectReport:
    index: int


@dataclass(frozen=True, slots=True)
class Status:
    pass


@dataclass(frozen=True, slots=True)
class Back:
    pass


@dataclass(frozen=True, slots=True)
class ProjectTasks:
    pass


@dataclass(frozen=True, slots=True)
class InvalidIndex:
    kind: IndexKind


@dataclass(frozen=True, slots=True)
class Unknown:
    text: str


Command = (
    Login
    | Logout
    | Help
    | ListProjects
    | ListTasks
    | ListPending
    | ShowProject
    | ShowTask
    | ProjectReport
    | Status
    | Back
    | ProjectTasks
    | InvalidIndex
    | Unknown
)

_KEYWORDS: dict[str, Command] = {
    "login": Login(),
    "logout": Logout(),
    "ajuda": Help(),
    "help": Help(),
    "projetos": ListProjects(),
    "tarefas": ListTasks(),
    "pendente": ListPending(),
    "status": Status(),
    "voltar": Back(),
    "tarefas projeto": ProjectTasks(),
}

_INDEXED: tuple[tuple[str, type[ShowProject | ShowTask | ProjectReport], IndexKind], ...] = (
    ("projeto ", ShowProject, "project"),
    ("tarefa ", ShowTask, "task"),
    ("relatorio ", ProjectReport, "project"),
)


def normalize(text: str) -> str:
    return text.strip().lower()


def _parse_index(raw: str) -> int | None:
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value >= 1 else None


def parse_command(text: str) -> Command:
    message = normalize(text)
    keyword = _KEYWORDS.get(message)
    if keyword is not None:
        return keyword
    for prefix, command_type, kind in _INDEXED:
        if message.startswith(prefix):
            index = _parse_index(message[len(prefix) :])
            if index is None:
                return InvalidIndex(kind=kind)
            return command_type(index=index)
    return Unknown(text=message)
