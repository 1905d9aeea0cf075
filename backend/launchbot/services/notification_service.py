"""Proactive WhatsApp notifications.

Users who enable the chatbot in their settings get a message for each new
project or task activity in their projects, and optionally a morning digest of
upcoming deadlines.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from launchbot.chatbot.errors import MessageDeliveryError
from launchbot.chatbot.formatting import format_date, format_datetime
from launchbot.chatbot.session import utc_now
from launchbot.core.logging import bind_phone

if TYPE_CHECKING:
    from launchbot.services.project_directory import (
        ActivityRecord,
        ProjectDirectory,
        ProjectRecord,
        TaskRecord,
        UserRecord,
    )
    from launchbot.whatsapp.adapter import MessageSender

logger = logging.getLogger(__name__)

DEADLINE_HORIZON = timedelta(days=3)
MAX_SUMMARY_TASKS = 5
MAX_SUMMARY_PROJECTS = 3


@dataclass(slots=True)
class NotificationPreference:
    user_id: int
    phone_number: str
    project_updates: bool = True
    task_updates: bool = True
    daily_summary: bool = False
    last_notified: datetime = field(default_factory=utc_now)
    last_summary_date: date | None = None

    def wants(self, activity: ActivityRecord) -> bool:
        if activity.subject == "projeto":
            return self.project_updates
        if activity.subject == "tarefa":
            return self.task_updates
        return False


_UPDATABLE_FIELDS = frozenset(f.name for f in fields(NotificationPreference)) - {"user_id"}


class NotificationPreferenceStore:
    """In-memory preferences keyed by user id."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._prefs: dict[int, NotificationPreference] = {}
        self._clock = clock

    def add(
        self,
        user_id: int,
        phone_number: str,
        *,
        project_updates: bool = True,
        task_updates: bool = True,
        daily_summary: bool = False,
    ) -> NotificationPreference:
        pref = NotificationPreference(
            user_id=user_id,
            phone_number=phone_number,
            project_updates=project_updates,
            task_updates=task_updates,
            daily_summary=daily_summary,
            last_notified=self._clock(),
        )
        self._prefs[user_id] = pref
        return pref

    def remove(self, user_id: int) -> bool:
        return self._prefs.pop(user_id, None) is not None

    def update(self, user_id: int, /, **changes: Any) -> bool:
        pref = self._prefs.get(user_id)
        if pref is None:
            return False
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown notification preference fields: {sorted(unknown)}")
        for name, value in changes.items():
            setattr(pref, name, value)
        return True

    def get(self, user_id: int) -> NotificationPreference | None:
        return self._prefs.get(user_id)

    def all(self) -> list[NotificationPreference]:
        return list(self._prefs.values())

    def __len__(self) -> int:
        return len(self._prefs)


def format_notification_message(activity: ActivityRecord, tz: ZoneInfo | None = None) -> str:
    if activity.subject == "projeto":
        headline = f"Um projeto foi {activity.action}:"
    elif activity.subject == "tarefa":
        headline = f"Uma tarefa foi {activity.action}:"
    else:
        headline = f"Atualização: {activity.action} {activity.subject}"

    lines = ["*Notificação do LaunchRocket*", "", headline]
    if activity.details:
        lines.append(activity.details)
    created_at = activity.created_at.astimezone(tz) if tz else activity.created_at
    lines += ["", f"Data: {format_datetime(created_at)}"]
    return "\n".join(lines)


def upcoming_pending_tasks(tasks: Sequence[TaskRecord], now: datetime) -> list[TaskRecord]:
    """Non-completed tasks due within the deadline horizon (overdue included)."""
    due = [
        t
        for t in tasks
        if t.status != "completed" and t.due_date is not None and t.due_date - now < DEADLINE_HORIZON
    ]
    return sorted(due, key=lambda t: t.due_date)  # type: ignore[arg-type,return-value]


def format_daily_summary(
    user: UserRecord,
    tasks: Sequence[TaskRecord],
    projects: Sequence[ProjectRecord],
    now: datetime,
) -> str:
    lines = [
        f"*Bom dia, {user.name}!*",
        "",
        f"Aqui está seu resumo diário do LaunchRocket de {format_date(now)}:",
        "",
    ]

    pending = upcoming_pending_tasks(tasks, now)
    if pending:
        lines.append(f"*Tarefas pendentes com prazo próximo (3 dias):* {len(pending)}")
        lines += [
            f"{i}. *{t.name}* - Prazo: {format_date(t.due_date, tz=now.tzinfo)}"
            for i, t in enumerate(pending[:MAX_SUMMARY_TASKS], start=1)
        ]
        if len(pending) > MAX_SUMMARY_TASKS:
            lines.append(f"... e mais {len(pending) - MAX_SUMMARY_TASKS} tarefas pendentes")
        lines.append("")
    else:
        lines += ["*Você não tem tarefas pendentes com prazo próximo. Bom trabalho!*", ""]

    if projects:
        lines.append(f"*Seus projetos:* {len(projects)}")
        lines += [
            f"{i}. *{p.name}* - Progresso: {p.progress}%"
            for i, p in enumerate(projects[:MAX_SUMMARY_PROJECTS], start=1)
        ]
        if len(projects) > MAX_SUMMARY_PROJECTS:
            lines.append(f"... e mais {len(projects) - MAX_SUMMARY_PROJECTS} projetos")
    return "\n".join(lines).rstrip("\n")


class NotificationService:
    def __init__(
        self,
        directory: ProjectDirectory,
        sender: MessageSender,
        preferences: NotificationPreferenceStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        summary_hour: int = 8,
        summary_window_minutes: int = 10,
        timezone: str = "America/Sao_Paulo",
    ) -> None:
        self._directory = directory
        self._sender = sender
        self._preferences = preferences
        self._clock = clock
        self.summary_hour = summary_hour
        self.summary_window_minutes = summary_window_minutes
        self.tz = ZoneInfo(timezone)
        # (user_id, activity_id) pairs already delivered
        self._notified: set[tuple[int, int]] = set()

    async def _send(self, phone_number: str, message: str) -> bool:
        try:
            await asyncio.to_thread(self._sender.send, phone_number, message)
        except MessageDeliveryError as e:
            logger.error("Notification delivery failed: %s", e)
            return False
        return True

    async def run_once(self) -> None:
        """One scheduler tick: activity notifications, then the daily digest."""
        sent = await self.process_notifications()
        digests = await self.process_daily_summaries()
        if sent or digests:
            logger.info("Notification tick sent %d notifications and %d digests", sent, digests)

    async def process_notifications(self) -> int:
        sent = 0
        for pref in self._preferences.all():
            with bind_phone(pref.phone_number):
                try:
                    sent += await self._notify_user(pref)
                except Exception:
                    logger.exception("Failed to process notifications for user %s", pref.user_id)
        return sent

    async def _notify_user(self, pref: NotificationPreference) -> int:
        started = self._clock()
        projects = await self._directory.get_projects_by_user(pref.user_id)
        sent = 0
        # Activities the next tick can still see through the created_at filter
        recent_ids: set[int] = set()
        for project in projects:
            activities = await self._directory.get_activities_by_project(project.id)
            recent_ids.update(a.id for a in activities if a.created_at > started)
            fresh = [
                a
                for a in activities
                if (pref.user_id, a.id) not in self._notified and a.created_at > pref.last_notified
            ]
            # Oldest first so the chat reads chronologically
            for activity in sorted(fresh, key=lambda a: a.created_at):
                if not pref.wants(activity):
                    continue
                self._notified.add((pref.user_id, activity.id))
                if await self._send(pref.phone_number, format_notification_message(activity, self.tz)):
                    logger.info(
                        "Notified user %s about %s %s", pref.user_id, activity.action, activity.subject
                    )
                    sent += 1
        pref.last_notified = started
        self._notified = {
            (user_id, activity_id)
            for user_id, activity_id in self._notified
            if user_id != pref.user_id or activity_id in recent_ids
        }
        return sent

    def in_summary_window(self, now: datetime) -> bool:
        local = now.astimezone(self.tz)
        return local.hour == self.summary_hour and local.minute < self.summary_window_minutes

    async def process_daily_summaries(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        if not self.in_summary_window(now):
            return 0
        today = now.astimezone(self.tz).date()
        sent = 0
        for pref in self._preferences.all():
            if not pref.daily_summary or pref.last_summary_date == today:
                continue
            with bind_phone(pref.phone_number):
                try:
                    if await self._send_summary(pref, now):
                        pref.last_summary_date = today
                        sent += 1
                except Exception:
                    logger.exception("Failed to build daily summary for user %s", pref.user_id)
        return sent

    async def _send_summary(self, pref: NotificationPreference, now: datetime) -> bool:
        user, tasks, projects = await asyncio.gather(
            self._directory.get_user(pref.user_id),
            self._directory.get_tasks_by_user(pref.user_id),
            self._directory.get_projects_by_user(pref.user_id),
        )
        if user is None:
            logger.warning("Daily summary skipped, user %s not found", pref.user_id)
            return False
        message = format_daily_summary(user, tasks, projects, now.astimezone(self.tz))
        return await self._send(pref.phone_number, message)
