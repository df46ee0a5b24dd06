from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.activity import ActivityRecorder
from servicedesk.domain.notifications.dispatcher import NotificationDispatcher
from servicedesk.infra.automation import AutomationClient
from servicedesk.infra.communication import NoopWhatsAppAdapter, TwilioWhatsAppAdapter, resolve_whatsapp_adapter
from servicedesk.infra.email import EmailAdapter, NoopEmailAdapter, resolve_email_adapter
from servicedesk.infra.metrics import Metrics, configure_metrics
from servicedesk.infra.push import ExpoPushAdapter, NoopPushAdapter, resolve_push_adapter
from servicedesk.infra.realtime import EventBroadcaster


@dataclass
class AppServices:
    """Typed container for runtime services stored on `app.state.services`."""

    http_client: httpx.AsyncClient | None
    session_factory: Callable[[], AsyncSession]
    email_adapter: EmailAdapter | NoopEmailAdapter
    whatsapp_adapter: TwilioWhatsAppAdapter | NoopWhatsAppAdapter
    push_adapter: ExpoPushAdapter | NoopPushAdapter
    automation: AutomationClient
    audit: ActivityRecorder
    dispatcher: NotificationDispatcher
    broadcaster: EventBroadcaster
    metrics: Metrics


def build_app_services(
    app_settings,
    *,
    session_factory: Callable[[], AsyncSession],
    http_client: httpx.AsyncClient | None = None,
    metrics: Metrics | None = None,
    email_adapter=None,
    whatsapp_adapter=None,
    push_adapter=None,
    automation: AutomationClient | None = None,
    audit: ActivityRecorder | None = None,
    broadcaster: EventBroadcaster | None = None,
) -> AppServices:
    metrics_client = metrics or configure_metrics(app_settings.metrics_enabled)
    email = email_adapter or resolve_email_adapter(app_settings, http_client)
    whatsapp = whatsapp_adapter or resolve_whatsapp_adapter(app_settings, http_client)
    recorder = audit or ActivityRecorder(session_factory)
    return AppServices(
        http_client=http_client,
        session_factory=session_factory,
        email_adapter=email,
        whatsapp_adapter=whatsapp,
        push_adapter=push_adapter or resolve_push_adapter(app_settings, http_client),
        automation=automation or AutomationClient(http_client),
        audit=recorder,
        dispatcher=NotificationDispatcher(email, whatsapp, recorder),
        broadcaster=broadcaster or EventBroadcaster(),
        metrics=metrics_client,
    )


def resolve_services(container_like: Any) -> AppServices | None:
    if isinstance(container_like, AppServices):
        return container_like
    if container_like is None:
        return None
    state = getattr(container_like, "state", container_like)
    return getattr(state, "services", None)
