"""Utilities for emitting Kubernetes events on source Secrets."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_RSIP_CONFLICT,
    EVENT_REASON_RSIP_CREATE_FAILED,
    EVENT_REASON_RSIP_CREATED,
    EVENT_REASON_RSIP_UPDATE_FAILED,
    EVENT_REASON_RSIP_UPDATED,
)


def emit_event(
    body: Any,
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Body of the object the event is about
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_rsip_created(body: Any, namespace: str, name: str) -> None:
    """Emit RSIP created event."""
    emit_event(body, EVENT_REASON_RSIP_CREATED, f"created RSIP {namespace}/{name}")


def emit_rsip_updated(body: Any, namespace: str, name: str) -> None:
    """Emit RSIP updated event."""
    emit_event(body, EVENT_REASON_RSIP_UPDATED, f"updated RSIP {namespace}/{name}")


def emit_rsip_create_failed(body: Any, namespace: str, name: str, error: str) -> None:
    """Emit RSIP create failed event."""
    emit_event(
        body,
        EVENT_REASON_RSIP_CREATE_FAILED,
        f"failed to create RSIP {namespace}/{name}: {error}",
        type_="Warning",
    )


def emit_rsip_update_failed(body: Any, namespace: str, name: str, error: str) -> None:
    """Emit RSIP update failed event."""
    emit_event(
        body,
        EVENT_REASON_RSIP_UPDATE_FAILED,
        f"failed to update RSIP {namespace}/{name}: {error}",
        type_="Warning",
    )


def emit_rsip_conflict(body: Any, message: str) -> None:
    """Emit RSIP name collision event."""
    emit_event(body, EVENT_REASON_RSIP_CONFLICT, message, type_="Warning")
