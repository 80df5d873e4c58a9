from __future__ import annotations

from enum import StrEnum


class MessageKind(StrEnum):
    TEXT = "text"
    FILE = "file"
    EVENT = "event"
    SYSTEM = "system"


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class SubscriptionState(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    CANCELLED = "cancelled"


class ConversationStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class SendState(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
