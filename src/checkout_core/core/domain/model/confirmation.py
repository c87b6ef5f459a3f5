from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit


class ConfirmationType(str, Enum):
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_ERROR = "PAYMENT_ERROR"
    PAYMENT_CANCEL = "PAYMENT_CANCEL"


class ConfirmationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    ERROR_REPORTED = "error_reported"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ConfirmationEnvelope:
    """A message as it arrived on the channel, before anything is trusted."""

    origin: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class ConfirmationMessage:
    type: ConfirmationType
    message: str | None = None

    @staticmethod
    def from_payload(payload: Any) -> "ConfirmationMessage | None":
        if not isinstance(payload, Mapping):
            return None
        try:
            kind = ConfirmationType(payload.get("type"))
        except ValueError:
            return None
        message = payload.get("message")
        return ConfirmationMessage(kind, message if isinstance(message, str) else None)


_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_origin(raw: str | None) -> str | None:
    """``scheme://host[:port]`` in lower case, default ports dropped."""
    if not raw:
        return None
    try:
        parts = urlsplit(raw.strip())
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = parts.hostname
    if scheme not in _DEFAULT_PORTS or not host:
        return None
    if port is None or port == _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


@dataclass(frozen=True)
class OriginAllowList:
    origins: frozenset[str]

    @staticmethod
    def of(origins: Iterable[str]) -> "OriginAllowList":
        normalized = (normalize_origin(o) for o in origins)
        return OriginAllowList(frozenset(o for o in normalized if o))

    def allows(self, origin: str | None) -> bool:
        normalized = normalize_origin(origin)
        return normalized is not None and normalized in self.origins
