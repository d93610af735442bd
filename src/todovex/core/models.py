# src/todovex/core/models.py

"""
Domain records.

Identity records are the shapes an auth framework works with: snake_case
fields, datetime instants and None for absent optionals. Each field carries
the name it has in a storage document (``wire``) and whether it is an instant
(``instant``) so auth/convert.py can translate without per-type code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


def wire(name: str | None = None, *, instant: bool = False, default: Any = None) -> Any:
    return field(default=default, metadata={"wire": name, "instant": instant})


def required(name: str | None = None, *, instant: bool = False) -> Any:
    return field(metadata={"wire": name, "instant": instant})


class AccountType(StrEnum):
    EMAIL = "email"
    OIDC = "oidc"
    OAUTH = "oauth"
    WEBAUTHN = "webauthn"


class OwnerKind(StrEnum):
    USER = "user"
    SYSTEM = "system"


# ---- identity ----


@dataclass(slots=True, kw_only=True)
class AdapterUser:
    id: str | None = wire("_id")
    email: str = required()
    name: str | None = wire()
    image: str | None = wire()
    # Not tracked after creation; always None when read back.
    email_verified: datetime | None = wire(instant=True)


@dataclass(slots=True, kw_only=True)
class AdapterSession:
    id: str | None = wire("_id")
    session_token: str = required()
    user_id: str = required()
    expires: datetime = required(instant=True)


@dataclass(slots=True, kw_only=True)
class AdapterAccount:
    id: str | None = wire("_id")
    user_id: str = required()
    type: AccountType = required()
    provider: str = required()
    provider_account_id: str = required()
    # OAuth token fields keep the provider's snake_case names on the wire.
    access_token: str | None = wire("access_token")
    expires_at: int | None = wire("expires_at")
    id_token: str | None = wire("id_token")
    scope: str | None = wire("scope")
    token_type: str | None = wire("token_type")


@dataclass(slots=True, kw_only=True)
class AdapterAuthenticator:
    id: str | None = wire("_id")
    credential_id: str = required("credentialID")
    user_id: str = required()
    provider_account_id: str = required()
    credential_public_key: str = required()
    counter: int = required()
    credential_device_type: str = required()
    credential_backed_up: bool = required()
    # Comma-separated transport names ("usb,nfc"), kept as one string in storage.
    transports: str | None = wire()

    @property
    def transport_list(self) -> list[str]:
        return [t.strip() for t in (self.transports or "").split(",") if t.strip()]


@dataclass(slots=True, kw_only=True)
class VerificationToken:
    identifier: str = required()
    token: str = required()
    expires: datetime = required(instant=True)


# ---- tasks ----


@dataclass(slots=True, kw_only=True)
class Project:
    id: str
    name: str
    type: OwnerKind = OwnerKind.USER
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class Label:
    id: str
    name: str
    type: OwnerKind = OwnerKind.USER
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class Todo:
    id: str
    user_id: str
    project_id: str
    label_id: str
    task_name: str
    due_date: int  # epoch milliseconds
    description: str | None = None
    priority: float | None = None
    is_completed: bool = False
    embedding: list[float] | None = field(default=None, repr=False)

    def prompt_view(self) -> dict[str, str]:
        return {"taskName": self.task_name, "description": self.description or ""}


@dataclass(slots=True, kw_only=True)
class SubTodo(Todo):
    parent_id: str
