# src/todovex/auth/convert.py

"""
Framework <-> storage conversions.

Framework side: dataclasses, datetime instants, None for absent optionals.
Storage side: dicts keyed by wire names, epoch-millisecond integers,
absent optionals omitted (never an explicit null).
"""

from __future__ import annotations

from dataclasses import fields
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from ..core.models import (
    AccountType,
    AdapterAccount,
    AdapterAuthenticator,
    AdapterSession,
    AdapterUser,
    VerificationToken,
)

T = TypeVar("T")

Doc = dict[str, Any]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _wire_name(f: Any) -> str:
    return f.metadata.get("wire") or _camel(f.name)


def to_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(round(dt.timestamp() * 1000))


def from_millis(ms: float) -> datetime:
    return datetime.fromtimestamp(float(ms) / 1000.0, tz=UTC)


def to_db(obj: Any, *, exclude: tuple[str, ...] = ()) -> Doc:
    doc: Doc = {}
    for f in fields(obj):
        if f.name in exclude:
            continue
        value = getattr(obj, f.name)
        if value is None:
            continue
        if isinstance(value, datetime):
            value = to_millis(value)
        elif isinstance(value, Enum):
            value = value.value
        doc[_wire_name(f)] = value
    return doc


def from_db(cls: type[T], doc: Doc) -> T:
    kwargs: dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        raw = doc.get(_wire_name(f))
        if raw is not None and f.metadata.get("instant"):
            raw = from_millis(raw)
        kwargs[f.name] = raw
    return cls(**kwargs)


def user_from_db(doc: Doc) -> AdapterUser:
    user = from_db(AdapterUser, doc)
    user.email_verified = None
    return user


def maybe_user_from_db(doc: Doc | None) -> AdapterUser | None:
    return None if doc is None else user_from_db(doc)


def session_from_db(doc: Doc) -> AdapterSession:
    return from_db(AdapterSession, doc)


def maybe_session_from_db(doc: Doc | None) -> AdapterSession | None:
    return None if doc is None else session_from_db(doc)


def account_from_db(doc: Doc) -> AdapterAccount:
    account = from_db(AdapterAccount, doc)
    account.type = AccountType(account.type)
    return account


def maybe_account_from_db(doc: Doc | None) -> AdapterAccount | None:
    return None if doc is None else account_from_db(doc)


def authenticator_from_db(doc: Doc) -> AdapterAuthenticator:
    return from_db(AdapterAuthenticator, doc)


def maybe_authenticator_from_db(doc: Doc | None) -> AdapterAuthenticator | None:
    return None if doc is None else authenticator_from_db(doc)


def verification_token_from_db(doc: Doc) -> VerificationToken:
    return from_db(VerificationToken, doc)


def maybe_verification_token_from_db(doc: Doc | None) -> VerificationToken | None:
    return None if doc is None else verification_token_from_db(doc)
