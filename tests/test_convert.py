# tests/test_convert.py

from __future__ import annotations

from datetime import UTC, datetime

from todovex.auth.convert import (
    account_from_db,
    authenticator_from_db,
    from_db,
    maybe_user_from_db,
    session_from_db,
    to_db,
    to_millis,
    user_from_db,
    verification_token_from_db,
)
from todovex.core.models import (
    AccountType,
    AdapterAccount,
    AdapterAuthenticator,
    AdapterSession,
    AdapterUser,
    VerificationToken,
)

EXPIRES = datetime(2024, 6, 1, 8, 30, 15, 123000, tzinfo=UTC)


def test_to_db_omits_none_and_converts_dates() -> None:
    session = AdapterSession(session_token="tok", user_id="u1", expires=EXPIRES)
    doc = to_db(session)

    assert doc == {"sessionToken": "tok", "userId": "u1", "expires": to_millis(EXPIRES)}
    assert "_id" not in doc
    assert isinstance(doc["expires"], int)


def test_user_round_trip_turns_omitted_fields_back_into_none() -> None:
    user = AdapterUser(id="u1", email="ada@example.com", name=None, image="https://img/1.png")
    doc = to_db(user)

    assert doc == {"_id": "u1", "email": "ada@example.com", "image": "https://img/1.png"}
    assert user_from_db(doc) == user


def test_session_round_trip_restores_datetime() -> None:
    session = AdapterSession(id="s1", session_token="tok", user_id="u1", expires=EXPIRES)
    back = session_from_db(to_db(session))

    assert back == session
    assert back.expires.tzinfo is not None


def test_account_round_trip_keeps_provider_token_names() -> None:
    account = AdapterAccount(
        id="a1",
        user_id="u1",
        type=AccountType.OAUTH,
        provider="google",
        provider_account_id="g-123",
        access_token="at",
        expires_at=1717230000,
        token_type="bearer",
    )
    doc = to_db(account)

    assert doc["type"] == "oauth"
    assert doc["providerAccountId"] == "g-123"
    assert doc["access_token"] == "at"
    assert doc["expires_at"] == 1717230000
    assert "id_token" not in doc and "scope" not in doc

    back = account_from_db(doc)
    assert back == account
    assert back.type is AccountType.OAUTH


def test_authenticator_and_verification_token_round_trip() -> None:
    auth = AdapterAuthenticator(
        id="x1",
        credential_id="cred-1",
        user_id="u1",
        provider_account_id="pa-1",
        credential_public_key="pk",
        counter=3,
        credential_device_type="singleDevice",
        credential_backed_up=False,
        transports="usb,nfc",
    )
    doc = to_db(auth)
    assert doc["credentialID"] == "cred-1"
    assert authenticator_from_db(doc) == auth
    assert auth.transport_list == ["usb", "nfc"]

    vt = VerificationToken(identifier="ada@example.com", token="t0k", expires=EXPIRES)
    assert verification_token_from_db(to_db(vt)) == vt


def test_naive_datetime_is_treated_as_utc() -> None:
    naive = datetime(2024, 1, 1, 0, 0, 0)
    assert to_millis(naive) == 1704067200000


def test_from_db_ignores_unknown_keys_and_user_email_verified_is_none() -> None:
    doc = {"_id": "u1", "email": "a@b.c", "_creationTime": 1.0, "emailVerified": 1704067200000}
    user = user_from_db(doc)
    assert user.id == "u1"
    assert user.email_verified is None
    assert from_db(AdapterUser, doc).email_verified == datetime(2024, 1, 1, tzinfo=UTC)
    assert maybe_user_from_db(None) is None
