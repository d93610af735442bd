# tests/test_identity_store.py

from __future__ import annotations

import sqlite3

import pytest

from todovex.errors import StoreError
from todovex.store.identity_store import IdentityStore


def _authenticator(user_id: str, counter: int = 0) -> dict:
    return {
        "credentialID": "cred-1",
        "userId": user_id,
        "providerAccountId": "pa-1",
        "credentialPublicKey": "pk",
        "counter": counter,
        "credentialDeviceType": "singleDevice",
        "credentialBackedUp": True,
    }


def test_email_is_unique(identity_store: IdentityStore) -> None:
    identity_store.create_user({"email": "ada@example.com"})
    with pytest.raises(sqlite3.IntegrityError):
        identity_store.create_user({"email": "ada@example.com"})


def test_delete_user_cascades(identity_store: IdentityStore) -> None:
    uid = identity_store.create_user({"email": "ada@example.com", "name": "Ada"})
    identity_store.create_session({"userId": uid, "sessionToken": "tok", "expires": 1})
    identity_store.link_account(
        {"userId": uid, "type": "oauth", "provider": "github", "providerAccountId": "gh-1"}
    )
    identity_store.create_authenticator(_authenticator(uid))

    deleted = identity_store.delete_user(uid)
    assert deleted == {"_id": uid, "email": "ada@example.com", "name": "Ada"}

    assert identity_store.get_session_and_user("tok") is None
    assert identity_store.get_account("github", "gh-1") is None
    assert identity_store.list_authenticators_by_user_id(uid) == []
    assert identity_store.delete_user(uid) is None


def test_session_without_user_is_not_found(identity_store: IdentityStore) -> None:
    identity_store.create_session({"userId": "ghost", "sessionToken": "orphan", "expires": 1})
    assert identity_store.get_session_and_user("orphan") is None


def test_verification_token_is_read_and_deleted(identity_store: IdentityStore) -> None:
    identity_store.create_verification_token({"identifier": "a@b.c", "token": "t1", "expires": 5})

    first = identity_store.use_verification_token("a@b.c", "t1")
    second = identity_store.use_verification_token("a@b.c", "t1")

    assert first == {"identifier": "a@b.c", "token": "t1", "expires": 5}
    assert second is None


def test_authenticator_counter_must_increase(identity_store: IdentityStore) -> None:
    uid = identity_store.create_user({"email": "ada@example.com"})
    identity_store.create_authenticator(_authenticator(uid, counter=5))

    updated = identity_store.update_authenticator_counter("cred-1", 6)
    assert updated["counter"] == 6
    assert updated["credentialBackedUp"] is True

    with pytest.raises(StoreError):
        identity_store.update_authenticator_counter("cred-1", 6)
    with pytest.raises(StoreError):
        identity_store.update_authenticator_counter("cred-1", 2)
    assert identity_store.get_authenticator("cred-1")["counter"] == 6


def test_zero_counter_authenticator_is_accepted(identity_store: IdentityStore) -> None:
    uid = identity_store.create_user({"email": "ada@example.com"})
    identity_store.create_authenticator(_authenticator(uid, counter=0))

    assert identity_store.update_authenticator_counter("cred-1", 0)["counter"] == 0


def test_update_counter_for_unknown_credential_fails(identity_store: IdentityStore) -> None:
    with pytest.raises(StoreError):
        identity_store.update_authenticator_counter("missing", 1)
