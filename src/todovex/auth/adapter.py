# src/todovex/auth/adapter.py

"""
Auth adapter.

Implements the operations an authentication framework expects (users,
accounts, sessions, verification tokens, WebAuthn authenticators) on top of
the identity store's named functions.

- Every store call carries the shared adapter secret.
- "Not found" is a normal result (None), never an exception.
- Store and transport faults propagate (StoreError); nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from ..core.models import (
    AdapterAccount,
    AdapterAuthenticator,
    AdapterSession,
    AdapterUser,
    VerificationToken,
)
from ..core.ports import StoreArgs, StoreClient
from ..errors import ConfigurationError
from .convert import (
    authenticator_from_db,
    maybe_account_from_db,
    maybe_authenticator_from_db,
    maybe_session_from_db,
    maybe_user_from_db,
    maybe_verification_token_from_db,
    session_from_db,
    to_db,
    to_millis,
    user_from_db,
)

logger = logging.getLogger(__name__)

# Applied when update_session is called without an expiry.
DEFAULT_SESSION_EXTENSION = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StoreAuthAdapter:
    def __init__(
        self,
        store: StoreClient,
        *,
        secret: str | None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret or not secret.strip():
            raise ConfigurationError("Missing auth adapter secret (TODOVEX_AUTH_ADAPTER_SECRET)")
        self._store = store
        self._secret = secret
        self._clock = clock

    # ---- helpers ----

    def _with_secret(self, args: StoreArgs) -> StoreArgs:
        return {**args, "secret": self._secret}

    async def _query(self, name: str, args: StoreArgs) -> Any:
        return await self._store.query(f"authAdapter:{name}", self._with_secret(args))

    async def _mutation(self, name: str, args: StoreArgs) -> Any:
        return await self._store.mutation(f"authAdapter:{name}", self._with_secret(args))

    # ---- users ----

    async def create_user(self, user: AdapterUser) -> AdapterUser:
        user_id = await self._mutation(
            "createUser", {"user": to_db(user, exclude=("id", "email_verified"))}
        )
        logger.info("Created user id=%s", user_id)
        return replace(user, id=user_id)

    async def get_user(self, id: str) -> AdapterUser | None:
        return maybe_user_from_db(await self._query("getUser", {"id": id}))

    async def get_user_by_email(self, email: str) -> AdapterUser | None:
        return maybe_user_from_db(await self._query("getUserByEmail", {"email": email}))

    async def get_user_by_account(self, provider: str, provider_account_id: str) -> AdapterUser | None:
        return maybe_user_from_db(
            await self._query(
                "getUserByAccount", {"provider": provider, "providerAccountId": provider_account_id}
            )
        )

    async def update_user(self, user: AdapterUser) -> AdapterUser:
        await self._mutation("updateUser", {"user": to_db(user, exclude=("email_verified",))})
        return user

    async def delete_user(self, id: str) -> AdapterUser | None:
        return maybe_user_from_db(await self._mutation("deleteUser", {"id": id}))

    # ---- accounts ----

    async def link_account(self, account: AdapterAccount) -> None:
        await self._mutation("linkAccount", {"account": to_db(account, exclude=("id",))})

    async def unlink_account(self, provider: str, provider_account_id: str) -> None:
        await self._mutation(
            "unlinkAccount", {"provider": provider, "providerAccountId": provider_account_id}
        )

    async def get_account(self, provider_account_id: str, provider: str) -> AdapterAccount | None:
        return maybe_account_from_db(
            await self._query(
                "getAccount", {"provider": provider, "providerAccountId": provider_account_id}
            )
        )

    # ---- sessions ----

    async def create_session(self, session: AdapterSession) -> AdapterSession:
        session_id = await self._mutation("createSession", {"session": to_db(session, exclude=("id",))})
        return replace(session, id=session_id)

    async def get_session_and_user(self, session_token: str) -> tuple[AdapterSession, AdapterUser] | None:
        result = await self._query("getSessionAndUser", {"sessionToken": session_token})
        if not result:
            return None
        session_doc = result.get("session")
        user_doc = result.get("user")
        if not session_doc or not user_doc:
            return None
        return session_from_db(session_doc), user_from_db(user_doc)

    async def update_session(
        self,
        session_token: str,
        *,
        expires: datetime | None = None,
    ) -> AdapterSession | None:
        """
        Update a session's expiry. With no expiry given, the session is
        extended to now + 24h rather than left unchanged.
        """
        if expires is None:
            expires_ms = to_millis(self._clock() + DEFAULT_SESSION_EXTENSION)
        else:
            expires_ms = to_millis(expires)
        updated = await self._mutation(
            "updateSession", {"session": {"sessionToken": session_token, "expires": expires_ms}}
        )
        return maybe_session_from_db(updated)

    async def delete_session(self, session_token: str) -> AdapterSession | None:
        return maybe_session_from_db(await self._mutation("deleteSession", {"sessionToken": session_token}))

    # ---- verification tokens ----

    async def create_verification_token(self, verification_token: VerificationToken) -> VerificationToken:
        await self._mutation("createVerificationToken", {"verificationToken": to_db(verification_token)})
        return verification_token

    async def use_verification_token(self, identifier: str, token: str) -> VerificationToken | None:
        return maybe_verification_token_from_db(
            await self._mutation("useVerificationToken", {"identifier": identifier, "token": token})
        )

    # ---- authenticators ----

    async def create_authenticator(self, authenticator: AdapterAuthenticator) -> AdapterAuthenticator:
        await self._mutation("createAuthenticator", {"authenticator": to_db(authenticator, exclude=("id",))})
        return authenticator

    async def get_authenticator(self, credential_id: str) -> AdapterAuthenticator | None:
        return maybe_authenticator_from_db(
            await self._query("getAuthenticator", {"credentialID": credential_id})
        )

    async def list_authenticators_by_user_id(self, user_id: str) -> list[AdapterAuthenticator]:
        docs = await self._query("listAuthenticatorsByUserId", {"userId": user_id})
        return [authenticator_from_db(d) for d in docs or [] if "credentialID" in d]

    async def update_authenticator_counter(self, credential_id: str, new_counter: int) -> AdapterAuthenticator:
        doc = await self._mutation(
            "updateAuthenticatorCounter", {"credentialID": credential_id, "newCounter": int(new_counter)}
        )
        return authenticator_from_db(doc)
