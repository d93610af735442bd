# src/todovex/store/rpc.py

"""
Identity store RPC clients.

Both clients expose the same named functions ("authAdapter:getUser", ...):
- HttpStoreClient calls a remote deployment over the Convex HTTP function API,
- LocalStoreClient serves them from the SQLite IdentityStore in-process.

The caller (StoreAuthAdapter) injects the shared secret into every argument
object; LocalStoreClient is the side that verifies it.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import sqlite3
from collections.abc import Callable
from typing import Any

import httpx

from ..core.ports import StoreArgs
from ..errors import StoreError
from .identity_store import IdentityStore

logger = logging.getLogger(__name__)

AUTH_PREFIX = "authAdapter:"


class HttpStoreClient:
    """
    Remote store client.

    POST {base_url}/api/query|mutation with {"path", "args", "format": "json"};
    the deployment answers {"status": "success", "value": ...} or
    {"status": "error", "errorMessage": ...}.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | httpx.Timeout = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("store base_url is required")
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def query(self, name: str, args: StoreArgs) -> Any:
        return await self._call("query", name, args)

    async def mutation(self, name: str, args: StoreArgs) -> Any:
        return await self._call("mutation", name, args)

    async def _call(self, kind: str, name: str, args: StoreArgs) -> Any:
        url = f"{self._base_url}/api/{kind}"
        try:
            resp = await self._http.post(url, json={"path": name, "args": args, "format": "json"})
        except httpx.HTTPError as e:
            raise StoreError(f"Store {kind} {name} failed: {e.__class__.__name__}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400:
            detail = body.get("errorMessage") if isinstance(body, dict) else None
            raise StoreError(
                f"Store {kind} {name} failed with HTTP {resp.status_code}: {detail or resp.text[:200]}"
            )

        if not isinstance(body, dict):
            raise StoreError(f"Store {kind} {name} returned a non-JSON body")

        if body.get("status") != "success":
            raise StoreError(str(body.get("errorMessage") or f"Store {kind} {name} failed"))

        logger.debug("Store %s %s ok", kind, name)
        return body.get("value")


class LocalStoreClient:
    """In-process store: same function names, served by IdentityStore."""

    def __init__(self, store: IdentityStore, *, secret: str) -> None:
        if not secret:
            raise ValueError("secret is required")
        self._store = store
        self._secret = secret
        s = store
        self._queries: dict[str, Callable[[StoreArgs], Any]] = {
            "getUser": lambda a: s.get_user(a["id"]),
            "getUserByEmail": lambda a: s.get_user_by_email(a["email"]),
            "getUserByAccount": lambda a: s.get_user_by_account(a["provider"], a["providerAccountId"]),
            "getAccount": lambda a: s.get_account(a["provider"], a["providerAccountId"]),
            "getSessionAndUser": lambda a: s.get_session_and_user(a["sessionToken"]),
            "getAuthenticator": lambda a: s.get_authenticator(a["credentialID"]),
            "listAuthenticatorsByUserId": lambda a: s.list_authenticators_by_user_id(a["userId"]),
        }
        self._mutations: dict[str, Callable[[StoreArgs], Any]] = {
            "createUser": lambda a: s.create_user(a["user"]),
            "updateUser": lambda a: s.update_user(a["user"]),
            "deleteUser": lambda a: s.delete_user(a["id"]),
            "linkAccount": lambda a: s.link_account(a["account"]),
            "unlinkAccount": lambda a: s.unlink_account(a["provider"], a["providerAccountId"]),
            "createSession": lambda a: s.create_session(a["session"]),
            "updateSession": lambda a: s.update_session(a["session"]),
            "deleteSession": lambda a: s.delete_session(a["sessionToken"]),
            "createVerificationToken": lambda a: s.create_verification_token(a["verificationToken"]),
            "useVerificationToken": lambda a: s.use_verification_token(a["identifier"], a["token"]),
            "createAuthenticator": lambda a: s.create_authenticator(a["authenticator"]),
            "updateAuthenticatorCounter": lambda a: s.update_authenticator_counter(
                a["credentialID"], a["newCounter"]
            ),
        }

    async def aclose(self) -> None:
        self._store.close()

    async def query(self, name: str, args: StoreArgs) -> Any:
        return await self._dispatch(self._queries, "query", name, args)

    async def mutation(self, name: str, args: StoreArgs) -> Any:
        return await self._dispatch(self._mutations, "mutation", name, args)

    def _check_secret(self, args: StoreArgs) -> None:
        given = args.get("secret")
        if not isinstance(given, str) or not hmac.compare_digest(given, self._secret):
            raise StoreError("Adapter API secret doesn't match")

    async def _dispatch(
        self,
        table: dict[str, Callable[[StoreArgs], Any]],
        kind: str,
        name: str,
        args: StoreArgs,
    ) -> Any:
        if not name.startswith(AUTH_PREFIX) or name[len(AUTH_PREFIX):] not in table:
            raise StoreError(f"Unknown store {kind}: {name}")
        self._check_secret(args)

        fn = table[name[len(AUTH_PREFIX):]]
        try:
            return await asyncio.to_thread(fn, args)
        except KeyError as e:
            raise StoreError(f"Store {kind} {name}: missing argument {e}") from e
        except (sqlite3.Error, ValueError) as e:
            raise StoreError(f"Store {kind} {name} failed: {e}") from e
