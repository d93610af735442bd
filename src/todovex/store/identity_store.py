# src/todovex/store/identity_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from ..errors import StoreError

logger = logging.getLogger(__name__)

Doc = dict[str, Any]


def _new_id() -> str:
    return uuid.uuid4().hex


def _strip_none(doc: Doc) -> Doc:
    return {k: v for k, v in doc.items() if v is not None}


class IdentityStore:
    """
    SQLite identity store: users, sessions, accounts, authenticators and
    verification tokens.

    Speaks storage documents: dicts keyed by wire names (``_id``, camelCase),
    instants as epoch milliseconds, absent optionals omitted.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "identity.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_users()
        except Exception:
            total = -1
        logger.info("IdentityStore ready db=%s users=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL,
                    name TEXT,
                    image TEXT
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email ON users(email);

                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    session_token TEXT NOT NULL,
                    expires INTEGER NOT NULL
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_token ON sessions(session_token);
                CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id);

                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    provider_account_id TEXT NOT NULL,
                    access_token TEXT,
                    expires_at REAL,
                    id_token TEXT,
                    scope TEXT,
                    token_type TEXT
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_accounts_provider
                    ON accounts(provider, provider_account_id);
                CREATE INDEX IF NOT EXISTS idx_accounts_user ON accounts(user_id);

                CREATE TABLE IF NOT EXISTS authenticators (
                    id TEXT PRIMARY KEY,
                    credential_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    provider_account_id TEXT NOT NULL,
                    credential_public_key TEXT NOT NULL,
                    counter INTEGER NOT NULL DEFAULT 0,
                    credential_device_type TEXT NOT NULL,
                    credential_backed_up INTEGER NOT NULL DEFAULT 0,
                    transports TEXT
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_authenticators_credential
                    ON authenticators(credential_id);
                CREATE INDEX IF NOT EXISTS idx_authenticators_user ON authenticators(user_id);

                CREATE TABLE IF NOT EXISTS verification_tokens (
                    id TEXT PRIMARY KEY,
                    identifier TEXT NOT NULL,
                    token TEXT NOT NULL,
                    expires INTEGER NOT NULL
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_verification_tokens
                    ON verification_tokens(identifier, token);
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _user_doc(row: sqlite3.Row) -> Doc:
        return _strip_none(
            {"_id": row["id"], "email": row["email"], "name": row["name"], "image": row["image"]}
        )

    @staticmethod
    def _session_doc(row: sqlite3.Row) -> Doc:
        return {
            "_id": row["id"],
            "userId": row["user_id"],
            "sessionToken": row["session_token"],
            "expires": int(row["expires"]),
        }

    @staticmethod
    def _account_doc(row: sqlite3.Row) -> Doc:
        expires_at = row["expires_at"]
        return _strip_none(
            {
                "_id": row["id"],
                "userId": row["user_id"],
                "type": row["type"],
                "provider": row["provider"],
                "providerAccountId": row["provider_account_id"],
                "access_token": row["access_token"],
                "expires_at": int(expires_at) if expires_at is not None else None,
                "id_token": row["id_token"],
                "scope": row["scope"],
                "token_type": row["token_type"],
            }
        )

    @staticmethod
    def _authenticator_doc(row: sqlite3.Row) -> Doc:
        return _strip_none(
            {
                "_id": row["id"],
                "credentialID": row["credential_id"],
                "userId": row["user_id"],
                "providerAccountId": row["provider_account_id"],
                "credentialPublicKey": row["credential_public_key"],
                "counter": int(row["counter"]),
                "credentialDeviceType": row["credential_device_type"],
                "credentialBackedUp": bool(row["credential_backed_up"]),
                "transports": row["transports"],
            }
        )

    @staticmethod
    def _verification_token_doc(row: sqlite3.Row) -> Doc:
        return {
            "identifier": row["identifier"],
            "token": row["token"],
            "expires": int(row["expires"]),
        }

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Row | None:
        conn = self._get_conn()
        try:
            return conn.execute(sql, params).fetchone()
        finally:
            conn.close()

    # ---- users ----

    def count_users(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM users").fetchone()
            return int(n)
        finally:
            conn.close()

    def create_user(self, user: Doc) -> str:
        email = str(user.get("email") or "").strip()
        if not email:
            raise ValueError("email is required")
        user_id = _new_id()
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO users(id, email, name, image) VALUES (?, ?, ?, ?)",
                (user_id, email, user.get("name"), user.get("image")),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("User created id=%s", user_id)
        return user_id

    def get_user(self, id: str) -> Doc | None:
        row = self._fetch_one("SELECT * FROM users WHERE id = ?", (id,))
        return self._user_doc(row) if row else None

    def get_user_by_email(self, email: str) -> Doc | None:
        row = self._fetch_one("SELECT * FROM users WHERE email = ?", (email,))
        return self._user_doc(row) if row else None

    def get_user_by_account(self, provider: str, provider_account_id: str) -> Doc | None:
        row = self._fetch_one(
            """
            SELECT u.*
            FROM accounts a
                JOIN users u ON u.id = a.user_id
            WHERE a.provider = ? AND a.provider_account_id = ?
            """,
            (provider, provider_account_id),
        )
        return self._user_doc(row) if row else None

    def update_user(self, user: Doc) -> Doc | None:
        user_id = user.get("_id")
        if not user_id:
            raise ValueError("user _id is required")

        sets: list[str] = []
        params: list[Any] = []
        for key in ("email", "name", "image"):
            if key in user:
                sets.append(f"{key} = ?")
                params.append(user[key])

        conn = self._get_conn()
        try:
            if sets:
                params.append(user_id)
                conn.execute(f"UPDATE users SET {', '.join(sets)} WHERE id = ?", params)
                conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._user_doc(row) if row else None
        finally:
            conn.close()

    def delete_user(self, id: str) -> Doc | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM sessions WHERE user_id = ?", (id,))
            conn.execute("DELETE FROM accounts WHERE user_id = ?", (id,))
            conn.execute("DELETE FROM authenticators WHERE user_id = ?", (id,))
            conn.execute("DELETE FROM users WHERE id = ?", (id,))
            conn.commit()
            logger.info("User deleted id=%s", id)
            return self._user_doc(row)
        finally:
            conn.close()

    # ---- accounts ----

    def link_account(self, account: Doc) -> str:
        account_id = _new_id()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO accounts(
                    id, user_id, type, provider, provider_account_id,
                    access_token, expires_at, id_token, scope, token_type
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account_id,
                    account["userId"],
                    account["type"],
                    account["provider"],
                    account["providerAccountId"],
                    account.get("access_token"),
                    account.get("expires_at"),
                    account.get("id_token"),
                    account.get("scope"),
                    account.get("token_type"),
                ),
            )
            conn.commit()
            return account_id
        finally:
            conn.close()

    def get_account(self, provider: str, provider_account_id: str) -> Doc | None:
        row = self._fetch_one(
            "SELECT * FROM accounts WHERE provider = ? AND provider_account_id = ?",
            (provider, provider_account_id),
        )
        return self._account_doc(row) if row else None

    def unlink_account(self, provider: str, provider_account_id: str) -> Doc | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM accounts WHERE provider = ? AND provider_account_id = ?",
                (provider, provider_account_id),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM accounts WHERE id = ?", (row["id"],))
            conn.commit()
            return self._account_doc(row)
        finally:
            conn.close()

    # ---- sessions ----

    def create_session(self, session: Doc) -> str:
        session_id = _new_id()
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO sessions(id, user_id, session_token, expires) VALUES (?, ?, ?, ?)",
                (session_id, session["userId"], session["sessionToken"], int(session["expires"])),
            )
            conn.commit()
            return session_id
        finally:
            conn.close()

    def get_session_and_user(self, session_token: str) -> Doc | None:
        conn = self._get_conn()
        try:
            srow = conn.execute(
                "SELECT * FROM sessions WHERE session_token = ?", (session_token,)
            ).fetchone()
            if srow is None:
                return None
            urow = conn.execute("SELECT * FROM users WHERE id = ?", (srow["user_id"],)).fetchone()
            if urow is None:
                logger.warning("Session %s references missing user %s", srow["id"], srow["user_id"])
                return None
            return {"session": self._session_doc(srow), "user": self._user_doc(urow)}
        finally:
            conn.close()

    def update_session(self, session: Doc) -> Doc | None:
        token = session.get("sessionToken")
        if not token:
            raise ValueError("sessionToken is required")

        sets: list[str] = []
        params: list[Any] = []
        if "expires" in session:
            sets.append("expires = ?")
            params.append(int(session["expires"]))
        if "userId" in session:
            sets.append("user_id = ?")
            params.append(session["userId"])

        conn = self._get_conn()
        try:
            if sets:
                params.append(token)
                conn.execute(f"UPDATE sessions SET {', '.join(sets)} WHERE session_token = ?", params)
                conn.commit()
            row = conn.execute("SELECT * FROM sessions WHERE session_token = ?", (token,)).fetchone()
            return self._session_doc(row) if row else None
        finally:
            conn.close()

    def delete_session(self, session_token: str) -> Doc | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM sessions WHERE session_token = ?", (session_token,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM sessions WHERE id = ?", (row["id"],))
            conn.commit()
            return self._session_doc(row)
        finally:
            conn.close()

    # ---- verification tokens ----

    def create_verification_token(self, verification_token: Doc) -> str:
        token_id = _new_id()
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO verification_tokens(id, identifier, token, expires) VALUES (?, ?, ?, ?)",
                (
                    token_id,
                    verification_token["identifier"],
                    verification_token["token"],
                    int(verification_token["expires"]),
                ),
            )
            conn.commit()
            return token_id
        finally:
            conn.close()

    def use_verification_token(self, identifier: str, token: str) -> Doc | None:
        """
        Read-and-delete in one write transaction: a token is returned at most once.
        """
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM verification_tokens WHERE identifier = ? AND token = ?",
                (identifier, token),
            ).fetchone()
            if row is None:
                conn.rollback()
                return None
            conn.execute("DELETE FROM verification_tokens WHERE id = ?", (row["id"],))
            conn.commit()
            return self._verification_token_doc(row)
        finally:
            conn.close()

    # ---- authenticators ----

    def create_authenticator(self, authenticator: Doc) -> str:
        auth_id = _new_id()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO authenticators(
                    id, credential_id, user_id, provider_account_id, credential_public_key,
                    counter, credential_device_type, credential_backed_up, transports
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    auth_id,
                    authenticator["credentialID"],
                    authenticator["userId"],
                    authenticator["providerAccountId"],
                    authenticator["credentialPublicKey"],
                    int(authenticator.get("counter") or 0),
                    authenticator["credentialDeviceType"],
                    1 if authenticator.get("credentialBackedUp") else 0,
                    authenticator.get("transports"),
                ),
            )
            conn.commit()
            return auth_id
        finally:
            conn.close()

    def get_authenticator(self, credential_id: str) -> Doc | None:
        row = self._fetch_one("SELECT * FROM authenticators WHERE credential_id = ?", (credential_id,))
        return self._authenticator_doc(row) if row else None

    def list_authenticators_by_user_id(self, user_id: str) -> list[Doc]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM authenticators WHERE user_id = ? ORDER BY rowid ASC", (user_id,)
            ).fetchall()
            return [self._authenticator_doc(r) for r in rows]
        finally:
            conn.close()

    def update_authenticator_counter(self, credential_id: str, new_counter: int) -> Doc:
        """
        Signature-counter update with replay protection: the new value must be
        strictly greater than the stored one. Zero on both sides means the
        authenticator does not implement a counter and is accepted.
        """
        new_counter = int(new_counter)
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM authenticators WHERE credential_id = ?", (credential_id,)
            ).fetchone()
            if row is None:
                conn.rollback()
                raise StoreError(f"Authenticator not found: {credential_id}")

            current = int(row["counter"])
            if (current or new_counter) and new_counter <= current:
                conn.rollback()
                logger.warning(
                    "Rejected authenticator counter credential=%s stored=%s new=%s",
                    credential_id,
                    current,
                    new_counter,
                )
                raise StoreError(
                    f"Authenticator counter must increase (stored={current}, new={new_counter})"
                )

            conn.execute("UPDATE authenticators SET counter = ? WHERE id = ?", (new_counter, row["id"]))
            conn.commit()
            updated = conn.execute("SELECT * FROM authenticators WHERE id = ?", (row["id"],)).fetchone()
            return self._authenticator_doc(updated)
        finally:
            conn.close()
