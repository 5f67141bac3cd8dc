from __future__ import annotations

import secrets
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import asdict, replace
from pathlib import Path

from starlette.requests import Request

from auth.expiration import parse_expiration
from auth.json_file import JsonFile
from auth.models import LoginResult, Session, UserRecord

SESSION_COOKIE = "sessionToken"
USER_FIELDS = ("name", "email")

CurrentSessionFn = Callable[[Request], Awaitable[Session | None]]


class SessionStore(ABC):
    """Local users linked to a provider identity, plus their login sessions.

    Subclasses supply the record primitives; linking and session minting
    live here.
    """

    def __init__(self, *, clock=time.time) -> None:
        self._clock = clock

    async def log_in_with_provider_identity(
        self,
        external_id: str,
        access_token: str,
        expiration: str,
    ) -> LoginResult:
        expires_at = parse_expiration(expiration).timestamp()
        await self.purge_expired()

        user = await self._find_user_by_provider_id(external_id)
        if user is None:
            user = UserRecord(
                id=str(uuid.uuid4()),
                provider_id=external_id,
                access_token=access_token,
                expiration=expiration,
            )
        else:
            user = replace(user, access_token=access_token, expiration=expiration)
        await self._put_user(user)

        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user.id,
            expires_at=expires_at,
        )
        await self._put_session(session)
        return LoginResult(session_token=session.token, user=user)

    async def save_user_fields(self, user: UserRecord, fields: dict[str, str | None]) -> UserRecord:
        unknown = set(fields) - set(USER_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported user fields: {', '.join(sorted(unknown))}")

        updated = replace(user, **{key: value for key, value in fields.items() if value is not None})
        await self._put_user(updated)
        return updated

    async def get_session(self, token: str) -> Session | None:
        session = await self._get_session(token)
        if session is None:
            return None
        if session.is_expired(now=self._clock()):
            await self._delete_session(token)
            return None
        return session

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [
            session.token
            for session in await self._list_sessions()
            if session.is_expired(now=now)
        ]
        for token in expired:
            await self._delete_session(token)
        return len(expired)

    @abstractmethod
    async def get_user(self, user_id: str) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def _find_user_by_provider_id(self, provider_id: str) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def _put_user(self, user: UserRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    async def _get_session(self, token: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    async def _put_session(self, session: Session) -> None:
        raise NotImplementedError

    @abstractmethod
    async def _delete_session(self, token: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def _list_sessions(self) -> list[Session]:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self, *, clock=time.time) -> None:
        super().__init__(clock=clock)
        self._users: dict[str, UserRecord] = {}
        self._sessions: dict[str, Session] = {}

    async def get_user(self, user_id: str) -> UserRecord | None:
        return self._users.get(user_id)

    async def _find_user_by_provider_id(self, provider_id: str) -> UserRecord | None:
        return next(
            (user for user in self._users.values() if user.provider_id == provider_id),
            None,
        )

    async def _put_user(self, user: UserRecord) -> None:
        self._users[user.id] = user

    async def _get_session(self, token: str) -> Session | None:
        return self._sessions.get(token)

    async def _put_session(self, session: Session) -> None:
        self._sessions[session.token] = session

    async def _delete_session(self, token: str) -> None:
        self._sessions.pop(token, None)

    async def _list_sessions(self) -> list[Session]:
        return list(self._sessions.values())


class FileSessionStore(SessionStore):
    def __init__(self, path: str | Path = ".sessions.json", *, clock=time.time) -> None:
        super().__init__(clock=clock)
        self._file = JsonFile(path)

    async def get_user(self, user_id: str) -> UserRecord | None:
        payload = self._section("users").get(user_id)
        return UserRecord(**payload) if payload is not None else None

    async def _find_user_by_provider_id(self, provider_id: str) -> UserRecord | None:
        for payload in self._section("users").values():
            if payload.get("provider_id") == provider_id:
                return UserRecord(**payload)
        return None

    async def _put_user(self, user: UserRecord) -> None:
        self._update("users", user.id, asdict(user))

    async def _get_session(self, token: str) -> Session | None:
        payload = self._section("sessions").get(token)
        return Session(**payload) if payload is not None else None

    async def _put_session(self, session: Session) -> None:
        self._update("sessions", session.token, asdict(session))

    async def _delete_session(self, token: str) -> None:
        self._update("sessions", token, None)

    async def _list_sessions(self) -> list[Session]:
        return [Session(**payload) for payload in self._section("sessions").values()]

    async def purge_expired(self) -> int:
        payload = self._file.read_all()
        sessions = payload.get("sessions", {})
        now = self._clock()
        expired = [
            token for token, record in sessions.items() if Session(**record).is_expired(now=now)
        ]
        for token in expired:
            del sessions[token]
        if expired:
            self._file.write_all(payload)
        return len(expired)

    def _section(self, name: str) -> dict[str, dict]:
        return self._file.read_all().get(name, {})

    def _update(self, name: str, key: str, value: dict | None) -> None:
        payload = self._file.read_all()
        section = payload.setdefault(name, {})
        if value is None:
            section.pop(key, None)
        else:
            section[key] = value
        self._file.write_all(payload)


class CookieSessionLookup:
    """Current-session capability backed by the session cookie."""

    def __init__(self, store: SessionStore, *, cookie_name: str = SESSION_COOKIE) -> None:
        self._store = store
        self.cookie_name = cookie_name

    async def __call__(self, request: Request) -> Session | None:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        return await self._store.get_session(token)
