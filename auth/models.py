from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class PendingRequest:
    id: str
    original_url: str
    created_at: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: float, *, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current - self.created_at > ttl_seconds


@dataclass
class ProviderCredential:
    access_token: str
    expires_in_seconds: int


@dataclass
class ProviderProfile:
    id: str
    name: str | None = None
    email: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ProviderProfile":
        external_id = payload.get("id")
        if isinstance(external_id, int):
            external_id = str(external_id)
        if not isinstance(external_id, str) or not external_id:
            raise RuntimeError("Profile response missing id.")

        name = payload.get("name")
        email = payload.get("email")
        return cls(
            id=external_id,
            name=name if isinstance(name, str) else None,
            email=email if isinstance(email, str) else None,
        )


@dataclass
class UserRecord:
    id: str
    provider_id: str
    access_token: str
    expiration: str
    name: str | None = None
    email: str | None = None


@dataclass
class Session:
    token: str
    user_id: str
    expires_at: float

    def is_expired(self, *, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current >= self.expires_at


@dataclass
class LoginResult:
    session_token: str
    user: UserRecord
