from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import asdict
from pathlib import Path

from auth.json_file import JsonFile
from auth.models import PendingRequest

DEFAULT_PENDING_TTL_SECONDS = 600


def generate_request_id() -> str:
    return secrets.token_urlsafe(32)


class PendingRequestStore(ABC):
    """Single-use records binding a CSRF token to the URL a login started from.

    Records are only ever read back through ``fetch_privileged`` once the caller
    has already matched the id against the browser cookie. Records older than
    ``ttl_seconds`` are treated as missing and purged.
    """

    def __init__(self, *, ttl_seconds: int = DEFAULT_PENDING_TTL_SECONDS, clock=time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @abstractmethod
    async def create(self, original_url: str) -> PendingRequest:
        raise NotImplementedError

    @abstractmethod
    async def fetch_privileged(self, request_id: str) -> PendingRequest | None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, request_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def purge_expired(self) -> int:
        raise NotImplementedError

    def _new_request(self, original_url: str) -> PendingRequest:
        return PendingRequest(
            id=generate_request_id(),
            original_url=original_url,
            created_at=self._clock(),
        )

    def _is_expired(self, pending: PendingRequest) -> bool:
        return pending.is_expired(self.ttl_seconds, now=self._clock())


class MemoryPendingRequestStore(PendingRequestStore):
    def __init__(self, *, ttl_seconds: int = DEFAULT_PENDING_TTL_SECONDS, clock=time.time) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._requests: dict[str, PendingRequest] = {}

    async def create(self, original_url: str) -> PendingRequest:
        await self.purge_expired()
        pending = self._new_request(original_url)
        self._requests[pending.id] = pending
        return pending

    async def fetch_privileged(self, request_id: str) -> PendingRequest | None:
        pending = self._requests.get(request_id)
        if pending is None:
            return None
        if self._is_expired(pending):
            del self._requests[request_id]
            return None
        return pending

    async def delete(self, request_id: str) -> None:
        self._requests.pop(request_id, None)

    async def purge_expired(self) -> int:
        expired_ids = [
            request_id
            for request_id, pending in self._requests.items()
            if self._is_expired(pending)
        ]
        for request_id in expired_ids:
            del self._requests[request_id]
        return len(expired_ids)


class FilePendingRequestStore(PendingRequestStore):
    def __init__(
        self,
        path: str | Path = ".pending_requests.json",
        *,
        ttl_seconds: int = DEFAULT_PENDING_TTL_SECONDS,
        clock=time.time,
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._file = JsonFile(path)

    async def create(self, original_url: str) -> PendingRequest:
        records = self._live_records()
        pending = self._new_request(original_url)
        records[pending.id] = asdict(pending)
        self._file.write_all(records)
        return pending

    async def fetch_privileged(self, request_id: str) -> PendingRequest | None:
        payload = self._file.read_all().get(request_id)
        if payload is None:
            return None
        pending = PendingRequest(**payload)
        if self._is_expired(pending):
            await self.delete(request_id)
            return None
        return pending

    async def delete(self, request_id: str) -> None:
        records = self._file.read_all()
        if records.pop(request_id, None) is not None:
            self._file.write_all(records)

    async def purge_expired(self) -> int:
        records = self._file.read_all()
        live = self._live_records(records)
        removed = len(records) - len(live)
        if removed:
            self._file.write_all(live)
        return removed

    def _live_records(self, records: dict[str, dict] | None = None) -> dict[str, dict]:
        if records is None:
            records = self._file.read_all()
        return {
            request_id: payload
            for request_id, payload in records.items()
            if not self._is_expired(PendingRequest(**payload))
        }
