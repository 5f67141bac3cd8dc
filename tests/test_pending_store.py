import pytest

from auth.pending_store import FilePendingRequestStore, MemoryPendingRequestStore


class Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(params=["memory", "file"])
def make_store(request, tmp_path):
    def _make(**kwargs):
        if request.param == "memory":
            return MemoryPendingRequestStore(**kwargs)
        return FilePendingRequestStore(tmp_path / "pending.json", **kwargs)

    return _make


@pytest.mark.asyncio
async def test_create_then_fetch(make_store) -> None:
    store = make_store()

    pending = await store.create("https://app.example/dashboard")

    fetched = await store.fetch_privileged(pending.id)
    assert fetched.id == pending.id
    assert fetched.original_url == "https://app.example/dashboard"


@pytest.mark.asyncio
async def test_ids_are_unique_and_unguessable(make_store) -> None:
    store = make_store()

    first = await store.create("https://app.example/a")
    second = await store.create("https://app.example/a")

    assert first.id != second.id
    assert len(first.id) >= 32


@pytest.mark.asyncio
async def test_fetch_missing(make_store) -> None:
    store = make_store()

    assert await store.fetch_privileged("missing") is None


@pytest.mark.asyncio
async def test_delete_makes_request_single_use(make_store) -> None:
    store = make_store()
    pending = await store.create("https://app.example/dashboard")

    await store.delete(pending.id)

    assert await store.fetch_privileged(pending.id) is None


@pytest.mark.asyncio
async def test_delete_missing_is_noop(make_store) -> None:
    store = make_store()

    await store.delete("missing")


@pytest.mark.asyncio
async def test_expired_request_is_not_returned(make_store) -> None:
    clock = Clock()
    store = make_store(ttl_seconds=60, clock=clock)
    pending = await store.create("https://app.example/dashboard")

    clock.now += 61

    assert await store.fetch_privileged(pending.id) is None


@pytest.mark.asyncio
async def test_purge_expired_removes_orphans(make_store) -> None:
    clock = Clock()
    store = make_store(ttl_seconds=60, clock=clock)
    orphan = await store.create("https://app.example/old")
    clock.now += 30
    fresh = await store.create("https://app.example/new")
    clock.now += 40

    removed = await store.purge_expired()

    assert removed == 1
    assert await store.fetch_privileged(orphan.id) is None
    assert await store.fetch_privileged(fresh.id) is not None


@pytest.mark.asyncio
async def test_create_purges_expired(make_store) -> None:
    clock = Clock()
    store = make_store(ttl_seconds=60, clock=clock)
    await store.create("https://app.example/old")
    clock.now += 120

    await store.create("https://app.example/new")

    assert await store.purge_expired() == 0


@pytest.mark.asyncio
async def test_file_store_persists(tmp_path) -> None:
    path = tmp_path / "pending.json"
    pending = await FilePendingRequestStore(path).create("https://app.example/dashboard")

    reopened = FilePendingRequestStore(path)

    fetched = await reopened.fetch_privileged(pending.id)
    assert fetched.original_url == "https://app.example/dashboard"


@pytest.mark.asyncio
async def test_file_store_rejects_invalid_file(tmp_path) -> None:
    path = tmp_path / "pending.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(RuntimeError, match="expected top-level JSON object"):
        await FilePendingRequestStore(path).fetch_privileged("any")
