"""In-memory stand-ins for the research provider and the establishment store."""

from __future__ import annotations

from collections import deque
from typing import Optional, Union

from services.discovery.pipeline.research_llm import ProviderResponse
from services.discovery.pipeline.slugs import establishment_key


class FakeResearchProvider:
    """
    Returns queued responses in order. A queued exception is raised instead.
    Once the queue is empty the default response is returned.
    """

    def __init__(self, *responses: Union[str, ProviderResponse, Exception], default: str = "[]"):
        self._queue: deque = deque(responses)
        self.default = default
        self.prompts: list[str] = []

    async def complete(self, prompt: str, *, max_tokens: int) -> ProviderResponse:
        self.prompts.append(prompt)
        item = self._queue.popleft() if self._queue else self.default
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ProviderResponse):
            return item
        return ProviderResponse(text=item, input_tokens=100, output_tokens=50)


class InMemoryEstablishmentStore:
    """
    EstablishmentStore keyed on (city_id, slug). Updates keep the
    insert-only publication fields of the existing row.
    """

    def __init__(
        self,
        city_ids: Optional[dict[str, str]] = None,
        category_ids: Optional[dict[str, str]] = None,
        fail_batches: tuple[int, ...] = (),
        fail_slug_reads: bool = False,
    ):
        self.city_ids = dict(city_ids or {})
        self.category_ids = dict(category_ids or {})
        self.fail_batches = set(fail_batches)
        self.fail_slug_reads = fail_slug_reads
        self.rows: dict[tuple[str, str], dict] = {}
        self.batch_calls: list[list[dict]] = []

    async def fetch_city_ids(self) -> dict[str, str]:
        return dict(self.city_ids)

    async def fetch_category_ids(self) -> dict[str, str]:
        return dict(self.category_ids)

    async def fetch_existing_slugs(self, city_id: str) -> dict[str, str]:
        if self.fail_slug_reads:
            raise ConnectionError("establishments read failed")
        return {
            slug: establishment_key(row["name"], row["address"])
            for (cid, slug), row in self.rows.items() if cid == city_id
        }

    async def upsert_establishments(self, rows: list[dict]) -> int:
        self.batch_calls.append(rows)
        if len(self.batch_calls) in self.fail_batches:
            raise ConnectionError(f"batch {len(self.batch_calls)} rejected")
        for row in rows:
            key = (row["city_id"], row["slug"])
            existing = self.rows.get(key)
            if existing is None:
                self.rows[key] = dict(row)
            else:
                keep = {k: existing[k] for k in ("status", "tier", "is_verified", "is_featured")}
                self.rows[key] = {**row, **keep}
        return len(rows)


# ---------------------------------------------------------------------------
# Fake asyncpg pool / connection
# ---------------------------------------------------------------------------

class FakeConnection:
    """In-memory fake asyncpg connection. Results are keyed on the first 80 query chars."""

    def __init__(self, pool: "FakePool"):
        self._pool = pool

    async def fetch(self, query: str, *args) -> list:
        return self._pool._fetch_results.get(query.strip()[:80], [])

    async def executemany(self, query: str, args_list) -> None:
        for args in args_list:
            self._pool._executed.append((query, args))

    def transaction(self):
        return _FakeTransaction()


class _FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakePool:
    """In-memory fake asyncpg pool."""

    def __init__(self):
        self._fetch_results: dict[str, list] = {}
        self._executed: list[tuple] = []

    def acquire(self):
        return _FakePoolAcquire(self)

    async def fetch(self, query: str, *args) -> list:
        return await FakeConnection(self).fetch(query, *args)

    async def close(self):
        pass


class _FakePoolAcquire:
    def __init__(self, pool: FakePool):
        self._pool = pool

    async def __aenter__(self) -> FakeConnection:
        return FakeConnection(self._pool)

    async def __aexit__(self, *exc):
        return False
