"""Shared test fixtures for telegradb."""

import asyncio
import json
from typing import Dict, List, Optional

import httpx
import pytest

from telegradb.client import AsyncTelegraphClient
from telegradb.crypto import encrypt_content
from telegradb.models import LockConfig

TOKEN = "test-access-token"
INDEX_PATH = "index-01"


class FakeRemote:
    """In-memory RemoteStore with knobs for simulating an unreliable service."""

    def __init__(self):
        self.fields: Dict[str, str] = {"short_name": "", "author_name": ""}
        self.documents: Dict[str, str] = {}
        self.latency = 0.0
        self.read_failures = 0
        self.hang_reads = 0
        self.field_writes: List[Dict[str, str]] = []
        self.created: List[str] = []
        self.overwritten: List[str] = []
        self.titles: Dict[str, str] = {}

    async def read_fields(self, names: List[str]) -> Optional[Dict[str, str]]:
        await asyncio.sleep(self.latency)
        if self.hang_reads:
            self.hang_reads -= 1
            await asyncio.Event().wait()
        if self.read_failures:
            self.read_failures -= 1
            return None
        return {name: self.fields.get(name, "") for name in names}

    async def write_fields(self, values: Dict[str, str]) -> Optional[bool]:
        await asyncio.sleep(self.latency)
        self.field_writes.append(dict(values))
        self.fields.update(values)
        return True

    async def create_document(self, title: str, content: str) -> Optional[str]:
        await asyncio.sleep(self.latency)
        path = f"{title}-{len(self.documents) + 1:02d}"
        self.documents[path] = content
        self.titles[path] = title
        self.created.append(path)
        return path

    async def read_document(self, path: str) -> Optional[str]:
        await asyncio.sleep(self.latency)
        return self.documents.get(path)

    async def overwrite_document(self, path: str, title: str, content: str) -> Optional[bool]:
        await asyncio.sleep(self.latency)
        if path not in self.documents:
            return None
        self.documents[path] = content
        self.titles[path] = title
        self.overwritten.append(path)
        return True


class FakeTelegraphAPI:
    """Minimal Telegraph API emulation for ``httpx.MockTransport``."""

    def __init__(self, token: str = TOKEN):
        self.token = token
        self.account = {"short_name": "0", "author_name": ""}
        self.pages: Dict[str, dict] = {}
        self.requests: List[tuple] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        params = json.loads(request.content)
        self.requests.append((method, params))

        if method == "createAccount":
            self.account = {
                "short_name": params["short_name"],
                "author_name": params.get("author_name", ""),
            }
            return self._ok({"access_token": self.token, **self.account})
        if params.get("access_token") != self.token:
            return self._error("ACCESS_TOKEN_INVALID")

        if method == "getAccountInfo":
            return self._ok({name: self.account.get(name, "") for name in params["fields"]})
        if method == "editAccountInfo":
            for name in ("short_name", "author_name"):
                if name in params:
                    self.account[name] = params[name]
            return self._ok(dict(self.account))
        if method == "createPage":
            path = f"page-{len(self.pages) + 1:02d}"
            self.pages[path] = {"path": path, "title": params["title"], "content": params["content"]}
            return self._ok({"path": path, "title": params["title"]})
        if method == "getPage":
            page = self.pages.get(params["path"])
            if page is None:
                return self._error("PAGE_NOT_FOUND")
            return self._ok(page)
        if method == "editPage":
            if params["path"] not in self.pages:
                return self._error("PAGE_NOT_FOUND")
            self.pages[params["path"]].update(title=params["title"], content=params["content"])
            return self._ok(self.pages[params["path"]])
        return self._error("METHOD_NOT_FOUND")

    def _ok(self, result) -> httpx.Response:
        return httpx.Response(200, json={"ok": True, "result": result})

    def _error(self, error: str) -> httpx.Response:
        return httpx.Response(200, json={"ok": False, "error": error})


def make_client(handler, token: str = TOKEN) -> AsyncTelegraphClient:
    """Build a client whose requests are served by ``handler``."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AsyncTelegraphClient(token=token, http_client=http_client)


def sealed_index(entries: List[Dict[str, str]], token: str = TOKEN) -> str:
    payload = json.dumps({"count": len(entries), "index": entries})
    return encrypt_content(token, payload)


@pytest.fixture
def remote() -> FakeRemote:
    """Provide an empty fake remote store."""
    return FakeRemote()


@pytest.fixture
def seeded_remote(remote: FakeRemote) -> FakeRemote:
    """Provide a fake remote holding an empty index document."""
    remote.documents[INDEX_PATH] = sealed_index([])
    return remote


@pytest.fixture
def fast_config() -> LockConfig:
    """Lock budgets shrunk so tests run in well under a second."""
    return LockConfig(
        request_timeout=0.05,
        confirm_delay=0.01,
        stale_after=0.5,
        acquire_timeout=2.0,
    )


@pytest.fixture
def telegraph_api() -> FakeTelegraphAPI:
    return FakeTelegraphAPI()
