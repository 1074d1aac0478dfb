"""Shared fixtures: a scripted network and a fresh cache database."""

import sqlite3
from pathlib import Path

import pytest

from fixmyphone.cache import CacheStorage
from fixmyphone.database import init_db
from fixmyphone.models import Request, Response
from fixmyphone.network import NetworkError

ORIGIN = "https://fixmyphone.test"


class FakeNetwork:
    """Answers requests from a URL -> Response table; unknown URLs fail like a dropped connection."""

    def __init__(self) -> None:
        self.routes: dict[str, Response | Exception] = {}
        self.calls: list[Request] = []

    def serve(self, path_or_url: str, body: bytes = b"ok", status: int = 200, content_type: str = "text/plain") -> None:
        url = path_or_url if "://" in path_or_url else ORIGIN + path_or_url
        self.routes[url] = Response(status=status, headers={"Content-Type": content_type}, body=body)

    def fail(self, path_or_url: str) -> None:
        url = path_or_url if "://" in path_or_url else ORIGIN + path_or_url
        self.routes[url] = NetworkError(f"connection refused: {url}")

    def go_offline(self) -> None:
        self.routes.clear()

    def __call__(self, request: Request) -> Response:
        self.calls.append(request)
        result = self.routes.get(request.url)
        if result is None:
            raise NetworkError(f"no route to {request.url}")
        if isinstance(result, Exception):
            raise result
        return result.clone()

    def urls_called(self) -> list[str]:
        return [r.url for r in self.calls]


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def db_conn(tmp_path: Path) -> sqlite3.Connection:
    """Create a database connection with initialized tables."""
    conn = init_db(str(tmp_path / "offline.db"))
    yield conn
    conn.close()


@pytest.fixture
def storage(db_conn: sqlite3.Connection) -> CacheStorage:
    return CacheStorage(db_conn)
