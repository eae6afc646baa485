"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from gamevault.core.catalog.client import CatalogClient
from gamevault.core.config import get_settings
from gamevault.core.database import create_database_engine, create_session_factory, init_database
from gamevault.core.library_store import LibraryStore
from gamevault.core.matching.config import MatchingConfig
from tests.fakes import REVIEWS_URL, SEARCH_URL, STORE_API_URL, FakeSteam


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point settings and matching config at an empty per-test data directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("GAMEVAULT_DATA_DIR", str(data_dir))
    # No stray .env from the working directory
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("gamevault.core.matching.config._cached_config", None)
    get_settings.cache_clear()
    yield data_dir
    get_settings.cache_clear()


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Temporary SQLite database with the schema created."""
    db_engine = create_database_engine(tmp_path / "test.db", echo=False)
    await init_database(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def store(engine: AsyncEngine) -> LibraryStore:
    return LibraryStore(create_session_factory(engine))


@pytest.fixture
def games_dir(tmp_path: Path) -> Path:
    path = tmp_path / "games"
    path.mkdir()
    return path


@pytest.fixture
def make_folder(games_dir: Path):
    """Create a game folder (with one small file) and return its path."""

    def _make(name: str, content: bytes = b"x" * 128) -> Path:
        folder = games_dir / name
        folder.mkdir()
        (folder / "setup.exe").write_bytes(content)
        return folder

    return _make


@pytest.fixture
def matching_config() -> MatchingConfig:
    return MatchingConfig(rate_limit_delay_ms=0, cache_images=False)


@pytest.fixture
def fake_steam() -> FakeSteam:
    return FakeSteam()


@pytest.fixture
async def catalog_client(
    fake_steam: FakeSteam, matching_config: MatchingConfig
) -> AsyncIterator[CatalogClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_steam.handler))
    client = CatalogClient(
        search_url=SEARCH_URL,
        store_api_url=STORE_API_URL,
        reviews_url=REVIEWS_URL,
        config=matching_config,
        http_client=http_client,
    )
    yield client
    await http_client.aclose()
