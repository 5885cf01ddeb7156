"""
Shared pytest fixtures and configuration.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import smartinput.settings as settings_mod
from smartinput.actions.platform import RecordingSwitcher
from smartinput.api.app import create_app
from smartinput.config import config


@pytest.fixture(scope="session", autouse=True)
def isolated_data_dir(tmp_path_factory):
    """Keep history databases and settings files out of the repo's data/."""
    data_dir = tmp_path_factory.mktemp("smartinput-data")
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(config, "data_dir", data_dir)
        mp.setattr(settings_mod, "_FILE", data_dir / "settings.json")
        yield data_dir


@pytest.fixture(autouse=True)
def fresh_settings(tmp_path, monkeypatch):
    """Every test starts from default settings in its own file."""
    fake_file = tmp_path / "settings.json"
    monkeypatch.setattr(settings_mod, "_FILE", fake_file)
    monkeypatch.setattr(settings_mod, "_current", {})
    yield fake_file
    monkeypatch.setattr(settings_mod, "_current", {})


@pytest.fixture()
def switcher():
    return RecordingSwitcher()


@pytest.fixture()
def app(switcher, tmp_path, monkeypatch):
    """Create a fresh app instance per test, wired to a dry-run switcher."""
    monkeypatch.setattr(config, "data_dir", tmp_path)
    return create_app(switcher=switcher)


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
