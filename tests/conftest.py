"""Shared fixtures for the shellgpt test suite."""

import pytest

from shellgpt.agent import Agent
from shellgpt.config import ENV_VARS, Settings
from shellgpt.plugins.console_plugin import BufferedOutputSink
from shellgpt.plugins.datetime_plugin import DateTimePlugin
from shellgpt.plugins.search_plugin import SearchPlugin

from fakes import FIXED_NOW, FakeSearchProvider


@pytest.fixture
def settings():
    return Settings(openai_api_key="sk-test", model="gpt-4o-mini", temperature=0.7, max_tokens=1000)


@pytest.fixture
def search_provider():
    return FakeSearchProvider()


@pytest.fixture
def sink():
    return BufferedOutputSink()


@pytest.fixture
def make_agent(settings, search_provider, sink):
    """Factory for an Agent wired to a scripted client."""

    def _make(client, with_search=True, provider=None):
        plugins = [DateTimePlugin(clock=lambda: FIXED_NOW)]
        if with_search:
            plugins.insert(0, SearchPlugin(provider or search_provider))
        return Agent(client, settings, plugins, sink)

    return _make


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate settings resolution from the developer's environment and home directory."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("SHELLGPT_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setattr("shellgpt.config.load_dotenv", lambda *args, **kwargs: False)
    return tmp_path / "config"
