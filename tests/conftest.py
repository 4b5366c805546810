from __future__ import annotations

import pytest

from codesensei.app import create_app
from codesensei.config import Settings
from codesensei.context_store import ContextStore
from helpers import TOKEN, FakeGitHub, FakeLLM, FakeRepository, verify_token


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def store() -> ContextStore:
    return ContextStore()


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def app(repository, store, github, llm):
    app = create_app(
        settings=Settings(),
        repository=repository,
        store=store,
        github=github,
        llm=llm,
        verify_token=verify_token,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {TOKEN}"}
