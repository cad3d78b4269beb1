"""Pytest configuration and fixtures."""

import pytest

from config import Config
from handlers import DeploymentCommands
from tests.fakes import (
    AUTHORIZED_USER, FakeBot, FakeExecutor, FakeReleaseChecker, FakeSleep,
)


@pytest.fixture
def config() -> Config:
    return Config(bot_token="123456:TEST-TOKEN", authorized_user=str(AUTHORIZED_USER))


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def fake_releases() -> FakeReleaseChecker:
    return FakeReleaseChecker()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def commands(config, fake_executor, fake_releases, fake_sleep) -> DeploymentCommands:
    return DeploymentCommands(config, fake_executor, fake_releases, sleep=fake_sleep)
