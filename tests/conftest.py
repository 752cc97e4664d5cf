"""Pytest configuration and fixtures for test isolation."""

import os

import pytest

from build_action.context import BuildContext

FULL_SHA = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture(scope="function", autouse=True)
def isolate_environment(monkeypatch):
    """Automatically isolate each test from the host environment.

    Clears action inputs and runner variables that could leak from a CI
    runner or developer shell into tests, so tests behave the same
    locally and in CI.
    """
    prefixes = ("INPUT_", "GITHUB_")
    exact = ("RUNNER_DEBUG", "LOG_LEVEL", "LOG_FORMAT", "BUILD_ACTION_VERSION")

    for var in list(os.environ):
        if var.startswith(prefixes) or var in exact:
            monkeypatch.delenv(var, raising=False)

    yield


@pytest.fixture
def main_context():
    """CI context for a push to the default branch."""
    return BuildContext(
        sha=FULL_SHA,
        ref="refs/heads/main",
        default_branch="main",
        repository="acme/widget",
        run_id="4242",
        actor="octocat",
    )


@pytest.fixture
def pr_context():
    """CI context for a pull request merge ref."""
    return BuildContext(
        sha=FULL_SHA,
        ref="refs/pull/17/merge",
        default_branch="main",
        repository="acme/widget",
        run_id="4243",
        actor="octocat",
    )
