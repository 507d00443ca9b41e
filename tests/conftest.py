"""Pytest configuration and fixtures for egg tests."""

import pytest

from tests.helpers import Universe, make_plan


def pytest_configure(config):
    config.addinivalue_line("markers", "git: tests that need the git executable")


@pytest.fixture
def universe(tmp_path):
    return Universe(tmp_path)


@pytest.fixture
def amazing_tool_plan():
    """AmazingTool -> CoolCollections, NotJson; NotJson -> CoolCollections."""
    return make_plan(
        {
            "AmazingTool": ["CoolCollections", "NotJson"],
            "CoolCollections": [],
            "NotJson": ["CoolCollections"],
        },
        root="AmazingTool",
        order=["CoolCollections", "NotJson", "AmazingTool"],
    )
