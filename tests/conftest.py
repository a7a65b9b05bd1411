from tests import _config
import pytest
import typing as t

import enlighten


def pytest_configure(config: pytest.Config):
    _config.verbose = t.cast(int, config.getoption("verbose")) or 0


@pytest.fixture
def app() -> enlighten.Enlighten:
    return enlighten.Enlighten()


@pytest.fixture
def context() -> enlighten.Context:
    return enlighten.Context()
