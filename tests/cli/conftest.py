from unittest.mock import AsyncMock

import click.testing
import pytest

from kwatch import cli


@pytest.fixture(autouse=True)
def no_logging_setup(mocker):
    return mocker.patch('kwatch._core.actions.loggers.configure')


@pytest.fixture()
def wait_fn(mocker):
    return mocker.patch('kwatch.cli._wait', new_callable=AsyncMock)


@pytest.fixture()
def watch_fn(mocker):
    return mocker.patch('kwatch.cli._watch', new_callable=AsyncMock)


@pytest.fixture()
def invoke():
    runner = click.testing.CliRunner()

    def invoke_fn(args, **kwargs):
        return runner.invoke(cli.main, args, **kwargs)

    return invoke_fn
