import functools
import logging

import click.testing
import pytest

from podcrud.cli import main
from podcrud._core.reactor.scenario import Outcome

OUTCOME = Outcome(namespace='ns', name='blog', created=True, resource_version='101',
                  listed=['blog'], deleted_immediately=False)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # Every invocation re-configures the logging; do not leak it to other tests.
    logger = logging.getLogger()
    handlers = logger.handlers[:]
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def real_run(mocker):
    return mocker.patch('podcrud._core.reactor.running.run', return_value=OUTCOME)
