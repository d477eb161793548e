import logging

import pytest

from podcrud._core.actions.loggers import LogFormat


@pytest.fixture()
def configure(mocker):
    return mocker.patch('podcrud._core.actions.loggers.configure')


@pytest.mark.parametrize('options, envvars, expected', [
    ([], {}, dict(debug=False, verbose=False, quiet=False)),
    (['-v'], {}, dict(debug=False, verbose=True, quiet=False)),
    (['--verbose'], {}, dict(debug=False, verbose=True, quiet=False)),
    (['-d'], {}, dict(debug=True, verbose=False, quiet=False)),
    (['--debug'], {}, dict(debug=True, verbose=False, quiet=False)),
    (['-q'], {}, dict(debug=False, verbose=False, quiet=True)),
    (['--quiet'], {}, dict(debug=False, verbose=False, quiet=True)),
    ([], {'PODCRUD_RUN_VERBOSE': 'true'}, dict(debug=False, verbose=True, quiet=False)),
])
def test_verbosity(invoke, real_run, configure, options, envvars, expected):
    result = invoke(['run'] + options, env=envvars)
    assert result.exit_code == 0, result.output
    assert configure.called
    for key, value in expected.items():
        assert configure.call_args[1][key] == value


@pytest.mark.parametrize('options, expected', [
    ([], LogFormat.FULL),
    (['--log-format=plain'], LogFormat.PLAIN),
    (['--log-format=full'], LogFormat.FULL),
    (['--log-format=json'], LogFormat.JSON),
])
def test_log_formats(invoke, real_run, configure, options, expected):
    result = invoke(['run'] + options)
    assert result.exit_code == 0, result.output
    assert configure.call_args[1]['log_format'] is expected


def test_unknown_log_format(invoke, real_run, configure):
    result = invoke(['run', '--log-format=xml'])
    assert result.exit_code == 2
    assert not real_run.called


@pytest.mark.parametrize('options, expected', [
    ([], None),
    (['--log-prefix'], True),
    (['--no-log-prefix'], False),
])
def test_log_prefixes(invoke, real_run, configure, options, expected):
    result = invoke(['run'] + options)
    assert result.exit_code == 0, result.output
    assert configure.call_args[1]['log_prefix'] is expected


def test_log_refkey(invoke, real_run, configure):
    result = invoke(['run', '--log-format=json', '--log-refkey=k8s'])
    assert result.exit_code == 0, result.output
    assert configure.call_args[1]['log_refkey'] == 'k8s'


def test_real_configuration_sets_the_level(invoke, real_run):
    result = invoke(['run', '--quiet'])
    assert result.exit_code == 0, result.output
    assert logging.getLogger().level == logging.WARNING
