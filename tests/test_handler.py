"""Tests for the DD_LAMBDA_HANDLER entry point."""

import sys
import textwrap

import pytest

from ddlambda import handler as entry
from ddlambda.errors import InitializationError
from ddlambda.wrapper import InvocationWrapper

HANDLER_SOURCE = textwrap.dedent(
    """
    from ddlambda import datadog, get_trace_headers

    CALLS = []


    def handle(event, context):
        CALLS.append(event)
        return {"statusCode": 200, "trace": get_trace_headers().get("x-datadog-trace-id")}


    already_wrapped = datadog(handle)

    not_callable = 42
    """
)


@pytest.fixture
def handler_module(tmp_path, monkeypatch):
    package = tmp_path / "app"
    package.mkdir()
    (package / "__init__.py").write_text("")
    (package / "functions.py").write_text(HANDLER_SOURCE)
    monkeypatch.syspath_prepend(str(tmp_path))
    _forget_app_modules()
    entry.reset()
    yield "app.functions"
    entry.reset()
    _forget_app_modules()


def _forget_app_modules():
    for name in ("app.functions", "app"):
        sys.modules.pop(name, None)


class TestSplitTarget:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("app.functions.handle", ("app.functions", "handle")),
            ("app/functions.handle", ("app.functions", "handle")),
            ("app.functions:handle", ("app.functions", "handle")),
            (" app.functions.handle ", ("app.functions", "handle")),
        ],
    )
    def test_formats(self, value, expected):
        assert entry._split_target(value) == expected

    @pytest.mark.parametrize("value", ["", "handle", "app.", ":handle"])
    def test_malformed(self, value):
        assert entry._split_target(value) is None


class TestLoadHandler:
    def test_wraps_the_target(self, handler_module):
        wrapped = entry.load_handler(f"{handler_module}.handle")
        assert isinstance(wrapped, InvocationWrapper)
        assert wrapped.__name__ == "handle"

    def test_reads_environment(self, handler_module, monkeypatch):
        monkeypatch.setenv("DD_LAMBDA_HANDLER", "app/functions.handle")
        assert entry.load_handler().__name__ == "handle"

    def test_existing_wrapper_is_not_wrapped_again(self, handler_module):
        wrapped = entry.load_handler(f"{handler_module}:already_wrapped")

        import app.functions

        assert wrapped is app.functions.already_wrapped

    def test_missing_variable(self):
        with pytest.raises(InitializationError, match="DD_LAMBDA_HANDLER is not set"):
            entry.load_handler()

    def test_malformed_value(self):
        with pytest.raises(InitializationError):
            entry.load_handler("handle")

    def test_unknown_module(self):
        with pytest.raises(InitializationError, match="cannot import"):
            entry.load_handler("does_not_exist_anywhere.handle")

    def test_missing_attribute(self, handler_module):
        with pytest.raises(InitializationError):
            entry.load_handler(f"{handler_module}.nope")

    def test_not_callable(self, handler_module):
        with pytest.raises(InitializationError, match="not a callable"):
            entry.load_handler(f"{handler_module}.not_callable")


class TestHandlerEntryPoint:
    def test_invokes_the_wrapped_handler(self, handler_module, monkeypatch):
        monkeypatch.setenv("DD_LAMBDA_HANDLER", f"{handler_module}.handle")
        event = {"headers": {"x-datadog-trace-id": "123456"}}

        result = entry.handler(event, None)

        assert result == {"statusCode": 200, "trace": "123456"}

    def test_handler_is_loaded_once(self, handler_module, monkeypatch):
        monkeypatch.setenv("DD_LAMBDA_HANDLER", f"{handler_module}.handle")
        entry.handler({}, None)
        first = entry._wrapped
        entry.handler({}, None)
        assert entry._wrapped is first

        import app.functions

        assert len(app.functions.CALLS) == 2

    def test_reset_forgets_the_handler(self, handler_module, monkeypatch):
        monkeypatch.setenv("DD_LAMBDA_HANDLER", f"{handler_module}.handle")
        entry.handler({}, None)
        entry.reset()
        assert entry._wrapped is None

    def test_missing_variable_raises_on_invocation(self):
        entry.reset()
        with pytest.raises(InitializationError):
            entry.handler({}, None)
