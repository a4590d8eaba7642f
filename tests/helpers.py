import pytest
from kungfu import Error, Ok


def ok(result):
    """Value of an Ok, or fail the test."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"expected Ok, got Error({e!r})")


def err(result):
    """Error of an Error, or fail the test."""
    match result:
        case Error(e):
            return e
        case Ok(value):
            pytest.fail(f"expected Error, got Ok({value!r})")
