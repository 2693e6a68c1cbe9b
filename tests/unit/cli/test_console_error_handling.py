import pytest
import typer

from src.cli.shared.console import with_error_handling
from src.infra.errors import BootstrapError, ErrorKind


def test_with_error_handling_handles_bootstrap_error():
    @with_error_handling
    def _command() -> None:
        raise BootstrapError("Boom", details="extra", kind=ErrorKind.TIMEOUT)

    with pytest.raises(typer.Exit) as excinfo:
        _command()

    assert excinfo.value.exit_code == 1


def test_with_error_handling_handles_keyboard_interrupt():
    @with_error_handling
    def _command() -> None:
        raise KeyboardInterrupt

    with pytest.raises(typer.Exit) as excinfo:
        _command()

    assert excinfo.value.exit_code == 130


def test_with_error_handling_propagates_other_errors():
    @with_error_handling
    def _command() -> None:
        raise ValueError("bug")

    with pytest.raises(ValueError):
        _command()
