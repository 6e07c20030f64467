import io
from pathlib import Path

import pytest

from tonegraph.logging_utils import DEBUG_ENV, LOG_DIR_ENV
from tonegraph.spinner import Spinner, render_error


def test_spinner_disabled_for_non_tty() -> None:
    stream = io.StringIO()
    with Spinner("Rendering", stream=stream) as spinner:
        spinner.update("Still rendering")
    assert stream.getvalue() == ""


def test_render_error_plain_stream(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    monkeypatch.delenv(DEBUG_ENV, raising=False)
    stream = io.StringIO()

    render_error("render", ValueError("bad tempo"), stream=stream)

    text = stream.getvalue()
    assert text.startswith("render failed: ValueError: bad tempo")
    assert str(tmp_path / "tonegraph.log") in text


def test_render_error_debug_adds_traceback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DEBUG_ENV, "1")
    stream = io.StringIO()
    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        render_error("play", exc, stream=stream)
    assert "Traceback" in stream.getvalue()
