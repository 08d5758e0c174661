from __future__ import annotations

import os
import re
import sys
from typing import Any

import pytest

from siteship.buildfailures import BuildFailure
from siteship.buildfailures import FailureController


@pytest.fixture
def failure_controller(tmp_path):
    return FailureController(tmp_path)


def _store_runtime_error(failure_controller, stage, message="test exception"):
    try:
        raise RuntimeError(message)
    except Exception:
        failure_controller.store_failure(stage, sys.exc_info())


def test_BuildFailure_from_exc_info():
    def throw_exception():
        x: dict[str, Any] = {}
        try:
            x["somekey"]
        except KeyError:
            raise RuntimeError("test error")  # pylint: disable=raise-missing-from

    failure = None
    try:
        throw_exception()
    except Exception:
        exc_info = sys.exc_info()
        assert exc_info[1] is not None
        failure = BuildFailure.from_exc_info("routes", exc_info)

    assert failure
    assert failure.data["stage"] == "routes"
    assert failure.data["exception"] == "RuntimeError: test error"
    traceback = failure.data["traceback"]
    patterns = [
        r'x\["somekey"\]',
        r"KeyError: .somekey.",
        r"During handling of the above exception, another exception occurred",
        r"throw_exception\(\)",
        r'raise RuntimeError\("test error"\)',
        r"RuntimeError: test error",
    ]
    for pattern in patterns:
        assert re.search(pattern, traceback)


def test_failure_controller(failure_controller):
    _store_runtime_error(failure_controller, "build")

    failure = failure_controller.lookup_failure("build")
    assert failure.stage == "build"
    assert failure.data["exception"] == "RuntimeError: test exception"

    failure_controller.clear_failure("build")
    assert failure_controller.lookup_failure("build") is None


def test_failure_controller_stores_under_meta_path(tmp_path, failure_controller):
    _store_runtime_error(failure_controller, "install")
    path = failure_controller.get_path("install")
    assert path.is_file()
    assert path.parent == tmp_path.resolve() / "failures"


def test_failure_controller_iter_failures(failure_controller):
    assert failure_controller.iter_failures() == []
    _store_runtime_error(failure_controller, "install")
    _store_runtime_error(failure_controller, "build")
    stages = {failure.stage for failure in failure_controller.iter_failures()}
    assert stages == {"install", "build"}


def test_failure_controller_clear_all(failure_controller):
    _store_runtime_error(failure_controller, "install")
    _store_runtime_error(failure_controller, "build")
    failure_controller.clear_all()
    assert failure_controller.iter_failures() == []


def test_failure_controller_clear_all_damaged_record(failure_controller):
    failure_controller.path.mkdir(parents=True)
    damaged = failure_controller.path / "stale.json"
    damaged.write_text("{not json", encoding="utf-8")
    failure_controller.clear_all()
    assert not damaged.exists()


def test_failure_controller_clear_all_without_records(failure_controller):
    failure_controller.clear_all()
    assert not failure_controller.path.exists()


def test_failure_controller_clear_lookup_missing(failure_controller):
    assert failure_controller.lookup_failure("missing") is None


def test_failure_controller_clear_missing(failure_controller):
    failure_controller.clear_failure("missing")
    assert failure_controller.lookup_failure("missing") is None


def test_failure_controller_fs_exceptions(failure_controller):
    # Create a directory in the location that FailureController wants
    # a file stored to trigger unexpected OSErrors.
    filename = failure_controller.get_path("broken")
    os.makedirs(filename)

    with pytest.raises(OSError):
        failure_controller.lookup_failure("broken")
    with pytest.raises(OSError):
        failure_controller.clear_failure("broken")
    with pytest.raises(OSError):
        _store_runtime_error(failure_controller, "broken")
