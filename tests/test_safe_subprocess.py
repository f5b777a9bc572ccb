import sys

import pytest

from securescan.safe_subprocess import SubprocessError, SubprocessTimeout, run_safe


def test_run_safe_captures_output():
    result = run_safe([sys.executable, "-c", "print('hello')"], timeout=30)
    assert result.ok
    assert result.stdout.strip() == "hello"
    assert result.duration_seconds >= 0


def test_run_safe_returns_nonzero_exit():
    result = run_safe([sys.executable, "-c", "import sys; sys.exit(3)"], timeout=30)
    assert result.returncode == 3
    assert not result.ok


def test_run_safe_check_raises():
    with pytest.raises(SubprocessError) as excinfo:
        run_safe([sys.executable, "-c", "import sys; sys.exit(2)"], timeout=30, check=True)
    assert excinfo.value.returncode == 2


def test_run_safe_missing_binary():
    result = run_safe(["definitely-not-a-real-binary-securescan"], timeout=5)
    assert result.returncode == 127


def test_run_safe_timeout_kills_process():
    with pytest.raises(SubprocessTimeout) as excinfo:
        run_safe([sys.executable, "-c", "import time; time.sleep(30)"], timeout=1)
    assert excinfo.value.timeout == 1


def test_run_safe_passes_environment():
    result = run_safe(
        [sys.executable, "-c", "import os; print(os.environ['SECURESCAN_TEST'])"],
        timeout=30,
        env={"SECURESCAN_TEST": "yes"},
    )
    assert result.stdout.strip() == "yes"
