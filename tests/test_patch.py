import logging
import os
import pathlib
import shutil
import subprocess  # nosec

import pytest
from pytest_mock import MockerFixture

from chart_metadata.errors import PatchApplicationError, PatchFileOpenError, PatchToolUnavailableError
from chart_metadata.patch import PatchOptions, apply_patch, find_patch_bin
from tests.helpers import NOT_MATCHING_PATCH, ORIGINAL_CHART_YAML, RENAME_PATCH

requires_patch_bin = pytest.mark.skipif(shutil.which("patch") is None, reason="'patch' executable not found")


@pytest.fixture
def chart_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    work_dir = tmp_path / "chart"
    work_dir.mkdir()
    (work_dir / "Chart.yaml").write_bytes(ORIGINAL_CHART_YAML)
    return work_dir


def _write_patch(tmp_path: pathlib.Path, content: str) -> str:
    patch_path = tmp_path / "chart.patch"
    patch_path.write_text(content)
    return str(patch_path)


@pytest.mark.parametrize(
    "options,expected_args",
    [
        (PatchOptions(), ["/bin/patch", "-E", "-p1"]),
        (PatchOptions(strip=0, remove_empty_files=False), ["/bin/patch", "-p0"]),
        (PatchOptions(fuzz=0), ["/bin/patch", "-E", "-p1", "--fuzz=0"]),
    ],
    ids=["defaults", "no strip", "fuzz"],
)
def test_patch_options_args(options: PatchOptions, expected_args: list) -> None:
    assert options.get_args("/bin/patch") == expected_args


def test_missing_patch_bin_fails_before_opening_patch_file(mocker: MockerFixture, chart_dir: pathlib.Path) -> None:
    mocker.patch("shutil.which", return_value=None)
    mock_open = mocker.patch("builtins.open")

    with pytest.raises(PatchToolUnavailableError):
        apply_patch("does-not-exist.patch", str(chart_dir))
    mock_open.assert_not_called()


def test_find_patch_bin_uses_configured_name(mocker: MockerFixture) -> None:
    mock_which = mocker.patch("shutil.which", return_value="/opt/bin/gpatch")

    assert find_patch_bin("gpatch") == "/opt/bin/gpatch"
    mock_which.assert_called_once_with("gpatch")


def test_missing_patch_file(mocker: MockerFixture, chart_dir: pathlib.Path) -> None:
    mocker.patch("shutil.which", return_value="/usr/bin/patch")

    with pytest.raises(PatchFileOpenError) as e:
        apply_patch(str(chart_dir / "missing.patch"), str(chart_dir))
    assert e.value.patch_file == str(chart_dir / "missing.patch")


@pytest.mark.parametrize("content", ["", "\n\n  \n"], ids=["empty", "whitespace"])
def test_empty_patch_is_noop(
    mocker: MockerFixture, tmp_path: pathlib.Path, chart_dir: pathlib.Path, content: str
) -> None:
    mocker.patch("shutil.which", return_value="/usr/bin/patch")
    mock_run = mocker.patch("chart_metadata.patch.run_and_log")

    apply_patch(_write_patch(tmp_path, content), str(chart_dir))

    mock_run.assert_not_called()
    assert (chart_dir / "Chart.yaml").read_bytes() == ORIGINAL_CHART_YAML


def test_patch_tool_invocation(mocker: MockerFixture, tmp_path: pathlib.Path, chart_dir: pathlib.Path) -> None:
    mocker.patch("shutil.which", return_value="/usr/bin/patch")
    mock_run = mocker.patch(
        "chart_metadata.patch.run_and_log",
        return_value=subprocess.CompletedProcess([], 0, stdout="patching file Chart.yaml\n"),
    )

    apply_patch(_write_patch(tmp_path, RENAME_PATCH), str(chart_dir), PatchOptions(timeout=5))

    mock_run.assert_called_once()
    args, kwargs = mock_run.call_args
    assert args[0] == ["/usr/bin/patch", "-E", "-p1"]
    assert kwargs["cwd"] == str(chart_dir)
    assert kwargs["stdout"] == subprocess.PIPE
    assert kwargs["stderr"] == subprocess.STDOUT
    assert kwargs["timeout"] == 5
    assert kwargs["stdin"].name == os.path.join(tmp_path, "chart.patch")


def test_patch_tool_failure_is_logged(
    mocker: MockerFixture, caplog: pytest.LogCaptureFixture, tmp_path: pathlib.Path, chart_dir: pathlib.Path
) -> None:
    mocker.patch("shutil.which", return_value="/usr/bin/patch")
    mocker.patch(
        "chart_metadata.patch.run_and_log",
        return_value=subprocess.CompletedProcess([], 1, stdout="Hunk #1 FAILED at 1.\n"),
    )

    with caplog.at_level(logging.ERROR, logger="chart_metadata.patch"):
        with pytest.raises(PatchApplicationError) as e:
            apply_patch(_write_patch(tmp_path, RENAME_PATCH), str(chart_dir))

    assert e.value.returncode == 1
    assert str(e.value).startswith("unable to apply patch:")
    assert "Hunk #1 FAILED" not in str(e.value)
    assert "Hunk #1 FAILED" in caplog.text


def test_patch_tool_timeout(mocker: MockerFixture, tmp_path: pathlib.Path, chart_dir: pathlib.Path) -> None:
    mocker.patch("shutil.which", return_value="/usr/bin/patch")
    mocker.patch(
        "chart_metadata.patch.run_and_log",
        side_effect=subprocess.TimeoutExpired(["patch"], 0.5, output="waiting"),
    )

    with pytest.raises(PatchApplicationError) as e:
        apply_patch(_write_patch(tmp_path, RENAME_PATCH), str(chart_dir), PatchOptions(timeout=0.5))
    assert "timed out" in str(e.value)


@requires_patch_bin
def test_apply_patch(tmp_path: pathlib.Path, chart_dir: pathlib.Path) -> None:
    apply_patch(_write_patch(tmp_path, RENAME_PATCH), str(chart_dir))

    assert (chart_dir / "Chart.yaml").read_text() == "name: patched\nversion: 1.0.0\n"


@requires_patch_bin
def test_apply_not_matching_patch(tmp_path: pathlib.Path, chart_dir: pathlib.Path) -> None:
    with pytest.raises(PatchApplicationError) as e:
        apply_patch(_write_patch(tmp_path, NOT_MATCHING_PATCH), str(chart_dir), PatchOptions(timeout=30))

    assert e.value.returncode != 0
    assert (chart_dir / "Chart.yaml").read_bytes() == ORIGINAL_CHART_YAML


def test_patch_tool_combined_output_is_logged(
    mocker: MockerFixture, caplog: pytest.LogCaptureFixture, tmp_path: pathlib.Path, chart_dir: pathlib.Path
) -> None:
    mocker.patch("shutil.which", return_value="/usr/bin/patch")
    mock_run = mocker.patch(
        "subprocess.run",
        return_value=subprocess.CompletedProcess([], 0, stdout="patching file Chart.yaml\n", stderr=None),
    )

    with caplog.at_level(logging.INFO):
        apply_patch(_write_patch(tmp_path, RENAME_PATCH), str(chart_dir))

    mock_run.assert_called_once()
    assert mock_run.call_args.kwargs["stderr"] == subprocess.STDOUT
    assert "patching file Chart.yaml" in caplog.text
    assert "printed anything on 'stderr'" not in caplog.text
