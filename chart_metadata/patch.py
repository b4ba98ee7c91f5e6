"""Applying unified diff patches with the system 'patch' tool."""
import logging
import shutil
import subprocess  # nosec: we need it to invoke binaries from system
from dataclasses import dataclass
from typing import List, Optional, Union

from step_exec_lib.utils.processes import run_and_log

from chart_metadata.errors import PatchApplicationError, PatchFileOpenError, PatchToolUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_PATCH_BIN = "patch"


@dataclass
class PatchOptions:
    # number of leading path components stripped from file names in the patch ('-p')
    strip: int = 1
    # remove files that are empty after patching ('-E')
    remove_empty_files: bool = True
    # max number of context lines that can be ignored when matching a hunk ('--fuzz'); None for tool's default
    fuzz: Optional[int] = None
    # seconds to wait for the tool to finish; None waits forever
    timeout: Optional[float] = None
    patch_bin: str = DEFAULT_PATCH_BIN

    def get_args(self, patch_bin_path: str) -> List[str]:
        args = [patch_bin_path]
        if self.remove_empty_files:
            args.append("-E")
        args.append(f"-p{self.strip}")
        if self.fuzz is not None:
            args.append(f"--fuzz={self.fuzz}")
        return args


def find_patch_bin(patch_bin: str = DEFAULT_PATCH_BIN) -> str:
    """
    Finds the patch executable in PATH.
    :param patch_bin: The name of the executable.
    :return: Full path to the executable. Raises PatchToolUnavailableError if not found.
    """
    path = shutil.which(patch_bin)
    if path is None:
        raise PatchToolUnavailableError(
            f"can't apply patches, as '{patch_bin}' executable is not available. Please make sure it's installed."
        )
    return path


def apply_patch(patch_file: str, destination_dir: str, options: Optional[PatchOptions] = None) -> None:
    """
    Applies a unified diff from patch_file to files in destination_dir. Files in destination_dir are
    modified in place.

    Output of the 'patch' tool (stdout and stderr combined) is logged, at error level if it fails.
    :param patch_file: Path to the unified diff file.
    :param destination_dir: The directory the patch is applied in.
    :param options: PatchOptions to use; defaults are '-E -p1'.
    :return: None
    """
    if options is None:
        options = PatchOptions()
    patch_bin_path = find_patch_bin(options.patch_bin)

    try:
        f = open(patch_file, "rb")
    except OSError as e:
        raise PatchFileOpenError(patch_file, f"failed to open '{patch_file}': {e}") from e
    with f:
        try:
            is_empty = f.read().strip() == b""
            f.seek(0)
        except OSError as e:
            raise PatchFileOpenError(patch_file, f"failed to read '{patch_file}': {e}") from e
        if is_empty:
            logger.info(f"Patch file '{patch_file}' is empty, nothing to apply.")
            return
        args = options.get_args(patch_bin_path)
        try:
            run_res = run_and_log(
                args,
                cwd=destination_dir,
                stdin=f,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=options.timeout,
            )  # nosec, the tool comes from PATH and args are built above
        except subprocess.TimeoutExpired as e:
            logger.error(f"'{options.patch_bin}' didn't finish in {options.timeout} s and was killed.")
            _log_output(e.output)
            raise PatchApplicationError(f"unable to apply patch: timed out after {options.timeout} s") from e

    if run_res.returncode != 0:
        _log_output(run_res.stdout)
        raise PatchApplicationError(
            f"unable to apply patch: '{options.patch_bin}' exited with code {run_res.returncode}",
            run_res.returncode,
        )
    # stderr is merged into stdout, so this is everything the tool printed
    for line in (run_res.stdout or "").splitlines():
        logger.info(line)
    logger.debug(f"Patch '{patch_file}' applied in '{destination_dir}'.")


def _log_output(output: Optional[Union[str, bytes]]) -> None:
    if not output:
        return
    if isinstance(output, bytes):
        output = output.decode(errors="replace")
    logger.error(f"\n{output}")
