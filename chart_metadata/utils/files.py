"""Module with file utils"""
import contextlib
import logging
import shutil
import tempfile
from typing import Iterator

from chart_metadata.errors import TempWorkspaceError

logger = logging.getLogger(__name__)

_temp_workspace_prefix = "chart-metadata-"


@contextlib.contextmanager
def temp_workspace() -> Iterator[str]:
    """
    Creates a new, uniquely named temporary directory and removes it with all its content
    when the context exits, no matter if an exception was raised or not. Failure to remove
    the directory is only logged.
    :return: Path to the created directory.
    """
    try:
        path = tempfile.mkdtemp(prefix=_temp_workspace_prefix)
    except OSError as e:
        raise TempWorkspaceError(f"can't create temporary directory: {e}") from e
    logger.debug(f"Created temporary workspace '{path}'.")
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
            logger.debug(f"Removed temporary workspace '{path}'.")
        except OSError as e:
            logger.warning(f"Can't remove temporary workspace '{path}': {e}.")
