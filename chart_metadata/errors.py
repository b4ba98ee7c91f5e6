"""Errors returned by chart_metadata"""
from typing import Optional, TYPE_CHECKING

from step_exec_lib.errors import Error

if TYPE_CHECKING:
    from chart_metadata.metadata import ChartMetadata


class ArchiveError(Error):
    """
    Base class for all the problems found when reading a chart archive.
    """


class DecompressionError(ArchiveError):
    """
    The input stream is not a valid gzip stream.
    """


class ArchiveTraversalError(ArchiveError):
    """
    The tar archive is corrupted or truncated.
    """


class ManifestNotFoundError(ArchiveError):
    """
    The whole archive was scanned and no Chart.yaml or Chart.yml was found.
    """


class ManifestReadError(ArchiveError):
    """
    The manifest entry was found, but its content can't be read.
    """


class DeserializationError(Error):
    """
    Manifest bytes are not valid YAML or don't match the expected Chart.yaml shape. The partially
    loaded metadata is available in the `metadata` attribute.
    """

    def __init__(self, message: str, metadata: "ChartMetadata"):
        super().__init__(message)
        self.metadata = metadata


class PatchError(Error):
    """
    Base class for errors related to applying patches to chart metadata.
    """


class PatchToolUnavailableError(PatchError):
    """
    The external 'patch' binary can't be found in PATH.
    """


class PatchFileOpenError(PatchError):
    """
    The patch file doesn't exist or is not readable.
    """

    def __init__(self, patch_file: str, message: str):
        super().__init__(message)
        self.patch_file = patch_file


class PatchApplicationError(PatchError):
    """
    The external 'patch' tool failed. Its output is logged, not included in the error.
    """

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class TempWorkspaceError(Error):
    """
    Creating, writing or reading the temporary directory used to patch the manifest failed.
    """
