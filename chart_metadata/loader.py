"""Loading chart metadata from packaged charts, optionally patching it on the way."""
import logging
import os
from abc import ABC, abstractmethod
from typing import BinaryIO, NewType, Optional

from chart_metadata.archive import ManifestEntry, locate_manifest
from chart_metadata.errors import PatchFileOpenError, TempWorkspaceError
from chart_metadata.metadata import ChartMetadata, parse_chart_metadata
from chart_metadata.patch import PatchOptions, apply_patch, find_patch_bin
from chart_metadata.utils.files import temp_workspace

logger = logging.getLogger(__name__)

PatchStrategyType = NewType("PatchStrategyType", str)
STRATEGY_DIRECTIVE_SCAN = PatchStrategyType("directive_scan")
STRATEGY_FILESYSTEM_ROUND_TRIP = PatchStrategyType("filesystem_round_trip")
ALL_STRATEGIES = [STRATEGY_DIRECTIVE_SCAN, STRATEGY_FILESYSTEM_ROUND_TRIP]

NAME_DIRECTIVE_MARKER = b"+name: "


class PatchStrategy(ABC):
    """
    Defines how a patch file is used to change chart metadata loaded from a manifest.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    @abstractmethod
    def requires_patch_tool(self) -> bool:
        """
        True if this strategy needs the external 'patch' binary to apply patch files.
        """
        raise NotImplementedError

    @abstractmethod
    def load(self, manifest: ManifestEntry, patch_file: Optional[str] = None) -> ChartMetadata:
        """
        Creates ChartMetadata out of the manifest, applying the patch_file if it's given.
        :param manifest: The manifest found in the chart archive.
        :param patch_file: Optional path to a unified diff file.
        :return: Loaded (and patched) metadata.
        """
        raise NotImplementedError


class DirectiveScanStrategy(PatchStrategy):
    """
    Parses the manifest first, then looks for lines adding 'name: ...' in the patch file and sets
    the chart's name to the last value found. Nothing else from the patch is applied.
    """

    requires_patch_tool = False

    def load(self, manifest: ManifestEntry, patch_file: Optional[str] = None) -> ChartMetadata:
        metadata = parse_chart_metadata(manifest.data)
        if not patch_file:
            return metadata
        try:
            f = open(patch_file, "rb")
        except OSError as e:
            raise PatchFileOpenError(patch_file, f"failed to open '{patch_file}': {e}") from e
        with f:
            for line in f:
                new_name = get_name_from_directive(line)
                if new_name is None:
                    continue
                logger.info(f"Updating chart name to '{new_name}' from patch '{patch_file}'.")
                metadata.name = new_name
        return metadata


def get_name_from_directive(line: bytes) -> Optional[str]:
    """
    Returns the chart name set by a patch line like b'+name: new-name' or None if the line
    doesn't add a name. Lines are matched as raw bytes, so the patch can use any encoding;
    bytes of the name that are not valid UTF-8 are replaced.
    """
    if NAME_DIRECTIVE_MARKER not in line:
        return None
    value = line.split(NAME_DIRECTIVE_MARKER)[-1].strip()
    return value.decode("utf-8", errors="replace") if value else None


class FilesystemRoundTripStrategy(PatchStrategy):
    """
    Writes the raw manifest to a temporary directory, applies the patch file there with the 'patch'
    tool and parses the patched file. Any part of the manifest can be changed this way.
    """

    requires_patch_tool = True

    def __init__(self, patch_options: Optional[PatchOptions] = None):
        self._patch_options = patch_options if patch_options is not None else PatchOptions()

    @property
    def patch_options(self) -> PatchOptions:
        return self._patch_options

    def load(self, manifest: ManifestEntry, patch_file: Optional[str] = None) -> ChartMetadata:
        if not patch_file:
            return parse_chart_metadata(manifest.data)
        # fail before creating anything on disk
        find_patch_bin(self._patch_options.patch_bin)
        data = self.patch_manifest(manifest, patch_file)
        return parse_chart_metadata(data)

    def patch_manifest(self, manifest: ManifestEntry, patch_file: str) -> bytes:
        """
        Applies patch_file to the raw manifest in a temporary directory.
        :return: Content of the manifest after patching.
        """
        with temp_workspace() as work_dir:
            manifest_path = os.path.join(work_dir, manifest.file_name)
            try:
                with open(manifest_path, "wb") as f:
                    f.write(manifest.data)
            except OSError as e:
                raise TempWorkspaceError(f"can't write '{manifest_path}': {e}") from e
            logger.info(f"Applying patch '{patch_file}' to '{manifest.member_name}'.")
            apply_patch(patch_file, work_dir, self._patch_options)
            try:
                with open(manifest_path, "rb") as f:
                    return f.read()
            except OSError as e:
                raise TempWorkspaceError(f"can't read patched '{manifest_path}': {e}") from e


def load_metadata_tgz(
    stream: BinaryIO,
    patch_file: Optional[str] = None,
    strategy: Optional[PatchStrategy] = None,
    max_manifest_size: Optional[int] = None,
) -> ChartMetadata:
    """
    Loads chart metadata from a .tgz chart package.

    If metadata can't be parsed, DeserializationError is raised; it holds the partially loaded
    metadata in its `metadata` attribute.
    :param stream: Readable binary stream with the gzip compressed tar archive.
    :param patch_file: Optional path to a unified diff changing the chart's Chart.yaml.
    :param strategy: How the patch is applied; defaults to FilesystemRoundTripStrategy.
    :param max_manifest_size: Optional size limit (in bytes) for the manifest file.
    :return: The loaded ChartMetadata.
    """
    if strategy is None:
        strategy = FilesystemRoundTripStrategy()
    manifest = locate_manifest(stream, max_manifest_size)
    return strategy.load(manifest, patch_file)


def load_metadata_file(
    archive_path: str,
    patch_file: Optional[str] = None,
    strategy: Optional[PatchStrategy] = None,
    max_manifest_size: Optional[int] = None,
) -> ChartMetadata:
    """
    Same as load_metadata_tgz, but reads the chart package from archive_path.
    """
    with open(archive_path, "rb") as f:
        return load_metadata_tgz(f, patch_file, strategy, max_manifest_size)
