"""Finding the Chart.yaml manifest inside of a packaged (.tgz) chart."""
import gzip
import logging
import posixpath
import tarfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Optional

from chart_metadata.errors import (
    ArchiveTraversalError,
    DecompressionError,
    ManifestNotFoundError,
    ManifestReadError,
)
from chart_metadata.metadata import CHART_YAML, MANIFEST_FILE_NAMES

logger = logging.getLogger(__name__)


@dataclass
class ManifestEntry:
    # base name of the matched archive member, one of MANIFEST_FILE_NAMES
    file_name: str
    # path of the member inside the archive
    member_name: str
    data: bytes


class _StrictTarInfo(tarfile.TarInfo):
    """
    TarInfo that reports a broken header instead of letting the archive end silently on it.
    """

    @classmethod
    def fromtarfile(cls, tarfile_obj: tarfile.TarFile) -> tarfile.TarInfo:
        try:
            return super().fromtarfile(tarfile_obj)
        # end-of-archive marker, or the stream ending exactly on a block boundary
        except (tarfile.EOFHeaderError, tarfile.EmptyHeaderError):
            raise
        except tarfile.HeaderError as e:
            raise ArchiveTraversalError(f"can't read archive: bad header at offset {tarfile_obj.offset}: {e}") from e


def is_manifest_member(member: tarfile.TarInfo) -> bool:
    if not member.isreg():
        return False
    return posixpath.basename(member.name.rstrip("/")) in MANIFEST_FILE_NAMES


def _open_decompressed(stream: BinaryIO) -> gzip.GzipFile:
    gz = gzip.GzipFile(fileobj=stream, mode="rb")
    try:
        # force reading of the gzip header, so we can tell a bad stream from a bad archive
        head = gz.peek(1)
    except (OSError, EOFError, zlib.error) as e:
        gz.close()
        raise DecompressionError(f"not a valid gzip stream: {e}") from e
    # a valid tar archive is never empty, so this is either no input at all or a gzip wrapping nothing
    if not head:
        gz.close()
        raise DecompressionError("not a valid gzip stream: no data")
    return gz


def locate_manifest(stream: BinaryIO, max_size: Optional[int] = None) -> ManifestEntry:
    """
    Scans a gzip compressed tar stream and returns the content of the first regular file named
    'Chart.yaml' or 'Chart.yml' (directories in the member's path are ignored). The stream is read
    sequentially and scanning stops on the first match.
    :param stream: A readable binary stream with the .tgz content.
    :param max_size: If set, manifests larger than this number of bytes are rejected.
    :return: ManifestEntry with the manifest's name and content.
    """
    with _open_decompressed(stream) as gz:
        try:
            tar = tarfile.open(fileobj=gz, mode="r|", tarinfo=_StrictTarInfo)
        except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
            raise ArchiveTraversalError(f"can't read archive: {e}") from e
        with tar:
            while True:
                try:
                    member = tar.next()
                except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
                    raise ArchiveTraversalError(f"can't read archive: {e}") from e
                if member is None:
                    raise ManifestNotFoundError(f"{CHART_YAML} not found")
                if not is_manifest_member(member):
                    logger.debug(f"Skipping archive member '{member.name}'.")
                    continue
                logger.debug(f"Found chart manifest '{member.name}' ({member.size} bytes).")
                return ManifestEntry(
                    file_name=posixpath.basename(member.name.rstrip("/")),
                    member_name=member.name,
                    data=_read_member(tar, member, max_size),
                )


def _read_member(tar: tarfile.TarFile, member: tarfile.TarInfo, max_size: Optional[int]) -> bytes:
    if max_size is not None and member.size > max_size:
        raise ManifestReadError(f"'{member.name}' is {member.size} bytes, which is more than the limit of {max_size}")
    try:
        f = tar.extractfile(member)
        if f is None:
            raise ManifestReadError(f"can't read '{member.name}'")
        with f:
            return f.read()
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        raise ManifestReadError(f"can't read '{member.name}': {e}") from e
