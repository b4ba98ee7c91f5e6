from chart_metadata.archive import ManifestEntry, locate_manifest
from chart_metadata.loader import (
    DirectiveScanStrategy,
    FilesystemRoundTripStrategy,
    PatchStrategy,
    load_metadata_file,
    load_metadata_tgz,
)
from chart_metadata.metadata import ChartMetadata, parse_chart_metadata
from chart_metadata.patch import PatchOptions, apply_patch

__all__ = [
    "ChartMetadata",
    "DirectiveScanStrategy",
    "FilesystemRoundTripStrategy",
    "ManifestEntry",
    "PatchOptions",
    "PatchStrategy",
    "apply_patch",
    "load_metadata_file",
    "load_metadata_tgz",
    "locate_manifest",
    "parse_chart_metadata",
]
