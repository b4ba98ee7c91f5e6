"""Steps loading, validating and saving metadata of packaged helm charts."""
import argparse
import logging
import os
import posixpath
import re
import sys
from typing import Set

import configargparse
from step_exec_lib.errors import ValidationError
from step_exec_lib.steps import BuildStep, BuildStepsFilteringPipeline
from step_exec_lib.types import Context, StepType
from step_exec_lib.utils.config import get_config_value_by_cmd_line_option
from step_exec_lib.utils.files import get_file_sha256

from chart_metadata.componentscontainer import ComponentsContainer
from chart_metadata.errors import DeserializationError
from chart_metadata.loader import ALL_STRATEGIES, STRATEGY_FILESYSTEM_ROUND_TRIP, PatchStrategy, load_metadata_file
from chart_metadata.metadata import CHART_YAML, ChartMetadata, dump_chart_metadata
from chart_metadata.patch import DEFAULT_PATCH_BIN
from chart_metadata.steps.steps import STEP_LOAD, STEP_VALIDATE, STEP_OUTPUT
from chart_metadata.utils.config import parse_chart_version

logger = logging.getLogger(__name__)

context_key_chart_metadata: str = "chart_metadata"

_chart_archive_option = "--chart-archive"
_patch_file_option = "--patch-file"
_default_max_manifest_size = 10 * 1024 * 1024
_chart_types = ("application", "library")
_dependency_alias_regexp = re.compile(r"^[a-zA-Z0-9_-]+$")


def _get_loaded_metadata(source: str, context: Context) -> ChartMetadata:
    if context_key_chart_metadata not in context:
        raise ValidationError(source, f"No chart metadata was loaded, make sure the '{STEP_LOAD}' step is enabled.")
    return context[context_key_chart_metadata]


class ChartArchiveValidator(BuildStep):
    """
    Checks if the configured chart archive and patch file exist.
    """

    @property
    def steps_provided(self) -> Set[StepType]:
        return {STEP_LOAD}

    def initialize_config(self, config_parser: configargparse.ArgParser) -> None:
        config_parser.add_argument(
            "-a",
            _chart_archive_option,
            required=False,
            help="Path to the packaged (.tgz) helm chart to load metadata from.",
        )
        config_parser.add_argument(
            _patch_file_option,
            required=False,
            help=f"Path to an optional unified diff file to apply to chart's {CHART_YAML}.",
        )

    def pre_run(self, config: argparse.Namespace) -> None:
        chart_archive = get_config_value_by_cmd_line_option(config, _chart_archive_option)
        if not chart_archive:
            raise ValidationError(self.name, f"'{_chart_archive_option}' is required.")
        if not os.path.isfile(chart_archive):
            raise ValidationError(self.name, f"Chart archive '{chart_archive}' doesn't exist.")
        patch_file = get_config_value_by_cmd_line_option(config, _patch_file_option)
        if patch_file and not os.path.isfile(patch_file):
            raise ValidationError(self.name, f"Patch file '{patch_file}' doesn't exist.")

    def run(self, config: argparse.Namespace, context: Context) -> None:
        pass


class ChartMetadataLoader(BuildStep):
    """
    Loads metadata from the chart archive and patches it with the configured strategy.
    """

    @property
    def steps_provided(self) -> Set[StepType]:
        return {STEP_LOAD}

    def initialize_config(self, config_parser: configargparse.ArgParser) -> None:
        config_parser.add_argument(
            "--patch-strategy",
            required=False,
            default=STRATEGY_FILESYSTEM_ROUND_TRIP,
            choices=ALL_STRATEGIES,
            help="How to apply the patch file: 'filesystem_round_trip' applies the whole patch with the "
            "'patch' tool before parsing, 'directive_scan' only takes chart's name from '+name: ' lines "
            "of the patch after parsing.",
        )
        config_parser.add_argument(
            "--patch-strip",
            required=False,
            default=1,
            type=int,
            help="Number of leading path components to strip from file names in the patch file.",
        )
        config_parser.add_argument(
            "--patch-fuzz",
            required=False,
            type=int,
            help="Max fuzz factor used by 'patch' when matching hunks. Tool's default if not set.",
        )
        config_parser.add_argument(
            "--patch-timeout",
            required=False,
            type=float,
            help="Time in seconds to wait for the 'patch' tool. Waits forever if not set.",
        )
        config_parser.add_argument(
            "--max-manifest-size",
            required=False,
            default=_default_max_manifest_size,
            type=int,
            help=f"Max allowed size of {CHART_YAML} in the archive (in bytes). Use 0 to disable the limit.",
        )

    def pre_run(self, config: argparse.Namespace) -> None:
        if config.patch_strip < 0:
            raise ValidationError(self.name, "'--patch-strip' can't be negative.")
        if config.patch_file and self._get_strategy(config).requires_patch_tool:
            self._assert_binary_present_in_path(DEFAULT_PATCH_BIN)

    def run(self, config: argparse.Namespace, context: Context) -> None:
        logger.info(f"Loading chart metadata from '{config.chart_archive}'.")
        logger.debug(f"Chart archive SHA256: {get_file_sha256(config.chart_archive)}")
        max_size = config.max_manifest_size if config.max_manifest_size > 0 else None
        try:
            metadata = load_metadata_file(
                config.chart_archive,
                config.patch_file,
                self._get_strategy(config),
                max_size,
            )
        except DeserializationError as e:
            logger.debug(f"Partially loaded metadata: {e.metadata}")
            raise
        logger.info(f"Loaded metadata of chart '{metadata.name}' in version '{metadata.version}'.")
        context[context_key_chart_metadata] = metadata

    @staticmethod
    def _get_strategy(config: argparse.Namespace) -> PatchStrategy:
        container = ComponentsContainer()
        container.config.from_dict(
            {
                "patch_strategy": config.patch_strategy,
                "patch_strip": config.patch_strip,
                "patch_fuzz": config.patch_fuzz,
                "patch_timeout": config.patch_timeout,
            }
        )
        return container.patch_strategy()


class ChartMetadataValidator(BuildStep):
    """
    Checks if the loaded metadata is something helm would accept.
    """

    @property
    def steps_provided(self) -> Set[StepType]:
        return {STEP_VALIDATE}

    def run(self, config: argparse.Namespace, context: Context) -> None:
        metadata = _get_loaded_metadata(self.name, context)
        self.validate(metadata)
        logger.info(f"Metadata of chart '{metadata.name}' is valid.")

    def validate(self, metadata: ChartMetadata) -> None:
        if not metadata.api_version:
            raise ValidationError(self.name, "'apiVersion' is required")
        if not metadata.name:
            raise ValidationError(self.name, "'name' is required")
        if metadata.name != posixpath.basename(metadata.name) or "\\" in metadata.name:
            raise ValidationError(self.name, f"'name' '{metadata.name}' can't contain path separators")
        if not metadata.version:
            raise ValidationError(self.name, "'version' is required")
        try:
            parse_chart_version(metadata.version)
        except ValueError:
            raise ValidationError(self.name, f"'version' '{metadata.version}' is not a valid SemVer")
        if metadata.type and metadata.type not in _chart_types:
            raise ValidationError(self.name, f"'type' must be one of {list(_chart_types)}, got '{metadata.type}'")
        for maintainer in metadata.maintainers:
            if not maintainer.name:
                raise ValidationError(self.name, "each maintainer requires a 'name'")
        for dependency in metadata.dependencies:
            if not dependency.name:
                raise ValidationError(self.name, "each dependency requires a 'name'")
            if dependency.alias and not _dependency_alias_regexp.match(dependency.alias):
                raise ValidationError(
                    self.name, f"dependency '{dependency.name}' has disallowed characters in the alias"
                )


class ChartMetadataWriter(BuildStep):
    """
    Saves the loaded metadata as YAML.
    """

    @property
    def steps_provided(self) -> Set[StepType]:
        return {STEP_OUTPUT}

    def initialize_config(self, config_parser: configargparse.ArgParser) -> None:
        config_parser.add_argument(
            "-o",
            "--output",
            required=False,
            default="-",
            help=f"Path of a file to save the resulting {CHART_YAML} to. Use '-' for stdout.",
        )

    def run(self, config: argparse.Namespace, context: Context) -> None:
        metadata = _get_loaded_metadata(self.name, context)
        out = dump_chart_metadata(metadata)
        if config.output == "-":
            sys.stdout.write(out)
            return
        with open(config.output, "w") as file:
            logger.info(f"Saving chart metadata to '{config.output}'.")
            file.write(out)


class ChartMetadataFilteringPipeline(BuildStepsFilteringPipeline):
    """
    Pipeline that combines all the steps required to load chart metadata.
    """

    def __init__(self) -> None:
        super().__init__(
            [
                ChartArchiveValidator(),
                ChartMetadataLoader(),
                ChartMetadataValidator(),
                ChartMetadataWriter(),
            ],
            "Chart metadata options",
        )
