"""This is a module that just hosts dependency injection elements."""
from dependency_injector import containers, providers

from chart_metadata.loader import DirectiveScanStrategy, FilesystemRoundTripStrategy
from chart_metadata.patch import PatchOptions


class ComponentsContainer(containers.DeclarativeContainer):
    """
    A dependency injection container for easily switching the strategy used to apply patches.
    """

    config = providers.Configuration()

    patch_options = providers.Factory(
        PatchOptions,
        strip=config.patch_strip,
        fuzz=config.patch_fuzz,
        timeout=config.patch_timeout,
    )

    patch_strategy = providers.Selector(
        config.patch_strategy,
        directive_scan=providers.Factory(DirectiveScanStrategy),
        filesystem_round_trip=providers.Factory(FilesystemRoundTripStrategy, patch_options=patch_options),
    )
