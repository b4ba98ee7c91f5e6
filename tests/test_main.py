import pytest

from chart_metadata.__main__ import get_global_config_parser, get_pipeline, validate_global_config
from step_exec_lib.errors import ConfigError


def _parse(args):
    config_parser = get_global_config_parser()
    for step in get_pipeline():
        step.initialize_config(config_parser)
    return config_parser.parse_known_args(args=args)[0]


def test_global_config_defaults() -> None:
    config = _parse([])
    assert config.debug is False
    assert config.steps == ["all"]
    assert config.skip_steps == []
    validate_global_config(config)


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHART_METADATA_PATCH_STRATEGY", "directive_scan")
    monkeypatch.setenv("CHART_METADATA_CHART_ARCHIVE", "chart.tgz")

    config = _parse([])

    assert config.patch_strategy == "directive_scan"
    assert config.chart_archive == "chart.tgz"


@pytest.mark.parametrize(
    "args,bad_option",
    [
        (["--skip-steps", "all"], "skip-steps"),
        (["--steps", "build"], "steps"),
        (["--skip-steps", "load", "bogus"], "steps"),
    ],
)
def test_invalid_steps(args, bad_option) -> None:
    config = _parse(args)
    with pytest.raises(ConfigError) as e:
        validate_global_config(config)
    assert e.value.config_option == bad_option
