import semver


def parse_chart_version(version: str) -> semver.Version:
    """
    Parses a chart version the way helm accepts it: an optional 'v' prefix is allowed and
    missing minor and patch numbers default to 0.
    :param version: The version string.
    :return: Parsed semver.Version. Raises ValueError if the string is not a valid version.
    """
    if version.startswith("v"):
        version = version[1:]
    return semver.Version.parse(version, optional_minor_and_patch=True)
