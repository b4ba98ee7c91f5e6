"""Chart.yaml metadata record and its YAML (de)serialization."""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from chart_metadata.errors import DeserializationError

logger = logging.getLogger(__name__)

CHART_YAML = "Chart.yaml"
CHART_YML = "Chart.yml"
MANIFEST_FILE_NAMES = (CHART_YAML, CHART_YML)


@dataclass
class Maintainer:
    name: str = ""
    email: str = ""
    url: str = ""


@dataclass
class Dependency:
    name: str = ""
    version: str = ""
    repository: str = ""
    condition: str = ""
    tags: List[str] = field(default_factory=list)
    enabled: bool = False
    import_values: List[Any] = field(default_factory=list)
    alias: str = ""


@dataclass
class ChartMetadata:
    """
    Metadata of a helm chart, as stored in its Chart.yaml file. Keys not known here are ignored when loading.
    """

    api_version: str = ""
    name: str = ""
    version: str = ""
    kube_version: str = ""
    description: str = ""
    type: str = ""
    keywords: List[str] = field(default_factory=list)
    home: str = ""
    sources: List[str] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    maintainers: List[Maintainer] = field(default_factory=list)
    icon: str = ""
    app_version: str = ""
    deprecated: bool = False
    annotations: Dict[str, str] = field(default_factory=dict)
    condition: str = ""
    tags: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the metadata back to a dict shaped like Chart.yaml. Empty fields are omitted.
        """
        return _encode_struct(self, _chart_fields)


# a decoder gets the raw YAML value, a path used in error messages and a list to append errors to;
# it returns the decoded value or None if the value has to be skipped
_Decoder = Callable[[Any, str, List[str]], Any]
_Field = Tuple[str, str, _Decoder]


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _mismatch(errors: List[str], path: str, value: Any, expected: str) -> None:
    errors.append(f"cannot unmarshal {_type_name(value)} into field '{path}' of type {expected}")


def _decode_str(value: Any, path: str, errors: List[str]) -> Optional[str]:
    if isinstance(value, str):
        return value
    _mismatch(errors, path, value, "string")
    return None


def _decode_bool(value: Any, path: str, errors: List[str]) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    _mismatch(errors, path, value, "bool")
    return None


def _decode_any_list(value: Any, path: str, errors: List[str]) -> Optional[List[Any]]:
    if isinstance(value, list):
        return list(value)
    _mismatch(errors, path, value, "array")
    return None


def _decode_str_list(value: Any, path: str, errors: List[str]) -> Optional[List[str]]:
    if not isinstance(value, list):
        _mismatch(errors, path, value, "[]string")
        return None
    result = []
    for i, item in enumerate(value):
        decoded = None if item is None else _decode_str(item, f"{path}[{i}]", errors)
        result.append("" if decoded is None else decoded)
    return result


def _decode_str_map(value: Any, path: str, errors: List[str]) -> Optional[Dict[str, str]]:
    if not isinstance(value, dict):
        _mismatch(errors, path, value, "map[string]string")
        return None
    result = {}
    for key, item in value.items():
        decoded = None if item is None else _decode_str(item, f"{path}.{key}", errors)
        result[str(key)] = "" if decoded is None else decoded
    return result


def _decode_struct_list(cls: type, fields: List[_Field]) -> _Decoder:
    def decode(value: Any, path: str, errors: List[str]) -> Optional[List[Any]]:
        if not isinstance(value, list):
            _mismatch(errors, path, value, f"[]{cls.__name__}")
            return None
        result = []
        for i, item in enumerate(value):
            obj = cls()
            if item is not None:
                _decode_struct(obj, item, fields, f"{path}[{i}]", errors)
            result.append(obj)
        return result

    return decode


def _decode_struct(obj: Any, data: Any, fields: List[_Field], path: str, errors: List[str]) -> None:
    if not isinstance(data, dict):
        _mismatch(errors, path or "<root>", data, type(obj).__name__)
        return
    for key, attr, decoder in fields:
        if key not in data or data[key] is None:
            continue
        field_path = f"{path}.{key}" if path else key
        decoded = decoder(data[key], field_path, errors)
        if decoded is not None:
            setattr(obj, attr, decoded)


def _encode_struct(obj: Any, fields: List[_Field]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, attr, _ in fields:
        value = getattr(obj, attr)
        if not value:
            continue
        if isinstance(value, list) and isinstance(value[0], Maintainer):
            value = [_encode_struct(m, _maintainer_fields) for m in value]
        elif isinstance(value, list) and isinstance(value[0], Dependency):
            value = [_encode_struct(d, _dependency_fields) for d in value]
        result[key] = value
    return result


_maintainer_fields: List[_Field] = [
    ("name", "name", _decode_str),
    ("email", "email", _decode_str),
    ("url", "url", _decode_str),
]

_dependency_fields: List[_Field] = [
    ("name", "name", _decode_str),
    ("version", "version", _decode_str),
    ("repository", "repository", _decode_str),
    ("condition", "condition", _decode_str),
    ("tags", "tags", _decode_str_list),
    ("enabled", "enabled", _decode_bool),
    ("import-values", "import_values", _decode_any_list),
    ("alias", "alias", _decode_str),
]

_chart_fields: List[_Field] = [
    ("apiVersion", "api_version", _decode_str),
    ("name", "name", _decode_str),
    ("version", "version", _decode_str),
    ("kubeVersion", "kube_version", _decode_str),
    ("description", "description", _decode_str),
    ("type", "type", _decode_str),
    ("keywords", "keywords", _decode_str_list),
    ("home", "home", _decode_str),
    ("sources", "sources", _decode_str_list),
    ("dependencies", "dependencies", _decode_struct_list(Dependency, _dependency_fields)),
    ("maintainers", "maintainers", _decode_struct_list(Maintainer, _maintainer_fields)),
    ("icon", "icon", _decode_str),
    ("appVersion", "app_version", _decode_str),
    ("deprecated", "deprecated", _decode_bool),
    ("annotations", "annotations", _decode_str_map),
    ("condition", "condition", _decode_str),
    ("tags", "tags", _decode_str),
]


def parse_chart_metadata(data: bytes) -> ChartMetadata:
    """
    Loads ChartMetadata from the raw bytes of a Chart.yaml file.

    Fields that have a type not matching the Chart.yaml schema are skipped, but all the other
    fields are still loaded. In that case, DeserializationError is raised and the partially loaded
    metadata is available in its `metadata` attribute.
    :param data: Raw content of Chart.yaml.
    :return: The loaded ChartMetadata.
    """
    metadata = ChartMetadata()
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise DeserializationError(f"can not load {CHART_YAML}: {e}", metadata) from e
    # an empty document is a valid, empty Chart.yaml
    if raw is None:
        return metadata
    errors: List[str] = []
    _decode_struct(metadata, raw, _chart_fields, "", errors)
    if errors:
        for err in errors[1:]:
            logger.debug(f"Additional {CHART_YAML} problem: {err}")
        raise DeserializationError(f"can not load {CHART_YAML}: {errors[0]}", metadata)
    return metadata


def dump_chart_metadata(metadata: ChartMetadata) -> str:
    return yaml.safe_dump(metadata.to_dict(), sort_keys=False)
