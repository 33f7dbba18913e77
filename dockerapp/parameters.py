"""Application parameters: loading, flattening, expanding and merging."""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Iterable, Mapping
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INDEX_PATTERN = re.compile(r"[+-]?[0-9]+\Z")
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class ParametersError(ValueError):
    """Raised when parameters cannot be loaded, expanded or merged."""


class _YamlLoader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as plain strings."""


_YamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _parse_yaml(text: str) -> Any:
    """Return the first YAML document of ``text``, or None when there is none."""
    return next(yaml.load_all(text, Loader=_YamlLoader), None)


def _format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number == 0:
        return "-0" if math.copysign(1.0, number) < 0 else "0"
    value = Decimal(repr(number)).normalize()
    sign, digits, exponent = value.as_tuple()
    magnitude = len(digits) + exponent - 1
    if magnitude < -4 or magnitude >= 21:
        head = str(digits[0])
        tail = "".join(str(d) for d in digits[1:])
        mantissa = f"{head}.{tail}" if tail else head
        exp_sign = "+" if magnitude >= 0 else "-"
        return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(magnitude):02d}"
    return format(value, "f")


def _go_value(value: Any) -> str:
    """Render a value the way a default textual formatting would."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        entries = sorted((_go_value(k), _go_value(v)) for k, v in value.items())
        return "map[" + " ".join(f"{k}:{v}" for k, v in entries) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_go_value(item) for item in value) + "]"
    return str(value)


def _go_repr(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return _go_value(value)


def _go_type(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "map[string]interface {}"
    if isinstance(value, (list, tuple)):
        return "[]interface {}"
    return type(value).__name__


def _key_text(key: Any) -> str:
    return key if isinstance(key, str) else _go_value(key)


class Parameters(dict):
    """A nested mapping of parameter names to values."""

    def flatten(self) -> dict[str, str]:
        """Return a one-level view with keys joined by dots."""
        return flatten(self)


def flatten(params: Mapping[str, Any]) -> dict[str, str]:
    """Flatten nested parameters into a one-level mapping of strings."""
    flat: dict[str, str] = {}
    for key, value in params.items():
        name = _key_text(key)
        if isinstance(value, str):
            flat[name] = value
        elif isinstance(value, Mapping):
            for inner_key, inner_value in flatten(value).items():
                flat[f"{name}.{inner_key}"] = inner_value
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                flat[f"{name}.{index}"] = _go_value(item)
        else:
            flat[name] = _go_value(value)
    return flat


def _slice_index(keys: list[str]) -> int | None:
    if len(keys) != 1 or not _INDEX_PATTERN.match(keys[0]):
        return None
    index = int(keys[0])
    if not _INT64_MIN <= index <= _INT64_MAX:
        return None
    return index


def _assign_key(mapping: dict, keys: list[str], value: Any) -> None:
    key, rest = keys[0], keys[1:]
    if not rest:
        if key in mapping and type(mapping[key]) is not type(value):
            raise ParametersError(
                f"key {key} is already present and value has a different type "
                f"({_go_type(mapping[key])} vs {_go_type(value)})"
            )
        mapping[key] = value
        return

    index = _slice_index(rest)
    if index is not None:
        if index < 0:
            raise ParametersError(f"invalid index {rest[0]} for key {key}")
        if key not in mapping:
            mapping[key] = []
        elif not isinstance(mapping[key], list):
            raise ParametersError(
                f"key {key} already present and not a slice ({_go_type(mapping[key])})"
            )
        items = mapping[key]
        if len(items) <= index:
            items.extend([None] * (index + 1 - len(items)))
        items[index] = value
        return

    if key not in mapping:
        mapping[key] = {}
    elif not isinstance(mapping[key], dict):
        raise ParametersError(
            f"key {key} already present and not a map ({_go_type(mapping[key])})"
        )
    _assign_key(mapping[key], rest, value)


def from_flatten(flat: Mapping[str, str]) -> Parameters:
    """Expand a flat mapping into nested parameters, guessing value types from YAML."""
    result = Parameters()
    for key, text in flat.items():
        try:
            value = _parse_yaml(text)
        except yaml.YAMLError as exc:
            raise ParametersError(f"invalid value for {key}: {exc}") from exc
        _assign_key(result, key.split("."), value)
    return result


def _slice_type(items: Iterable[Any]) -> str | None:
    """Return the common element type of a list, or None when it is untyped."""
    kinds = {_go_type(item) for item in items if item is not None}
    return f"[]{kinds.pop()}" if len(kinds) == 1 else None


def _merge_into(dst: dict, src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if value is None:
            continue
        current = dst.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            _merge_into(current, value)
        elif isinstance(value, (list, tuple)) and isinstance(current, list):
            src_type, dst_type = _slice_type(value), _slice_type(current)
            if src_type and dst_type and src_type != dst_type:
                raise ParametersError(
                    f"cannot override two slices with different type ({dst_type}, {src_type})"
                )
            dst[key] = copy.deepcopy(list(value))
        else:
            dst[key] = copy.deepcopy(value)


def merge(*args: Mapping[str, Any]) -> Parameters:
    """Merge parameters in order, later values overriding earlier ones."""
    result = Parameters()
    for params in args:
        try:
            _merge_into(result, params)
        except ParametersError as exc:
            raise ParametersError(f"cannot merge parameters: {exc}") from exc
    return result


def _convert_keys(value: Any, key_prefix: str) -> Any:
    if isinstance(value, dict):
        converted = {}
        for key, entry in value.items():
            if not isinstance(key, str):
                location = "at top level" if not key_prefix else f"in {key_prefix}"
                raise ParametersError(f"Non-string key {location}: {_go_repr(key)}")
            child_prefix = key if not key_prefix else f"{key_prefix}.{key}"
            converted[key] = _convert_keys(entry, child_prefix)
        return converted
    if isinstance(value, list):
        return [
            _convert_keys(entry, f"{key_prefix}[{index}]")
            for index, entry in enumerate(value)
        ]
    return value


def load(data: bytes | str, prefix: str = "") -> Parameters:
    """Load YAML parameters, always returning them in expanded form."""
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    try:
        raw = _parse_yaml(text)
    except yaml.YAMLError as exc:
        raise ParametersError(f"failed to read parameters: {exc}") from exc
    if raw is None:
        return Parameters()
    if not isinstance(raw, dict):
        raise ParametersError(
            f"failed to read parameters: cannot unmarshal {_go_type(raw)} into a mapping"
        )
    params = _convert_keys(raw, "")
    if prefix:
        params = {prefix: params}
    return from_flatten(flatten(params))


def load_multiple(datas: Iterable[bytes | str], prefix: str = "") -> Parameters:
    """Load several YAML documents and merge them in order."""
    result = Parameters()
    for data in datas:
        result = merge(result, load(data, prefix))
    return result


def load_file(path: str | Path, prefix: str = "") -> Parameters:
    """Load parameters from a file."""
    return load(Path(path).read_bytes(), prefix)


def load_files(paths: Iterable[str | Path], prefix: str = "") -> Parameters:
    """Load parameters from several files and merge them in order."""
    result = Parameters()
    for path in paths:
        result = merge(result, load_file(path, prefix))
    return result