"""Application metadata: the content of the metadata file."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from .specification import METADATA_VERSION, SpecificationError, validate

_NULL_TAG = "tag:yaml.org,2002:null"
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class MetadataError(ValueError):
    """Raised when metadata cannot be parsed, validated or decoded."""


class _YamlLoader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as plain strings."""


_YamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class Maintainer:
    """One of the application's maintainers."""

    name: str = ""
    email: str = ""

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>" if self.email else self.name


@dataclass
class AppMetadata:
    """The data found inside the metadata file."""

    version: str = ""
    name: str = ""
    description: str = ""
    maintainers: list[Maintainer] = field(default_factory=list)


def format_maintainers(maintainers: Iterable[Maintainer]) -> str:
    """Return a comma separated description of maintainers."""
    return ", ".join(str(maintainer) for maintainer in maintainers)


def _check_keys(value: Any, key_prefix: str) -> None:
    if isinstance(value, dict):
        for key, entry in value.items():
            if not isinstance(key, str):
                location = "at top level" if not key_prefix else f"in {key_prefix}"
                raise MetadataError(
                    f"failed to parse application metadata: Non-string key {location}: {key!r}"
                )
            _check_keys(entry, key if not key_prefix else f"{key_prefix}.{key}")
    elif isinstance(value, list):
        for index, entry in enumerate(value):
            _check_keys(entry, f"{key_prefix}[{index}]")


def _short_tag(node: yaml.Node) -> str:
    return node.tag.replace("tag:yaml.org,2002:", "!!")


def _scalar_text(node: yaml.Node) -> str:
    if not isinstance(node, yaml.ScalarNode):
        raise MetadataError(
            f"failed to unmarshal metadata: cannot unmarshal {_short_tag(node)} into string"
        )
    return "" if node.tag == _NULL_TAG else node.value


def _is_null(node: yaml.Node) -> bool:
    return isinstance(node, yaml.ScalarNode) and node.tag == _NULL_TAG


def _decode_maintainer(node: yaml.Node) -> Maintainer:
    if _is_null(node):
        return Maintainer()
    if not isinstance(node, yaml.MappingNode):
        raise MetadataError(
            f"failed to unmarshal metadata: cannot unmarshal {_short_tag(node)} into a maintainer"
        )
    maintainer = Maintainer()
    for key_node, value_node in node.value:
        if key_node.value == "name":
            maintainer.name = _scalar_text(value_node)
        elif key_node.value == "email":
            maintainer.email = _scalar_text(value_node)
    return maintainer


def _decode_maintainers(node: yaml.Node) -> list[Maintainer]:
    if _is_null(node):
        return []
    if not isinstance(node, yaml.SequenceNode):
        raise MetadataError(
            f"failed to unmarshal metadata: cannot unmarshal {_short_tag(node)} into a list"
        )
    return [_decode_maintainer(item) for item in node.value]


def _decode(node: yaml.MappingNode) -> AppMetadata:
    meta = AppMetadata()
    for key_node, value_node in node.value:
        key = key_node.value
        if key == "version":
            meta.version = _scalar_text(value_node)
        elif key == "name":
            meta.name = _scalar_text(value_node)
        elif key == "description":
            meta.description = _scalar_text(value_node)
        elif key == "maintainers":
            meta.maintainers = _decode_maintainers(value_node)
    return meta


def load(data: bytes | str) -> AppMetadata:
    """Validate metadata and load it into an AppMetadata."""
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    try:
        document = next(yaml.load_all(text, Loader=_YamlLoader), None)
    except yaml.YAMLError as exc:
        raise MetadataError(f"failed to parse application metadata: {exc}") from exc
    if not isinstance(document, dict):
        raise MetadataError(
            "failed to parse application metadata: Top-level object must be a mapping"
        )
    _check_keys(document, "")
    try:
        validate(document, METADATA_VERSION)
    except SpecificationError as exc:
        raise MetadataError(f"failed to validate metadata:\n{exc}") from exc
    node = next(yaml.compose_all(text, Loader=_YamlLoader))
    return _decode(node)


def from_bundle(bundle: Mapping[str, Any]) -> AppMetadata:
    """Extract application metadata from a bundle description."""
    return AppMetadata(
        name=bundle.get("name") or "",
        version=bundle.get("version") or "",
        description=bundle.get("description") or "",
        maintainers=[
            Maintainer(name=m.get("name") or "", email=m.get("email") or "")
            for m in bundle.get("maintainers") or []
        ],
    )