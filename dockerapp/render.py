"""Rendering of an app's compose file with its parameters substituted."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .parameters import ParametersError, from_flatten, merge
from .parameters import load as load_parameters

if TYPE_CHECKING:
    from .app import App

# A name starts with a letter or underscore; dots must be followed by a name character.
_SUBSTITUTION = r"[a-zA-Z_][0-9a-zA-Z_]*(?:[.][0-9a-zA-Z_]+)*"
_DEFAULT_VALUE = r"[a-zA-Z_][a-zA-Z0-9_.]*(?::-|-).*"
_ERROR_MESSAGE = r"[a-zA-Z_][a-zA-Z0-9_.]*(?::\?|\?).*"

_PATTERN = re.compile(
    rf"\$(?i:(?P<named>{_SUBSTITUTION})|(?P<skip>\$+)|\{{(?P<braced>{_SUBSTITUTION})\}}"
    rf"|\{{(?P<defvals>{_DEFAULT_VALUE})\}}|\{{(?P<errormsg>{_ERROR_MESSAGE})\}})"
)

_TOP_LEVEL_KEYS = frozenset({"version", "services", "networks", "volumes", "secrets", "configs"})


class RenderError(ValueError):
    """Raised when an app cannot be rendered."""


def substitute_params(all_parameters: Mapping[str, str], compose_content: str) -> str:
    """Replace ``$name`` and ``${name}`` references with parameter values."""
    for match in list(_PATTERN.finditer(compose_content)):
        text = match.group(0)
        if match["defvals"]:
            raise RenderError(
                "The default value syntax of Compose files is not supported in Docker App. "
                "The characters ':' and '-' are not allowed in parameter names. "
                f"Invalid parameter: {text}."
            )
        if match["errormsg"]:
            raise RenderError(
                "The custom error message syntax of Compose files is not supported in Docker App. "
                "The characters ':' and '?' are not allowed in parameter names. "
                f"Invalid parameter: {text}."
            )
        if match["skip"]:
            continue
        name = match["named"] or match["braced"]
        if name not in all_parameters:
            raise RenderError(f"Failed to set value for {name}. Value not found in parameters.")
        compose_content = compose_content.replace(text, all_parameters[name])
    return compose_content


def _type_name(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    if isinstance(value, Mapping):
        return "map[string]interface {}"
    if isinstance(value, list):
        return "[]interface {}"
    return type(value).__name__


def is_enabled(value: Any) -> bool:
    """Interpret the value of an ``x-enabled`` service extension."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true"):
            return True
        if text in ("", "0", "false"):
            return False
        if text.startswith("!"):
            return not is_enabled(text[1:])
        raise RenderError(f"{value} is not a valid value for x-enabled")
    raise RenderError(f"invalid type ({_type_name(value)}) for x-enabled")


def process_enabled(config: dict[str, Any]) -> None:
    """Drop the services of a rendered config that are not enabled."""
    config["services"] = [
        service
        for service in config["services"]
        if "x-enabled" not in service or is_enabled(service["x-enabled"])
    ]


def _unescape(value: Any) -> Any:
    if isinstance(value, str):
        return value.replace("$$", "$")
    if isinstance(value, dict):
        return {key: _unescape(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_unescape(item) for item in value]
    return value


def _environment_dict(environment: Any) -> dict[str, str | None]:
    if environment is None:
        return {}
    if isinstance(environment, dict):
        return {
            str(key): None if value is None else str(value)
            for key, value in environment.items()
        }
    result: dict[str, str | None] = {}
    for entry in environment:
        key, sep, value = str(entry).partition("=")
        result[key] = value if sep else None
    return result


def _read_env_file(path: str) -> dict[str, str]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise RenderError(
            f"failed to load Compose file: Couldn't find env file: {path}"
        ) from exc
    env: dict[str, str] = {}
    for line in text.splitlines():
        line = line.lstrip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if sep:
            env[key] = value
        elif key.strip() in os.environ:
            env[key.strip()] = os.environ[key.strip()]
    return env


def _resolve_env_files(service: dict[str, Any], working_dir: str) -> None:
    files = service.pop("env_file", None)
    if files is None:
        return
    if isinstance(files, str):
        files = [files]
    environment: dict[str, str | None] = {}
    for name in files:
        environment.update(_read_env_file(os.path.join(working_dir, str(name))))
    environment.update(_environment_dict(service.get("environment")))
    service["environment"] = environment


def _load_config(document: dict[Any, Any], working_dir: str) -> dict[str, Any]:
    unknown = sorted(
        str(key)
        for key in document
        if not (isinstance(key, str) and (key in _TOP_LEVEL_KEYS or key.startswith("x-")))
    )
    if unknown:
        raise RenderError(
            f"failed to load Compose file: (root) Additional property {unknown[0]} is not allowed"
        )
    raw_services = document.get("services") or {}
    if not isinstance(raw_services, dict):
        raise RenderError("failed to load Compose file: services must be a mapping")
    services = []
    for name in sorted(raw_services, key=str):
        body = raw_services[name] or {}
        if not isinstance(body, dict):
            raise RenderError(f"failed to load Compose file: service {name} must be a mapping")
        service = {**_unescape(body), "name": str(name)}
        _resolve_env_files(service, working_dir)
        services.append(service)
    config = {key: _unescape(value) for key, value in document.items() if key != "services"}
    config.setdefault("version", "")
    config["services"] = services
    return config


def render_compose(
    app_path: str,
    compose_content: str,
    image_map: Mapping[str, Mapping[str, str]] | None = None,
) -> dict[str, Any]:
    """Load compose content, drop disabled services and apply the image relocation map."""
    try:
        document = yaml.safe_load(compose_content)
    except yaml.YAMLError as exc:
        raise RenderError(f"failed to load compose content: {exc}") from exc
    if not isinstance(document, dict):
        raise RenderError("failed to load compose content: Top-level object must be a mapping")
    config = _load_config(document, os.fspath(app_path))
    process_enabled(config)
    for service in config["services"]:
        image = (image_map or {}).get(service["name"])
        if image is not None:
            service["image"] = image.get("image") or image.get("digest") or ""
    return config


def render(
    app: App,
    env: Mapping[str, str] | None = None,
    image_map: Mapping[str, Mapping[str, str]] | None = None,
) -> dict[str, Any]:
    """Render the app's compose file, merging its parameters, metadata and env."""
    metadata_parameters = load_parameters(app.metadata_raw, prefix="app")
    env_parameters = from_flatten(env or {})
    try:
        all_parameters = merge(app.parameters, metadata_parameters, env_parameters)
    except ParametersError as exc:
        raise RenderError(f"failed to merge parameters: {exc}") from exc
    content = app.composes[0]
    text = content.decode("utf-8") if isinstance(content, (bytes, bytearray)) else content
    text = substitute_params(all_parameters.flatten(), text)
    return render_compose(app.path, text, image_map)