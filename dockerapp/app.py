"""Application definitions: the compose, parameters and metadata files of an app."""

from __future__ import annotations

import enum
import os
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Union

from .metadata import AppMetadata
from .metadata import load as load_metadata
from .parameters import Parameters, load_multiple

METADATA_FILE_NAME = "metadata.yml"
COMPOSE_FILE_NAME = "docker-compose.yml"
PARAMETERS_FILE_NAME = "parameters.yml"
DEFAULT_COMPOSE_FILE_VERSION = "3.6"

_MAIN_FILES = frozenset({METADATA_FILE_NAME, COMPOSE_FILE_NAME, PARAMETERS_FILE_NAME})

PathLike = Union[str, "os.PathLike[str]"]
Reader = IO


class AppSourceKind(enum.IntEnum):
    """The format the app was in when it was read."""

    SPLIT = 0
    IMAGE = 1
    ARCHIVE = 2

    def should_run_inside_directory(self) -> bool:
        """Return whether the app is run from a directory on disk."""
        return self in (AppSourceKind.SPLIT, AppSourceKind.IMAGE, AppSourceKind.ARCHIVE)


@dataclass(frozen=True)
class Attachment:
    """A file stored alongside the app definition."""

    path: str
    size: int


def _noop() -> None:
    return None


@dataclass
class App:
    """An application: its compose files, parameters, metadata and attachments."""

    name: str = ""
    path: str = ""
    cleanup: Callable[[], None] = _noop
    source: AppSourceKind = AppSourceKind.SPLIT
    composes: list[bytes] = field(default_factory=list)
    parameters_raw: list[bytes] = field(default_factory=list)
    parameters: Parameters = field(default_factory=Parameters)
    metadata_raw: bytes = b""
    metadata: AppMetadata = field(default_factory=AppMetadata)
    attachments: list[Attachment] = field(default_factory=list)
    has_crlf: bool = False

    def extract(self, path: PathLike) -> None:
        """Write the main files of the app into the given directory."""
        target = Path(path)
        (target / METADATA_FILE_NAME).write_bytes(self.metadata_raw)
        (target / COMPOSE_FILE_NAME).write_bytes(self.composes[0])
        (target / PARAMETERS_FILE_NAME).write_bytes(self.parameters_raw[0])


Option = Callable[[App], None]


@dataclass
class InitialService:
    """A service of an initial compose file."""

    image: str = ""


@dataclass
class InitialComposeFile:
    """An initial compose file, as produced when initialising an app."""

    version: str = DEFAULT_COMPOSE_FILE_VERSION
    services: dict[str, InitialService] = field(default_factory=dict)


def new_initial_compose_file() -> InitialComposeFile:
    """Return an empty initial compose file."""
    return InitialComposeFile()


def new_app(path: str, *args: Option) -> App:
    """Create an app for the given path and apply the options in order."""
    app = App(name=path, path=path)
    for option in args:
        option(app)
    return app


def new_app_from_default_files(path: str, *args: Option) -> App:
    """Create an app from the default files found in the given directory."""
    root = os.fspath(path)
    return new_app(
        root,
        metadata_file(os.path.join(root, METADATA_FILE_NAME)),
        with_compose_files(os.path.join(root, COMPOSE_FILE_NAME)),
        with_parameters_files(os.path.join(root, PARAMETERS_FILE_NAME)),
        with_attachments(root),
        *args,
    )


def with_name(name: str) -> Option:
    """Set the application name."""

    def apply(app: App) -> None:
        app.name = name

    return apply


def with_path(path: str) -> Option:
    """Set the original path of the app."""

    def apply(app: App) -> None:
        app.path = path

    return apply


def with_cleanup(func: Callable[[], None]) -> Option:
    """Set the cleanup function of the app."""

    def apply(app: App) -> None:
        app.cleanup = func

    return apply


def with_source(source: AppSourceKind) -> Option:
    """Set the source kind of the app."""

    def apply(app: App) -> None:
        app.source = source

    return apply


def _read_file(file: PathLike) -> bytes:
    try:
        return Path(file).read_bytes()
    except OSError as exc:
        raise OSError(f"open {os.fspath(file)}: {exc.strerror or exc}") from exc


def _read_stream(reader: Reader) -> bytes:
    data = reader.read()
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _read_all(sources: Iterable, read: Callable) -> list[bytes]:
    contents: list[bytes] = []
    errors: list[str] = []
    for source in sources:
        try:
            contents.append(read(source))
        except OSError as exc:
            errors.append(str(exc))
    if errors:
        raise OSError("\n".join(errors))
    return contents


def _parameters_loader(read: Callable[[], list[bytes]]) -> Option:
    def apply(app: App) -> None:
        contents = [*app.parameters_raw, *read()]
        app.parameters = load_multiple(contents)
        app.parameters_raw = contents

    return apply


def with_parameters_files(*args: PathLike) -> Option:
    """Add parameters files to the app."""
    return _parameters_loader(lambda: _read_all(args, _read_file))


def with_parameters(*args: Reader) -> Option:
    """Add parameters read from streams to the app."""
    return _parameters_loader(lambda: _read_all(args, _read_stream))


def _walk(directory: str, prefix: str) -> Iterator[Attachment]:
    with os.scandir(directory) as entries:
        ordered = sorted(entries, key=lambda entry: entry.name)
    for entry in ordered:
        relative = f"{prefix}{entry.name}"
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(entry.path, f"{relative}/")
        elif relative not in _MAIN_FILES:
            yield Attachment(path=relative, size=entry.stat(follow_symlinks=False).st_size)


def with_attachments(root_app_dir: PathLike) -> Option:
    """Add every local file of the app directory, except the main files, as attachments."""

    def apply(app: App) -> None:
        root = os.fspath(root_app_dir)
        info = os.lstat(root)
        if not os.path.isdir(root) or os.path.islink(root):
            app.attachments.append(Attachment(path=".", size=info.st_size))
            return
        app.attachments.extend(_walk(root, ""))

    return apply


def _metadata_loader(read: Callable[[], bytes]) -> Option:
    def apply(app: App) -> None:
        data = read()
        app.metadata = load_metadata(data)
        app.metadata_raw = data
        app.has_crlf = b"\r\n" in data

    return apply


def metadata_file(file: PathLike) -> Option:
    """Load the app metadata from a file."""
    return _metadata_loader(lambda: _read_file(file))


def with_metadata(reader: Reader) -> Option:
    """Load the app metadata from a stream."""
    return _metadata_loader(lambda: _read_stream(reader))


def _compose_loader(read: Callable[[], list[bytes]]) -> Option:
    def apply(app: App) -> None:
        app.composes.extend(read())

    return apply


def with_compose_files(*args: PathLike) -> Option:
    """Add compose files to the app."""
    return _compose_loader(lambda: _read_all(args, _read_file))


def with_composes(*args: Reader) -> Option:
    """Add compose content read from streams to the app."""
    return _compose_loader(lambda: _read_all(args, _read_stream))