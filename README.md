# dockerapp

A library for working with application definitions made of three files in
one directory: `metadata.yml`, `docker-compose.yml` and `parameters.yml`.
It loads and validates them, merges parameters from several sources,
substitutes `${name}` and `$name` references in the Compose file and
returns the rendered configuration as plain Python data.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Parameters (`dockerapp.parameters`)

Parameters are nested mappings (`Parameters`, a `dict` subclass) that can
also be viewed flat, with keys joined by dots and values as strings.

```python
from dockerapp import parameters

params = parameters.load(b"front:\n  port: 8080\n")
params.flatten()          # {"front.port": "8080"}

override = parameters.from_flatten({"front.port": "9090"})
merged = parameters.merge(params, override)
merged.flatten()          # {"front.port": "9090"}
```

- `load(data, prefix="")` parses YAML and always returns expanded
  parameters, so `foo.bar: baz` and `foo: {bar: baz}` load the same.
  Non-string keys are rejected, e.g. `Non-string key in foo: 1`.
- `from_flatten(flat)` expands a dotted mapping, guessing each value's type
  from YAML. Numeric last components (`toto.0`, `toto.3`) build lists, with
  gaps filled by `None`. Conflicting shapes (`foo` and `foo.baz`) raise.
- `merge(*args)` merges in order, later values overriding earlier ones;
  nested mappings merge, lists are replaced, and lists of different element
  types cannot override each other.
- `load_multiple`, `load_file` and `load_files` load and merge several
  sources in order. Each accepts an optional `prefix` that nests everything
  loaded under one key.

Errors are raised as `ParametersError` (a `ValueError`).

## Metadata (`dockerapp.metadata`, `dockerapp.specification`)

```python
from dockerapp import metadata

meta = metadata.load(b"name: my-app\nversion: 0.1.0\n")
meta.name, meta.version   # ("my-app", "0.1.0")
```

`load` parses the YAML, validates it with
`specification.validate(config, "v0.2")` and returns an `AppMetadata`
dataclass (`version`, `name`, `description`, `maintainers`). The schema
requires `name` and `version` and checks maintainer e-mail addresses.
Failures raise `MetadataError`; calling `validate` directly raises
`SpecificationError`, listing every problem sorted, one per line, such as
`- (root): version is required`. Only the `v0.2` schema is known.

`Maintainer` prints as `name <email>` (or just `name`), and
`format_maintainers` joins several with `, `. `from_bundle` builds an
`AppMetadata` from a bundle description given as a mapping.

## Applications (`dockerapp.app`)

An `App` is built by `new_app(path, *options)`, applying option callables
in order:

```python
from dockerapp import app

my_app = app.new_app_from_default_files("my-app.dockerapp")
my_app.parameters       # merged parameters
my_app.attachments      # every other file in the directory, sorted
my_app.extract("out/")  # writes the three main files back out
```

Options: `with_name`, `with_path`, `with_cleanup`, `with_source`,
`with_metadata`, `metadata_file`, `with_composes`, `with_compose_files`,
`with_parameters`, `with_parameters_files` and `with_attachments`. The
stream options read from file-like objects; the file options raise
`OSError` naming every file that could not be opened.

`AppSourceKind` records where an app came from (`SPLIT`, `IMAGE`,
`ARCHIVE`). `new_initial_compose_file` returns an empty
`InitialComposeFile` with Compose version `3.6`.

## Rendering (`dockerapp.render`)

```python
from dockerapp import render

config = render.render(my_app, {"front.port": "4242"}, None)
config["services"]      # list of service dicts, each with a "name"
```

`render` merges the app's parameters, its metadata (under the `app.`
prefix) and the given overrides, substitutes them into the first Compose
file with `substitute_params`, and loads the result with `render_compose`:

- `$$` escapes a literal dollar sign.
- References to unknown parameters, and the Compose default-value
  (`${x:-y}`, `${x-y}`) and error-message (`${x:?msg}`, `${x?msg}`)
  syntaxes, raise `RenderError`.
- Unknown top-level keys (other than `x-` extensions) are rejected.
- `env_file` entries are read relative to the app path and merged into
  the service's `environment`.
- Services whose `x-enabled` value is false are dropped (`is_enabled`
  accepts booleans and strings such as `"true"`, `"0"`, `"! true"`).
- An image map of service name to `{"image": ..., "digest": ...}` replaces
  service images, falling back to the digest when no image is given.

## What this package does not do

There is no command-line tool. The package does not build, push, pull,
run or remove applications, keeps no store of bundles or images, and
talks to no container engine or registry. Compose loading is limited to
the steps above: the file is not checked against the full Compose schema,
short forms such as port strings are not expanded, and variables are not
taken from the process environment.