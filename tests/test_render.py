import io
import re

import pytest

from dockerapp.app import App, with_composes, with_metadata, with_parameters
from dockerapp.render import (
    RenderError,
    is_enabled,
    process_enabled,
    render,
    render_compose,
    substitute_params,
)

VALID_META = 'version: "0.1"\nname: my-app'


def _app(compose, parameters=None):
    app = App(path="my-app")
    with_metadata(io.StringIO(VALID_META))(app)
    with_composes(io.StringIO(compose))(app)
    if parameters is not None:
        with_parameters(*(io.StringIO(p) for p in parameters))(app)
    return app


def _service(config, name):
    return next(s for s in config["services"] if s["name"] == name)


def test_substitute_braced_params():
    compose = '\nversion: "3.6"\nservices:\n  front:\n    ports:\n     - "${front.port}:80"\n'
    result = substitute_params({"front.port": "8080"}, compose)
    assert result == '\nversion: "3.6"\nservices:\n  front:\n    ports:\n     - "8080:80"\n'


def test_substitute_named_params():
    compose = '\nversion: "3.6"\nservices:\n  back:\n    ports:\n     - "$back.port:90"\n'
    result = substitute_params({"back.port": "9000"}, compose)
    assert result == '\nversion: "3.6"\nservices:\n  back:\n    ports:\n     - "9000:90"\n'


def test_substitute_mixed_params():
    compose = (
        '\nversion: "3.6"\nservices:\n  front:\n    ports:\n     - "${front.port}:80"\n'
        "    deploy:\n      replicas: ${front.deploy.replicas}\n"
        '  back:\n    ports:\n     - "$back.port:90"\n'
    )
    params = {"front.port": "8080", "back.port": "9000", "front.deploy.replicas": "3"}
    assert substitute_params(params, compose) == (
        '\nversion: "3.6"\nservices:\n  front:\n    ports:\n     - "8080:80"\n'
        "    deploy:\n      replicas: 3\n"
        '  back:\n    ports:\n     - "9000:90"\n'
    )


def test_skip_double_dollar_case():
    compose = '\n\tversion: "3.7"\n\tservices:\n\t  front:\n\t\tcommand: $$dollar\n'
    assert substitute_params({}, compose) == compose


def test_substitute_missing_parameter_value():
    compose = (
        '\n\tversion: "3.7"\n\tservices:\n\t  front:\n\t\tdeploy:\n'
        "\t\t  replicas: ${myapp.nginx_replicas}\n\t  debug:\n\t\tports:\n\t\t- $aport\n"
    )
    with pytest.raises(
        RenderError,
        match=re.escape("Failed to set value for myapp.nginx_replicas. Value not found in parameters."),
    ):
        substitute_params({"aport": "10000"}, compose)


DEFAULT_MSG = (
    "The default value syntax of Compose files is not supported in Docker App. "
    "The characters ':' and '-' are not allowed in parameter names. Invalid parameter: {}."
)
ERROR_MSG = (
    "The custom error message syntax of Compose files is not supported in Docker App. "
    "The characters ':' and '?' are not allowed in parameter names. Invalid parameter: {}."
)


@pytest.mark.parametrize(
    "reference, message",
    [
        ("${front.port:-9090}", DEFAULT_MSG),
        ("${front.port-9090}", DEFAULT_MSG),
        ("${front.port:?Error}", ERROR_MSG),
        ("${front.port?Error:unset variable}", ERROR_MSG),
    ],
)
def test_render_fails_on_default_param_value(reference, message):
    compose = f'\nversion: "3.6"\nservices:\n\tfront:\n\tports:\n\t\t- "{reference}:80"\n\t'
    app = _app(compose)
    with pytest.raises(RenderError) as excinfo:
        render(app, {"front.port": "4242"})
    assert message.format(reference) in str(excinfo.value)


@pytest.mark.parametrize("value", ["false", '"false"', '"! true"'])
def test_render_enabled_false(value):
    compose = f'\nversion: "3.7"\nservices:\n  foo:\n    image: busybox\n    "x-enabled": {value}\n'
    config = render_compose("foo.dockerapp", compose, None)
    assert config["services"] == []


@pytest.mark.parametrize("value", [True, "1", "true", " TRUE ", "!false", "!!1"])
def test_is_enabled_true(value):
    assert is_enabled(value) is True


@pytest.mark.parametrize("value", [False, "", "0", "false", "!true"])
def test_is_enabled_false(value):
    assert is_enabled(value) is False


def test_is_enabled_invalid_string():
    with pytest.raises(RenderError, match="maybe is not a valid value for x-enabled"):
        is_enabled("maybe")


def test_is_enabled_invalid_type():
    with pytest.raises(RenderError, match=re.escape("invalid type (int) for x-enabled")):
        is_enabled(3)


def test_process_enabled_keeps_services_without_extension():
    config = {"services": [{"name": "a"}, {"name": "b", "x-enabled": "0"}, {"name": "c", "x-enabled": True}]}
    process_enabled(config)
    assert [s["name"] for s in config["services"]] == ["a", "c"]


def test_render_user_parameters():
    compose = (
        '\nversion: "3.6"\nservices:\n  front:\n    image: wordpress\n    ports:\n'
        '     - "${front.port}:80"\n    deploy:\n      replicas: ${front.deploy.replicas}\n'
        '  back:\n    image: mysql\n    ports:\n     - "${back.port}:90"\n'
    )
    parameters = "\nfront:\n  deploy:\n    replicas: 1\n  port: 8484\nback:\n  port: 9090\n"
    app = _app(compose, [parameters])
    config = render(
        app,
        {"front.deploy.replicas": "9", "front.port": "4242", "back.port": "6666"},
        None,
    )
    assert config["version"] == "3.6"
    assert [s["name"] for s in config["services"]] == ["back", "front"]
    assert _service(config, "back")["ports"] == ["6666:90"]
    assert _service(config, "back")["image"] == "mysql"
    assert _service(config, "front")["ports"] == ["4242:80"]
    assert _service(config, "front")["deploy"] == {"replicas": 9}


def test_render_without_default_parameters():
    compose = '\nversion: "3.6"\nservices:\n  front:\n    image: nginx\n    deploy:\n      replicas: ${nginx.replicas}\n'
    app = _app(compose, [""])
    config = render(app, {"nginx.replicas": "9"}, None)
    assert config["services"] == [{"name": "front", "image": "nginx", "deploy": {"replicas": 9}}]


def test_render_uses_metadata_parameters():
    app = _app('version: "3.6"\nservices:\n  web:\n    image: ${app.name}:${app.version}\n')
    config = render(app)
    assert _service(config, "web")["image"] == "my-app:0.1"


def test_validate_broken_compose_file():
    app = _app('version: "3.6"\nunknown-property: value')
    with pytest.raises(RenderError) as excinfo:
        render(app, None, None)
    assert str(excinfo.value) == (
        "failed to load Compose file: (root) Additional property unknown-property is not allowed"
    )


def test_validate_rendered_application():
    compose = '\nversion: "3.6"\nservices:\n    hello:\n        image: hashicorp/http-echo\n        ports:\n        - ${port}:${port}'
    app = _app(compose, ["port: 8080"])
    config = render(app, None, None)
    assert _service(config, "hello")["ports"] == ["8080:8080"]


def test_service_image_override():
    compose = '\nversion: "3.6"\nservices:\n  foo:\n    image: busybox,\n'
    config = render_compose("foo.dockerapp", compose, {"foo": {"image": "test"}})
    assert len(config["services"]) == 1
    assert config["services"][0]["image"] == "test"


def test_service_image_override_with_digest():
    compose = 'version: "3.6"\nservices:\n  foo:\n    image: busybox\n'
    config = render_compose("foo.dockerapp", compose, {"foo": {"image": "", "digest": "sha256:abc"}})
    assert config["services"][0]["image"] == "sha256:abc"


def test_render_unescapes_double_dollar():
    compose = 'version: "3.7"\nservices:\n  front:\n    command: $$dollar\n'
    config = render_compose("foo.dockerapp", compose)
    assert config["services"][0]["command"] == "$dollar"


def test_render_resolves_env_files(tmp_path):
    (tmp_path / "my.env").write_text("# comment\nCOMPANY=mycompany\nUSER=other\n")
    compose = (
        'version: "3.7"\nservices:\n  db:\n    image: busybox:1.30.1\n'
        "    env_file: my.env\n    environment:\n      USER: myuser\n"
    )
    config = render_compose(str(tmp_path), compose)
    service = config["services"][0]
    assert "env_file" not in service
    assert service["environment"] == {"COMPANY": "mycompany", "USER": "myuser"}


def test_render_missing_env_file(tmp_path):
    compose = 'version: "3.7"\nservices:\n  db:\n    image: busybox\n    env_file: missing.env\n'
    with pytest.raises(RenderError, match="Couldn't find env file"):
        render_compose(str(tmp_path), compose)


def test_render_invalid_yaml():
    with pytest.raises(RenderError, match="failed to load compose content"):
        render_compose("foo", "services: [unclosed")


def test_render_should_merge_non_uniform_parameters():
    compose = '\nversion: "3.6"\nservices:\n  any:\n    image: none/none\n    environment:\n      SSH_USER: ${ssh.user}\n'
    app = _app(compose, ["\nssh.user: FILLME\n", "\nssh:\n  user: sirtea\n"])
    assert app.parameters == {"ssh": {"user": "sirtea"}}
    config = render(app)
    assert _service(config, "any")["environment"] == {"SSH_USER": "sirtea"}