from pathlib import Path
import textwrap

import pytest

from firstboot.config.loader import load_run_context, load_settings, load_userdata_context, parse_flag
from firstboot.errors import ConfigurationError

from conftest import FakeMetadata

BASE_ENV = {
    "DOMAIN": "example.net",
    "ROLE": "web",
    "ORGANISATION": "acme",
    "PROJECT": "shop",
    "STACKNAME": "blue",
    "ENVIRONMENT": "dev",
    "RELEASESTAGE": "beta",
    "BRANCH": "main",
    "HOSTNAME": "web-01",
    "SALT_MASTER_IP": "10.0.0.2",
}


def test_load_run_context_builds_derived_names():
    ctx = load_run_context(dict(BASE_ENV))
    assert ctx.full_domain == "blue.example.net"
    assert ctx.fqdn == "web-01.blue.example.net"
    assert ctx.coordinator_host == "10.0.0.2"
    assert ctx.auto_scaling_group is False
    assert ctx.wait_for_volume is False


def test_missing_variables_are_all_reported():
    env = dict(BASE_ENV)
    del env["DOMAIN"]
    env["BRANCH"] = "   "
    with pytest.raises(ConfigurationError) as ei:
        load_run_context(env)
    assert "DOMAIN" in str(ei.value)
    assert "BRANCH" in str(ei.value)


def test_worker_without_coordinator_address_is_rejected():
    env = dict(BASE_ENV)
    del env["SALT_MASTER_IP"]
    with pytest.raises(ConfigurationError, match="SALT_MASTER_IP"):
        load_run_context(env)


def test_coordinator_talks_to_itself_over_loopback():
    env = dict(BASE_ENV, ROLE="master")
    del env["SALT_MASTER_IP"]
    ctx = load_run_context(env)
    assert ctx.is_coordinator
    assert ctx.coordinator_host == "127.0.0.1"


def test_auto_scaling_derives_hostname_from_instance_id():
    env = dict(BASE_ENV, EC2_AUTO_SCALING_GROUP="yes", HOSTED_ZONE_ID="Z123")
    del env["HOSTNAME"]
    ctx = load_run_context(env, metadata=FakeMetadata({"instance-id": "i-0abc"}))
    assert ctx.hostname == "web-i-0abc"
    assert ctx.instance_id == "i-0abc"


def test_auto_scaling_requires_hosted_zone():
    env = dict(BASE_ENV, EC2_AUTO_SCALING_GROUP="yes")
    with pytest.raises(ConfigurationError, match="HOSTED_ZONE_ID"):
        load_run_context(env, metadata=FakeMetadata({"instance-id": "i-0abc"}))


def test_auto_scaling_without_instance_id_fails():
    env = dict(BASE_ENV, EC2_AUTO_SCALING_GROUP="yes", HOSTED_ZONE_ID="Z123")
    with pytest.raises(ConfigurationError, match="instance id"):
        load_run_context(env, metadata=FakeMetadata({}))


@pytest.mark.parametrize("raw,expected", [("yes", True), ("TRUE", True), ("1", True), ("no", False), ("", False), (None, False)])
def test_parse_flag(raw, expected):
    assert parse_flag("X", raw) is expected


def test_parse_flag_rejects_garbage():
    with pytest.raises(ConfigurationError):
        parse_flag("EC2_WAIT_FOR_VOLUME", "maybe")


def test_load_settings_defaults_without_file():
    s = load_settings(None, environ={})
    assert s.lock_file == Path("/etc/os-bootstrap")
    assert s.coordinator_ports == [4505, 4506]
    assert s.volume_wait.attempts == 60


def test_load_settings_from_yaml_with_env_expansion(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("FB_ROOT", str(tmp_path))
    f = tmp_path / "settings.yaml"
    f.write_text(textwrap.dedent("""
        lock_file: ${FB_ROOT}/marker
        coordinator_retry:
          attempts: 3
        mount_options:
          xfs: defaults,noatime
    """))
    s = load_settings(f, environ={})
    assert s.lock_file == tmp_path / "marker"
    assert s.coordinator_retry.attempts == 3
    assert s.mount_options.xfs == "defaults,noatime"


def test_load_settings_uses_env_variable(tmp_path: Path):
    f = tmp_path / "s.yaml"
    f.write_text("port_timeout: 1.5\n")
    s = load_settings(None, environ={"FIRSTBOOT_CONFIG": str(f)})
    assert s.port_timeout == 1.5


def test_load_settings_rejects_unknown_keys(tmp_path: Path):
    f = tmp_path / "s.yaml"
    f.write_text("no_such_setting: 1\n")
    with pytest.raises(ConfigurationError):
        load_settings(f, environ={})


def test_load_settings_missing_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        load_settings(tmp_path / "nope.yaml", environ={})


def test_load_userdata_context():
    ctx = load_userdata_context(
        {"ROLE": "api", "DOCKER_COMPOSE_VERSION": "1.29.2", "SALT_VERSION": "3006.4", "IS_SALTMASTER": "yes"}
    )
    assert ctx.is_salt_master is True
    with pytest.raises(ConfigurationError, match="SALT_VERSION"):
        load_userdata_context({"ROLE": "api", "DOCKER_COMPOSE_VERSION": "1.29.2"})
