import logging

import pytest
import yaml
from typer.testing import CliRunner

from firstboot.bootstrap.completion import marker_content
from firstboot.cli.app import app

cli = CliRunner()

ENV_VARS = (
    "HOSTNAME", "DOMAIN", "ROLE", "ORGANISATION", "PROJECT", "STACKNAME",
    "ENVIRONMENT", "RELEASESTAGE", "BRANCH", "SALT_MASTER_IP",
    "EC2_AUTO_SCALING_GROUP", "EC2_WAIT_FOR_VOLUME", "DISABLE_DOCKER", "FIRSTBOOT_CONFIG",
    "DOCKER_COMPOSE_VERSION", "SALT_VERSION", "IS_SALTMASTER",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # init_logging attaches handlers to the package logger
    logging.getLogger("firstboot").handlers.clear()


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "firstboot.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "lock_file": str(tmp_path / "os-bootstrap"),
                "log_dir": str(tmp_path / "logs"),
            }
        )
    )
    return path


def test_status_not_bootstrapped(config):
    result = cli.invoke(app, ["status", "--config", str(config)])
    assert result.exit_code == 1
    assert "not bootstrapped" in result.output


def test_status_bootstrapped(config, tmp_path):
    (tmp_path / "os-bootstrap").write_text(marker_content(1700000000))

    result = cli.invoke(app, ["status", "--config", str(config)])

    assert result.exit_code == 0
    assert "bootstrapped at Tue Nov 14 22:13:20 UTC 2023 (TIMESTAMP=1700000000)" in result.output


def test_status_reads_config_from_environment(config, monkeypatch):
    monkeypatch.setenv("FIRSTBOOT_CONFIG", str(config))
    result = cli.invoke(app, ["status"])
    assert "not bootstrapped" in result.output


def test_run_refuses_when_already_bootstrapped(config, tmp_path):
    (tmp_path / "os-bootstrap").write_text(marker_content(1700000000))

    result = cli.invoke(app, ["run", "--config", str(config)])

    assert result.exit_code == 1
    assert "already been bootstrapped" in result.output


def test_run_reports_missing_environment(config, tmp_path):
    result = cli.invoke(app, ["run", "--config", str(config)])

    assert result.exit_code == 1
    assert "DOMAIN" in result.output
    assert not (tmp_path / "os-bootstrap").exists()


def test_invalid_config_file(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("no_such_setting: 1\n")

    result = cli.invoke(app, ["status", "--config", str(bad)])

    assert result.exit_code == 1
    assert "Invalid settings file" in result.output


def test_userdata_requires_its_environment(config):
    result = cli.invoke(app, ["userdata", "--config", str(config)], env={"ROLE": "web"})
    assert result.exit_code == 1
    assert "DOCKER_COMPOSE_VERSION" in result.output
