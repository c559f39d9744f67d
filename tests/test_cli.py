import pytest
from botocore.exceptions import ClientError, NoRegionError
from typer.testing import CliRunner

from lightsail_firewall import __version__, cli
from lightsail_firewall.firewall import OpenPortsReport

runner = CliRunner()


@pytest.fixture
def fake_client(make_client, monkeypatch):
    client = make_client(instances=["web-1", "web-2"])
    seen = {}

    def factory(exec_ctx):
        seen["ctx"] = exec_ctx
        return client

    monkeypatch.setattr(cli, "get_lightsail_client", factory)
    client.seen = seen
    return client


def test_version():
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_defaults_open_everything_everywhere(fake_client):
    result = runner.invoke(cli.app, ["open", "--region", "ap-northeast-2"])
    assert result.exit_code == 0, result.output
    assert cli.SUCCESS_MESSAGE in result.output
    assert [c["portInfo"]["protocol"] for c in fake_client.open_calls] == ["all", "all"]
    assert fake_client.seen["ctx"].region == "ap-northeast-2"


def test_fw_alias_with_camel_case_flags_and_comma_lists(fake_client):
    result = runner.invoke(
        cli.app, ["fw", "-r", "us-east-1", "--instanceNames", "instance1,instance2", "--ports", "80,443"]
    )
    assert result.exit_code == 0, result.output
    assert [(c["instanceName"], c["portInfo"]["fromPort"]) for c in fake_client.open_calls] == [
        ("instance1", 80),
        ("instance1", 443),
        ("instance2", 80),
        ("instance2", 443),
    ]
    assert ("get_instances", {}) not in fake_client.calls


def test_repeated_options(fake_client):
    result = runner.invoke(cli.app, ["open", "-r", "us-east-1", "-i", "a", "-i", "b", "-p", "80-100"])
    assert result.exit_code == 0, result.output
    assert len(fake_client.open_calls) == 2


def test_failure_exits_non_zero_with_context(fake_client):
    fake_client.fail_at = 2
    result = runner.invoke(cli.app, ["open", "-r", "us-east-1", "-i", "web-1,web-2", "-p", "80,443"])
    assert result.exit_code == 1
    assert "Failed to open ports: failed to open port 443 for instance web-1" in result.output
    assert cli.SUCCESS_MESSAGE not in result.output
    assert len(fake_client.open_calls) == 2


def test_malformed_port_exits_non_zero(fake_client):
    result = runner.invoke(cli.app, ["open", "-r", "us-east-1", "-i", "web-1", "-p", "http"])
    assert result.exit_code == 1
    assert "invalid port http for instance web-1" in result.output
    assert fake_client.open_calls == []


def test_dry_run(fake_client):
    result = runner.invoke(cli.app, ["--dry-run", "open", "-r", "us-east-1", "-p", "22"])
    assert result.exit_code == 0, result.output
    assert "[dry-run]" in result.output
    assert fake_client.open_calls == []
    assert cli.SUCCESS_MESSAGE not in result.output


def test_skip_validation_flag(fake_client):
    result = runner.invoke(cli.app, ["--skip-validation", "open", "-r", "us-east-1", "-i", "web-1", "-p", "100-80"])
    assert result.exit_code == 0, result.output
    assert fake_client.open_calls[0]["portInfo"] == {"fromPort": 100, "toPort": 80, "protocol": "tcp"}


def test_verify_reports_missing_ports(fake_client):
    fake_client.port_states = {"web-1": [{"fromPort": 22, "toPort": 22, "protocol": "tcp", "state": "open"}]}
    result = runner.invoke(cli.app, ["open", "-r", "us-east-1", "-i", "web-1", "-p", "22,80", "--verify"])
    assert result.exit_code == 1
    assert cli.SUCCESS_MESSAGE in result.output


def test_missing_region_is_reported(monkeypatch):
    def factory(exec_ctx):
        raise NoRegionError()

    monkeypatch.setattr(cli, "get_lightsail_client", factory)
    result = runner.invoke(cli.app, ["open"])
    assert result.exit_code == 1
    assert "Failed to open ports" in result.output


def test_status_lists_port_states(fake_client):
    fake_client.port_states = {
        "web-1": [{"fromPort": 22, "toPort": 22, "protocol": "tcp", "state": "open", "cidrs": ["0.0.0.0/0"]}]
    }
    result = runner.invoke(cli.app, ["status", "-r", "us-east-1"])
    assert result.exit_code == 0, result.output
    assert "web-1" in result.output
    assert "web-2" in result.output


def test_status_failure(fake_client):
    fake_client.port_states = {
        "web-1": ClientError({"Error": {"Code": "NotFoundException", "Message": "gone"}}, "GetInstancePortStates")
    }
    result = runner.invoke(cli.app, ["status", "-r", "us-east-1", "-i", "web-1"])
    assert result.exit_code == 1
    assert "Failed to get port states" in result.output


def test_config_file_supplies_targets(fake_client, tmp_path):
    path = tmp_path / "fw.yaml"
    path.write_text("aws:\n  region: eu-west-1\nfirewall:\n  instance_names: [web-9]\n  ports: ['8080']\n")
    result = runner.invoke(cli.app, ["--config", str(path), "open"])
    assert result.exit_code == 0, result.output
    assert fake_client.open_calls == [
        {"instanceName": "web-9", "portInfo": {"fromPort": 8080, "toPort": 8080, "protocol": "tcp"}}
    ]
    assert fake_client.seen["ctx"].region == "eu-west-1"


def test_init_config_refuses_to_overwrite(tmp_path):
    path = tmp_path / "fw.yaml"
    assert runner.invoke(cli.app, ["init-config", str(path)]).exit_code == 0
    assert path.exists()
    assert runner.invoke(cli.app, ["init-config", str(path)]).exit_code == 1
    assert runner.invoke(cli.app, ["init-config", str(path), "--force"]).exit_code == 0


@pytest.mark.parametrize(
    "args",
    [
        ["-i", "web-1", "--ports", ""],
        ["-i", "web-1", "-p", " , "],
        ["--instanceNames", "", "-p", "22"],
        ["--instance-names", " ", "-p", "22"],
    ],
)
def test_empty_selection_is_usage_error(fake_client, args):
    # ex.: -i "$NAMES" com a variavel vazia; nunca vira 'all'
    result = runner.invoke(cli.app, ["open", "-r", "us-east-1", *args])
    assert result.exit_code == 2
    assert fake_client.calls == []


def test_status_with_empty_instances_is_usage_error(fake_client):
    result = runner.invoke(cli.app, ["status", "-r", "us-east-1", "-i", ""])
    assert result.exit_code == 2
    assert fake_client.calls == []


def test_ctrl_c_exits_130_with_partial_report(fake_client, monkeypatch):
    def interrupted(client, instance_names, port_tokens, exec_ctx):
        exc = KeyboardInterrupt()
        exc.report = OpenPortsReport(instances=["web-1", "web-2"], not_attempted=["web-2"])
        raise exc

    monkeypatch.setattr(cli, "open_ports", interrupted)
    result = runner.invoke(cli.app, ["open", "-r", "us-east-1"])
    assert result.exit_code == 130
    assert "Interrompido" in result.output
    assert "not attempted" in result.output
    assert cli.SUCCESS_MESSAGE not in result.output


@pytest.mark.parametrize(
    "name, content",
    [
        ("fw.toml", "[firewall]\nports = ['80']\n"),
        ("fw.yaml", "firewall: [\n"),
        ("fw.json", "{not json"),
        ("fw.yml", "- web-1\n"),
    ],
)
def test_unloadable_config_is_usage_error(fake_client, tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content)
    result = runner.invoke(cli.app, ["--config", str(path), "open"])
    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert fake_client.calls == []
