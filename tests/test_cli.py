"""Tests for the configuration file loader and the command-line entrypoint."""

# pylint: disable=missing-function-docstring
from json import dumps
from runpy import run_module

from pytest import raises

from singularity import Adlist, AdlistFormat, HostsOutput, PdnsLuaOutput, cli
from singularity.config import Config, load_config
from singularity.errors import InvalidConfig
from singularity.progress import BeginAdlistRead, DomainWritten, FinishAdlistRead, ReadingAdlistFailed, ReadProgress


def write_config(tmp_path, data):
    config_path = tmp_path / "singularity.json"
    config_path.write_text(dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return str(config_path)


def test_load_config(tmp_path):
    config_path = write_config(tmp_path, {
        "whitelist": ["example.com"],
        "adlist": [
            {"source": "https://example.com/hosts"},
            {"source": "file:///tmp/list.txt", "format": "domains"},
        ],
        "output": [
            {"type": "hosts", "destination": "/tmp/hosts", "include": ["/etc/hosts"]},
            {"type": "pdns-lua", "destination": "/tmp/blackhole.lua", "deduplicate": True},
        ],
    })

    config = load_config(config_path)

    assert config.whitelist == {"example.com"}
    assert config.adlists == [
        Adlist("https://example.com/hosts"),
        Adlist("file:///tmp/list.txt", AdlistFormat.DOMAINS),
    ]
    assert config.outputs[0].kind == HostsOutput(include=[b"/etc/hosts"])
    assert config.outputs[1].kind == PdnsLuaOutput()
    assert config.outputs[1].deduplicate is True
    assert Config.from_dict(config.to_dict()) == config


def test_load_config_defaults_to_empty_sections(tmp_path):
    config = load_config(write_config(tmp_path, {}))

    assert config == Config()


def test_load_config_creates_missing_file(tmp_path):
    config_path = tmp_path / "singularity.json"

    config = load_config(str(config_path))

    assert config == Config()
    assert load_config(str(config_path)) == Config()


def test_load_config_errors(tmp_path):
    with raises(InvalidConfig):
        load_config(str(tmp_path / "missing" / "singularity.json"))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, "{not json"))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, []))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, {"adlist": "https://example.com/hosts"}))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, {"adlist": [{"source": "not a url"}]}))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, {"output": [{"type": "hosts", "destination": ""}]}))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, {"output": [{"type": "hosts", "destination": 5}]}))
    with raises(InvalidConfig):
        load_config(write_config(tmp_path, {
            "output": [{"type": "hosts", "destination": "/tmp/hosts", "include": "/etc/hosts"}]
        }))


def test_main_runs_configured_outputs(tmp_path):
    adlist = tmp_path / "adlist.txt"
    adlist.write_text("0.0.0.0 example.com\n", encoding="utf-8")
    destination = tmp_path / "hosts"
    config_path = write_config(tmp_path, {
        "adlist": [{"source": adlist.as_uri()}],
        "output": [{"type": "hosts", "destination": str(destination)}],
    })

    assert cli.main(["-c", config_path, "-q"]) == 0
    assert destination.read_bytes().split(b"\n", 1)[1] == b"0.0.0.0 example.com\n"


def test_main_without_adlists_or_outputs_exits_cleanly(tmp_path):
    assert cli.main(["-c", write_config(tmp_path, {"output": []}), "-q"]) == 0
    config_path = write_config(tmp_path, {"adlist": [{"source": "https://example.com/hosts"}]})
    assert cli.main(["-c", config_path, "-q"]) == 0


def test_main_with_missing_config_exits_cleanly(tmp_path):
    config_path = tmp_path / "singularity.json"

    assert cli.main(["-c", str(config_path), "-q"]) == 0
    assert config_path.exists()


def test_main_reports_failures(tmp_path):
    assert cli.main(["-c", write_config(tmp_path, "{not json"), "-q"]) == 1

    config_path = write_config(tmp_path, {
        "adlist": [{"source": "https://example.com/hosts"}],
        "output": [{"type": "hosts", "destination": str(tmp_path / "missing" / "hosts")}],
    })
    assert cli.main(["-c", config_path, "-q"]) == 1


def test_progress_display_counts_and_tracks_bars():
    display = cli.ProgressDisplay(disable=True)

    display(BeginAdlistRead("file:///a", 10))
    display(ReadProgress("file:///a", 4, 4))
    display(DomainWritten("example.com"))
    display(DomainWritten("google.com"))
    display(FinishAdlistRead("file:///a"))
    display(BeginAdlistRead("file:///b", None))
    display(ReadingAdlistFailed("file:///b", InvalidConfig("boom")))

    assert display.domains == 2
    assert display.failed == ["file:///b"]
    assert not display.bars


def test_package_entrypoint_shows_version(capsys):
    with raises(SystemExit) as excinfo:
        cli.parse_arguments(["--version"])

    assert excinfo.value.code == 0
    assert "singularity v" in capsys.readouterr().out


def test_module_entrypoint_propagates_exit_code(tmp_path, monkeypatch):
    monkeypatch.setattr("sys.argv", ["singularity", "-c", write_config(tmp_path, "{not json"), "-q"])

    with raises(SystemExit) as excinfo:
        run_module("singularity", run_name="__main__")

    assert excinfo.value.code == 1
