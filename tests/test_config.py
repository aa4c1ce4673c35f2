"""Tests for config file discovery, merging and validation."""

import json

import pytest

from rootforge import config


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("ROOTFORGE_CONFIG", raising=False)


def test_defaults_without_file():
    cfg = config.load()
    assert cfg.raw == {}
    assert cfg.get("tools.fetch") == ["wget", "-P", "{dest}", "{url}"]
    assert cfg.get("resolver.lookup") == "resolved"
    assert cfg.get("build.isolate_failures") is True
    assert cfg.get("no.such.key", 7) == 7


def test_yaml_file_in_cwd_is_merged(tmp_path):
    (tmp_path / "rootforge.yaml").write_text(
        "tools:\n  fetch: [curl, -L, -o, '{dest}', '{url}']\n"
        "resolver:\n  lookup: RAW\n"
        "logging:\n  max_size: 2M\n",
        encoding="utf-8",
    )
    cfg = config.load()
    assert cfg.path == tmp_path / "rootforge.yaml"
    assert cfg.get("tools.fetch")[0] == "curl"
    # untouched templates keep their defaults
    assert cfg.get("tools.shell") == ["sh", "-c", "{command}"]
    assert cfg.get("resolver.lookup") == "raw"
    assert cfg.get("logging.max_size_bytes") == 2 * 1024 * 1024


def test_env_override_json(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"install": {"skip_existing": 1}, "build": {"timeout": "30"}}), encoding="utf-8")
    monkeypatch.setenv("ROOTFORGE_CONFIG", str(path))
    cfg = config.load()
    assert cfg.get("install.skip_existing") is True
    assert cfg.get("build.timeout") == 30


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(ValueError):
        config.load(str(tmp_path / "absent.yaml"))


def test_invalid_yaml_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("tools: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError):
        config.load(str(path))


def test_validation_warns_or_fails(tmp_path, caplog):
    path = tmp_path / "c.yaml"
    path.write_text("resolver:\n  lookup: sorted\nextras: 1\n", encoding="utf-8")
    cfg = config.load(str(path))
    assert cfg.get("resolver.lookup") == "sorted"
    assert "validation issues" in caplog.text
    with pytest.raises(ValueError):
        config.load(str(path), fatal=True)


def test_get_config_caches_and_reload_refreshes(tmp_path):
    first = config.load()
    assert config.get_config() is first
    (tmp_path / "rootforge.yml").write_text("build:\n  descriptor_name: recipe\n", encoding="utf-8")
    assert config.reload().get("build.descriptor_name") == "recipe"


@pytest.mark.parametrize("text,expected", [
    ("10M", 10 * 1024**2),
    ("512K", 512 * 1024),
    ("1GB", 1024**3),
    ("100", 100),
    (2048, 2048),
    ("lots", None),
])
def test_human_size(text, expected):
    assert config._human_size_to_bytes(text) == expected


def test_scalar_sections_are_reported_not_crashing(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("build: 5\nresolver: raw\n", encoding="utf-8")
    cfg = config.load(str(path))
    assert cfg.get("build.timeout") is None
    assert config.get_tools_config(cfg)["shell"] == ["sh", "-c", "{command}"]
    with pytest.raises(ValueError, match="build must be a mapping"):
        config.load(str(path), fatal=True)


def test_tool_template_fields_are_checked(tmp_path):
    path = tmp_path / "tools.yaml"
    path.write_text("tools:\n  shell: [sh, -c, '{cmd}']\n  fetch: [curl, -o, '{dest}/x', '{url}']\n", encoding="utf-8")
    with pytest.raises(ValueError) as exc:
        config.load(str(path), fatal=True)
    assert "tools.shell uses unknown field(s) ['cmd']" in str(exc.value)
    assert "tools.fetch" not in str(exc.value)
