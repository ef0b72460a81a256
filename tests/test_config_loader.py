# Config Loader Tests
# Merge order of the two YAML files and environment overrides
# Dependent files: config_loader.py

from config_loader import load_config


def test_defaults_without_files(tmp_path, monkeypatch):
    monkeypatch.delenv("PORTFOLIO_API_URL", raising=False)
    monkeypatch.delenv("PORTFOLIO_API_TOKEN", raising=False)
    config = load_config(root=tmp_path)
    assert config["api"]["base_url"] == "http://localhost:5000"
    assert config["preview"]["freshness_hours"] == 12
    assert "token" not in config["api"]


def test_content_file_wins_over_tech_file(tmp_path, monkeypatch):
    monkeypatch.delenv("PORTFOLIO_API_URL", raising=False)
    (tmp_path / "config.tech.yaml").write_text("api:\n  base_url: http://tech.test\n  timeout_seconds: 5\n")
    (tmp_path / "config.content.yaml").write_text("api:\n  base_url: http://content.test\n")

    config = load_config(root=tmp_path)

    assert config["api"]["base_url"] == "http://content.test"
    assert config["api"]["timeout_seconds"] == 5
    assert config["api"]["prefix"] == "/api"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("PORTFOLIO_API_URL", "http://env.test")
    monkeypatch.setenv("PORTFOLIO_API_TOKEN", "secret")
    config = load_config(root=tmp_path)
    assert config["api"]["base_url"] == "http://env.test"
    assert config["api"]["token"] == "secret"


def test_repository_config_loads():
    config = load_config()
    assert config["content"]["required_fields"]["projects"] == ["technologies"]
    assert config["content"]["filters"]["project"][0] == "all"
