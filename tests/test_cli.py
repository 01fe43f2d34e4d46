from click.testing import CliRunner

from conftest import MemoryKeyring
from onboarding_automation.cli import app
from onboarding_automation.parsers.hires_csv import write_hires
from onboarding_automation.utils.credential_manager import CredentialManager


def test_store_credential_prompts_for_secret(monkeypatch):
    backend = MemoryKeyring()
    monkeypatch.setattr(app, "CredentialManager", lambda: CredentialManager(backend))

    result = CliRunner().invoke(app.cli, ["store-credential", "onboarding-smtp", "bot@example.com"],
                                input="s3cret\ns3cret\n")

    assert result.exit_code == 0, result.output
    assert backend.secrets[("onboarding-smtp", "bot@example.com")] == "s3cret"


def test_invalid_settings_exit_1(tmp_path, monkeypatch):
    monkeypatch.setattr(app, "setup_logging", lambda *a, **kw: None)
    bad = tmp_path / "bad.yaml"
    bad.write_text("company_name: Example\n", encoding="utf-8")

    result = CliRunner().invoke(app.cli, ["export", "--settings", str(bad)])
    assert result.exit_code == 1


def test_provision_missing_csv_exit_1(tmp_path, monkeypatch):
    monkeypatch.setattr(app, "setup_logging", lambda *a, **kw: None)
    result = CliRunner().invoke(app.cli, ["provision", "--input", str(tmp_path / "missing.csv")])
    assert result.exit_code == 1


def test_provision_with_minimal_settings_file(tmp_path, monkeypatch, settings_data):
    import yaml

    monkeypatch.setattr(app, "setup_logging", lambda *a, **kw: None)
    del settings_data["google"]
    settings = tmp_path / "settings.yaml"
    settings.write_text(yaml.safe_dump(settings_data), encoding="utf-8")
    hires = tmp_path / "hires.csv"
    write_hires(hires, [])

    result = CliRunner().invoke(app.cli, ["provision", "--settings", str(settings), "--input", str(hires)])

    assert result.exit_code == 0, result.output
    assert "Created: 0" in result.output
