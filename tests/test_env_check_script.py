"""Tests for the environment drift detection script."""

from __future__ import annotations

from pathlib import Path

import pytest

from scripts import check_env

REQUIRED_ENV_KEYS = ["TELEGRAM_BOT_TOKEN", "APPS_SCRIPT_URL"]
OPTIONAL_ENV_KEYS = [
    "DEFAULT_RECIPIENTS",
    "REPORT_TIMEZONE",
    "SMTP_SERVER",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "FROM_EMAIL",
    "TELEGRAM_ADMIN_CHAT_ID",
    "TELEGRAM_WEBHOOK_SECRET",
]

VALID_ENV = {
    "TELEGRAM_BOT_TOKEN": "123:abc",
    "APPS_SCRIPT_URL": "https://script.google.com/macros/s/abc/exec",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so values loaded from the env file are undone after the test.
    for key in REQUIRED_ENV_KEYS + OPTIONAL_ENV_KEYS:
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    assert hash_file.read_text(encoding="utf-8").strip()

    _clear_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(env_file, **{**VALID_ENV, "TELEGRAM_BOT_TOKEN": "456:rotated"})

    _clear_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_verify_without_baseline(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(tmp_path / "none")]
    )
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_validation_failure_for_missing_required_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    _write_env(env_file, APPS_SCRIPT_URL=VALID_ENV["APPS_SCRIPT_URL"])

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


def test_strict_mode_fails_on_bad_optional_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(
        env_file,
        **VALID_ENV,
        DEFAULT_RECIPIENTS="ops@company.com,not-an-address",
        REPORT_TIMEZONE="Mars/Olympus",
    )

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_OK

    _clear_env(monkeypatch)
    exit_code = check_env.main(["check", "--env-file", str(env_file), "--strict"])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    err = capsys.readouterr().err
    assert "not-an-address" in err
    assert "Mars/Olympus" in err


def test_review_reports_enabled_integrations(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(
        env_file,
        **VALID_ENV,
        SMTP_SERVER="smtp.example.com",
        SMTP_USERNAME="bot",
        SMTP_PASSWORD="secret",
        FROM_EMAIL="bot@example.com",
        TELEGRAM_ADMIN_CHAT_ID="-100200",
    )

    assert check_env.main(["check", "--env-file", str(env_file), "--strict"]) == check_env.EXIT_OK
    out = capsys.readouterr().out
    assert "SMTP: enabled via smtp.example.com:587" in out
    assert "Admin alerts: chat -100200" in out
