"""Tests for app/provisioning and the storage scripts."""

import runpy
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import StorageError
from app.provisioning import cli
from app.provisioning.storage import (
    CURSOS,
    PROFILE_PICTURES,
    ensure_bucket,
    verify_bucket,
)

SCRIPTS = Path(__file__).resolve().parents[1] / "scripts"


def _client(*bucket_names: str) -> MagicMock:
    client = MagicMock()
    client.storage.list_buckets.return_value = [SimpleNamespace(name=name) for name in bucket_names]
    return client


def _script_main(name: str):
    return runpy.run_path(str(SCRIPTS / name), run_name="script_under_test")["main"]


# ----- ensure_bucket -----


def test_ensure_bucket_creates_missing_bucket():
    client = _client("otro")

    assert ensure_bucket(client, PROFILE_PICTURES) is True

    client.storage.create_bucket.assert_called_once_with("profile-pictures", options=PROFILE_PICTURES.options())
    client.storage.update_bucket.assert_called_once_with("profile-pictures", PROFILE_PICTURES.options())


def test_ensure_bucket_existing_bucket_is_reconfigured():
    client = _client("cursos")

    assert ensure_bucket(client, CURSOS) is False

    client.storage.create_bucket.assert_not_called()
    client.storage.update_bucket.assert_called_once()


def test_ensure_bucket_tolerates_concurrent_creation():
    client = _client()
    client.storage.create_bucket.side_effect = RuntimeError("The resource already exists")

    assert ensure_bucket(client, CURSOS) is False


def test_ensure_bucket_creation_failure():
    client = _client()
    client.storage.create_bucket.side_effect = RuntimeError("permission denied")

    with pytest.raises(StorageError, match="permission denied"):
        ensure_bucket(client, CURSOS)


def test_update_failure_is_fatal_only_for_strict_policies(caplog):
    client = _client("cursos", "profile-pictures")
    client.storage.update_bucket.side_effect = RuntimeError("not allowed")

    assert ensure_bucket(client, CURSOS) is False
    assert "Could not update bucket cursos" in caplog.text

    with pytest.raises(StorageError):
        ensure_bucket(client, PROFILE_PICTURES)


def test_policies():
    assert PROFILE_PICTURES.options() == {
        "public": True,
        "allowed_mime_types": ["image/jpeg", "image/png", "image/gif", "image/webp"],
        "file_size_limit": 5 * 1024 * 1024,
    }
    assert CURSOS.file_size_limit == 1024 * 1024 * 1024
    assert "application/pdf" in CURSOS.allowed_mime_types
    assert "video/mp4" in CURSOS.allowed_mime_types


# ----- verify_bucket -----


def test_verify_bucket_only_tries_accepted_types():
    client = _client("profile-pictures")
    store = client.storage.from_.return_value
    store.get_public_url.side_effect = lambda path: f"https://cdn.example.com/{path}"

    results = verify_bucket(client, "profile-pictures")

    assert [r.content_type for r in results] == ["image/webp", "image/png"]
    assert all(r.ok for r in results)
    assert store.remove.call_count == 2


def test_verify_bucket_reports_failures():
    client = _client("cursos")
    client.storage.from_.return_value.upload.side_effect = RuntimeError("mime type not supported")

    results = verify_bucket(client, "cursos")

    assert results and not any(r.ok for r in results)
    assert results[0].error == "mime type not supported"


def test_verify_bucket_missing():
    with pytest.raises(StorageError, match="no existe"):
        verify_bucket(_client(), "cursos")


# ----- cli / scripts -----


def test_run_setup_without_credentials(monkeypatch, caplog):
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

    assert cli.run_setup(CURSOS) == 1
    assert "SUPABASE_SERVICE_ROLE_KEY" in caplog.text


def test_run_setup_success_and_failure(monkeypatch):
    client = _client()
    monkeypatch.setattr(cli, "client_from_env", lambda: client)

    assert cli.run_setup(CURSOS) == 0

    client.storage.create_bucket.side_effect = RuntimeError("quota exceeded")
    assert cli.run_setup(CURSOS) == 1


def test_setup_courses_bucket_script_configures_legacy_buckets(monkeypatch):
    client = _client()
    monkeypatch.setattr(cli, "client_from_env", lambda: client)

    assert _script_main("setup_courses_bucket.py")(["--legacy"]) == 0

    created = [c.args[0] for c in client.storage.create_bucket.call_args_list]
    assert created == ["cursos", "videos", "materiales", "course-materials"]


def test_verify_storage_script_exit_codes(monkeypatch):
    client = _client("cursos")
    monkeypatch.setattr(cli, "client_from_env", lambda: client)
    main = _script_main("verify_storage.py")

    assert main(["--bucket", "cursos"]) == 0
    assert main(["--bucket", "inexistente"]) == 1
