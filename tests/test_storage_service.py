"""Tests for the StorageService facade."""

import json
import logging

import pytest

from sharedrop.config import Settings
from sharedrop.errors import InvalidFilename, InvalidText, NoFiles, NotFound
from sharedrop.storage import StorageService, UploadedBlob


def _blob(name: str, content: bytes = b"data", mimetype: str = "text/plain") -> UploadedBlob:
    return UploadedBlob(content=content, display_name=name, mimetype=mimetype)


def test_post_text(storage):
    message = storage.post_text("  hi there ")
    assert message.text == "hi there"
    assert storage.list_messages() == [message]


def test_post_upload_single_file_uses_original_name(storage, shared_dir):
    message = storage.post_upload(None, [_blob("report final.pdf", b"%PDF")])

    assert message.text == "report final.pdf"
    assert len(message.files) == 1
    attachment = message.files[0]
    assert attachment.original_name == "report final.pdf"
    assert attachment.size == 4
    assert (shared_dir / attachment.filename).read_bytes() == b"%PDF"


def test_post_upload_two_files_caption(storage):
    message = storage.post_upload("   ", [_blob("a.txt"), _blob("b.txt")])
    assert message.text == "2 files"


def test_post_upload_preserves_input_order(storage):
    names = ["c.txt", "a.txt", "b.txt"]
    message = storage.post_upload("ordered", [_blob(n) for n in names])
    assert [f.original_name for f in message.files] == names


def test_post_upload_without_files_is_no_files(storage, ledger_path):
    with pytest.raises(NoFiles):
        storage.post_upload("caption", [])
    assert not ledger_path.exists()


def test_store_level_empty_attachments_stays_invalid_text(storage):
    with pytest.raises(InvalidText):
        storage.messages.append_with_attachments("caption", [])


def test_failed_save_leaves_ledger_untouched(storage, ledger_path, monkeypatch):
    storage.post_text("existing")
    before = ledger_path.read_text(encoding="utf-8")
    real_save = storage.files.save
    calls = []

    def flaky_save(content, display_name, mimetype=None):
        calls.append(display_name)
        if len(calls) == 2:
            raise OSError("disk full")
        return real_save(content, display_name, mimetype)

    monkeypatch.setattr(storage.files, "save", flaky_save)

    with pytest.raises(OSError):
        storage.post_upload(None, [_blob("a.txt"), _blob("b.txt")])

    assert ledger_path.read_text(encoding="utf-8") == before


def test_delete_message_cascades_to_files(storage, shared_dir):
    message = storage.post_upload(None, [_blob("a.txt"), _blob("b.txt")])
    stored = [shared_dir / f.filename for f in message.files]
    assert all(p.exists() for p in stored)

    removed = storage.delete_message(message.id)

    assert removed.id == message.id
    assert not any(p.exists() for p in stored)
    assert storage.list_messages() == []


def test_delete_message_tolerates_missing_file(storage, shared_dir):
    message = storage.post_upload(None, [_blob("a.txt"), _blob("b.txt")])
    first, second = (shared_dir / f.filename for f in message.files)
    first.unlink()

    storage.delete_message(message.id)

    assert not second.exists()
    assert storage.list_messages() == []


def test_delete_message_logs_and_swallows_file_errors(storage, shared_dir, monkeypatch, caplog):
    message = storage.post_upload(None, [_blob("a.txt")])

    def broken_delete(name):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(storage.files, "delete", broken_delete)

    with caplog.at_level(logging.WARNING, logger="sharedrop"):
        storage.delete_message(message.id)

    assert storage.list_messages() == []
    assert (shared_dir / message.files[0].filename).exists()
    events = [json.loads(r.getMessage())["event"] for r in caplog.records]
    assert "attachment_delete_failed" in events


def test_delete_message_with_tampered_filename(storage, ledger_path):
    message = storage.post_upload(None, [_blob("a.txt")])
    records = json.loads(ledger_path.read_text(encoding="utf-8"))
    records[0]["files"][0]["filename"] = "../../etc/passwd"
    ledger_path.write_text(json.dumps(records), encoding="utf-8")

    removed = storage.delete_message(message.id)

    assert removed.files[0].filename == "../../etc/passwd"
    assert storage.list_messages() == []


def test_list_shared_names_excludes_ledger(storage):
    message = storage.post_upload("files", [_blob("a.txt")])
    storage.post_text("plain")

    assert storage.list_shared_names() == [message.files[0].filename]
    assert [f.name for f in storage.list_shared_files()] == [message.files[0].filename]


def test_delete_shared_file(storage):
    message = storage.post_upload(None, [_blob("a.txt")])
    name = message.files[0].filename

    storage.delete_shared_file(name)

    assert storage.list_shared_names() == []
    with pytest.raises(NotFound):
        storage.delete_shared_file(name)


def test_delete_shared_file_refuses_ledger(storage, ledger_path):
    storage.post_text("keep me")
    with pytest.raises(InvalidFilename):
        storage.delete_shared_file("messages.json")
    assert ledger_path.exists()


def test_from_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("SHARED_DIR", str(tmp_path / "drop"))
    monkeypatch.setenv("LEDGER_FILENAME", "ledger.json")

    service = StorageService.from_settings(Settings())
    service.post_text("configured")

    assert (tmp_path / "drop" / "ledger.json").exists()
    assert service.list_shared_names() == []
