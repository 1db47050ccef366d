import logging
from pathlib import Path
from typing import Iterable, NamedTuple, Optional, Sequence

from .config import Settings, settings
from .errors import InvalidFilename, NoFiles, NotFound, StorageError
from .file_store import FileStore
from .logging_utils import log_event
from .message_store import MISSING, MessageStore
from .metrics import inc_storage_operation
from .models import Attachment, Message, SharedFile, shared_url


class UploadedBlob(NamedTuple):
    content: bytes
    display_name: Optional[str]
    mimetype: Optional[str] = None


class StorageService:
    """Messages in the ledger plus their attachment files on disk."""

    def __init__(self, file_store: FileStore, message_store: MessageStore) -> None:
        self.files = file_store
        self.messages = message_store

    @classmethod
    def from_settings(cls, cfg: Settings) -> "StorageService":
        return cls(
            FileStore(cfg.SHARED_DIR),
            MessageStore(Path(cfg.SHARED_DIR) / cfg.LEDGER_FILENAME),
        )

    @property
    def ledger_name(self) -> str:
        return self.messages.ledger_path.name

    # ---------- messages ----------

    def list_messages(self) -> list[Message]:
        return self.messages.read_all()

    def post_text(self, text: object) -> Message:
        message = self.messages.append(text)
        inc_storage_operation("post_text", "ok")
        return message

    def post_upload(self, text: object, files: Sequence[UploadedBlob]) -> Message:
        """
        Save every file (in order) and then record one message for them.

        The ledger is only written after all files are on disk, so a
        message never references a file that failed to save.
        """
        if not files:
            raise NoFiles()

        attachments: list[Attachment] = [
            self.files.save(blob.content, blob.display_name, blob.mimetype)
            for blob in files
        ]
        message = self.messages.append_with_attachments(text, attachments)
        inc_storage_operation("post_upload", "ok")
        return message

    def update_message(self, id: object, text=MISSING, note=MISSING) -> Message:
        return self.messages.update_by_id(id, text=text, note=note)

    def delete_message(self, id: object) -> Message:
        removed = self.messages.delete_by_id(id)
        self._delete_attachments(removed.id, removed.files or [])
        inc_storage_operation("delete_message", "ok")
        return removed

    def _delete_attachments(self, message_id: int, attachments: Iterable[Attachment]) -> None:
        for attachment in attachments:
            try:
                self.files.delete(attachment.filename)
            except (StorageError, OSError) as exc:
                inc_storage_operation("delete_attachment", "failed")
                log_event(
                    logging.WARNING,
                    "attachment_delete_failed",
                    message_id=message_id,
                    filename=attachment.filename,
                    error=repr(exc),
                )

    # ---------- shared files ----------

    def list_shared_names(self) -> list[str]:
        ledger = self.ledger_name
        return [name for name in self.files.list() if name != ledger]

    def list_shared_files(self) -> list[SharedFile]:
        return [
            SharedFile(name=name, url=shared_url(name))
            for name in self.list_shared_names()
        ]

    def resolve_shared_path(self, name: object) -> Path:
        return self.files.resolve_path(name)

    def read_shared_file(self, name: object) -> bytes:
        return self.files.read(name)

    def delete_shared_file(self, name: object) -> None:
        # the ledger is only ever removed by deleting messages
        if name == self.ledger_name:
            raise InvalidFilename()
        if not self.files.delete(name):
            raise NotFound("File not found")
        inc_storage_operation("delete_file", "ok")


def get_storage() -> StorageService:
    return StorageService.from_settings(settings)
