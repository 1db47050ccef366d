import os
from pathlib import Path
from typing import Optional

from .errors import NotFound
from .filenames import generate_stored_name, resolve_inside
from .models import Attachment


class FileStore:
    """Owns every path under the shared directory."""

    def __init__(self, shared_dir: str | os.PathLike) -> None:
        self.shared_dir = Path(shared_dir)

    def ensure_dir(self) -> None:
        self.shared_dir.mkdir(parents=True, exist_ok=True)

    def save(
        self,
        content: bytes,
        display_name: Optional[str],
        mimetype: Optional[str] = None,
    ) -> Attachment:
        self.ensure_dir()
        filename = generate_stored_name(display_name)
        path = resolve_inside(self.shared_dir, filename)

        with open(path, "xb") as fh:
            written = fh.write(content)

        return Attachment.for_stored_file(
            original_name=display_name or filename,
            filename=filename,
            size=written,
            mimetype=mimetype,
        )

    def resolve_path(self, name: object) -> Path:
        return resolve_inside(self.shared_dir, name)

    def list(self) -> list[str]:
        try:
            return sorted(os.listdir(self.shared_dir))
        except FileNotFoundError:
            return []

    def read(self, name: object) -> bytes:
        path = self.resolve_path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound("File not found") from None

    def delete(self, name: object) -> bool:
        """
        Remove a stored file.

        Returns False when the file is already gone, True once unlinked.
        Any other OSError propagates.
        """
        path = self.resolve_path(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
