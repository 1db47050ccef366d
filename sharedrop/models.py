from typing import Any, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field


def shared_url(filename: str) -> str:
    return "/shared/" + quote(filename, safe="")


class Attachment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_name: str = Field(alias="originalName")
    filename: str
    size: int = Field(ge=0)
    mimetype: str = "application/octet-stream"
    url: str

    @classmethod
    def for_stored_file(
        cls, *, original_name: str, filename: str, size: int, mimetype: Optional[str]
    ) -> "Attachment":
        return cls(
            original_name=original_name,
            filename=filename,
            size=size,
            mimetype=mimetype or "application/octet-stream",
            url=shared_url(filename),
        )


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    text: str
    created_at: str = Field(alias="createdAt")
    note: Optional[str] = None
    files: Optional[list[Attachment]] = None

    def to_record(self) -> dict[str, Any]:
        # absent note/files are left out of the ledger, never written as null
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- HTTP bodies ----------


class MessageUpdate(BaseModel):
    text: Any = None
    note: Any = None


class SharedFile(BaseModel):
    name: str
    url: str


class ErrorResponse(BaseModel):
    error: str
    code: str
