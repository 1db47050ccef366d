"""JSON ledger of messages.

The whole ledger is loaded and rewritten for every mutation. There is no
lock around the read-modify-write cycle: two writers racing on the same
ledger can lose one of their updates (last write wins).
"""

import json
import logging
import math
import os
import time
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, TypeVar

from pydantic import ValidationError

from .errors import InvalidId, InvalidText, NotFound
from .logging_utils import iso_now, log_event
from .models import Attachment, Message

T = TypeVar("T")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# marks a field that was not supplied at all (as opposed to None/blank)
MISSING: Any = _Missing()


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def coerce_id(value: object) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidId()
    if isinstance(value, (int, float)):
        try:
            numeric = float(value)
        except OverflowError:
            raise InvalidId() from None
    elif isinstance(value, str):
        try:
            numeric = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            raise InvalidId() from None
    else:
        raise InvalidId()

    if not math.isfinite(numeric):
        raise InvalidId()
    return numeric


def _trimmed(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _record_id(record: Any) -> Optional[float]:
    if not isinstance(record, dict):
        return None
    raw = record.get("id")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    try:
        return float(raw)
    except OverflowError:
        return None


def _find(records: list[Any], numeric_id: float) -> tuple[int, Message]:
    # entries that are not valid messages are invisible to lookups, as in read_all
    for index, record in enumerate(records):
        if _record_id(record) != numeric_id:
            continue
        try:
            return index, Message.model_validate(record)
        except ValidationError:
            continue
    raise NotFound()


class MessageStore:
    def __init__(self, ledger_path: str | os.PathLike) -> None:
        self.ledger_path = Path(ledger_path)
        self._last_id = 0

    # ---------- raw ledger I/O ----------

    def _load(self) -> list[Any]:
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            raw = self.ledger_path.read_bytes()
        except FileNotFoundError:
            return []

        if not raw.strip():
            return []

        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (ValueError, RecursionError):
            # a corrupted ledger reads as empty instead of failing the request
            log_event(logging.WARNING, "ledger_corrupt", path=str(self.ledger_path))
            return []

        if not isinstance(parsed, list):
            log_event(logging.WARNING, "ledger_not_array", path=str(self.ledger_path))
            return []
        return parsed

    def _write(self, records: list[Any]) -> None:
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(records, indent=2, ensure_ascii=False) + "\n"
        self.ledger_path.write_text(payload, encoding="utf-8")

    def read_modify_write(self, mutator: Callable[[list[Any]], T]) -> T:
        """
        Load the full ledger, let ``mutator`` change the list in place and
        write it back.

        If the mutator raises, nothing is written.
        """
        records = self._load()
        result = mutator(records)
        self._write(records)
        return result

    # ---------- queries ----------

    def read_all(self) -> list[Message]:
        messages: list[Message] = []
        for index, record in enumerate(self._load()):
            try:
                messages.append(Message.model_validate(record))
            except ValidationError:
                log_event(
                    logging.WARNING,
                    "ledger_entry_skipped",
                    path=str(self.ledger_path),
                    index=index,
                )
        return messages

    # ---------- mutations ----------

    def _next_id(self, records: list[Any]) -> int:
        existing = [rid for rid in map(_record_id, records) if rid is not None]
        floor = int(max(existing)) + 1 if existing else 0
        next_id = max(_now_ms(), self._last_id + 1, floor)
        self._last_id = next_id
        return next_id

    def _insert(self, text: str, files: Optional[Sequence[Attachment]] = None) -> Message:
        def mutate(records: list[Any]) -> Message:
            message = Message(
                id=self._next_id(records),
                text=text,
                created_at=iso_now(),
                files=list(files) if files else None,
            )
            records.append(message.to_record())
            return message

        return self.read_modify_write(mutate)

    def append(self, text: object) -> Message:
        trimmed = _trimmed(text)
        if not trimmed:
            raise InvalidText()
        return self._insert(trimmed)

    def append_with_attachments(
        self, text: object, attachments: Sequence[Attachment]
    ) -> Message:
        if not attachments:
            # same code as blank text so callers only branch on one 400
            raise InvalidText("At least one file is required")

        caption = _trimmed(text)
        if not caption:
            if len(attachments) == 1:
                caption = attachments[0].original_name
            else:
                caption = f"{len(attachments)} files"

        return self._insert(caption, attachments)

    def delete_by_id(self, id: object) -> Message:
        numeric_id = coerce_id(id)

        def mutate(records: list[Any]) -> Message:
            index, message = _find(records, numeric_id)
            records.pop(index)
            return message

        return self.read_modify_write(mutate)

    def update_by_id(self, id: object, text: Any = MISSING, note: Any = MISSING) -> Message:
        numeric_id = coerce_id(id)

        has_text = text is not MISSING
        has_note = note is not MISSING
        if not has_text and not has_note:
            raise InvalidText("No fields to update")

        changes: dict[str, str] = {}
        if has_text:
            next_text = _trimmed(text)
            if not next_text:
                raise InvalidText()
            changes["text"] = next_text

        next_note = _trimmed(note) if has_note else ""

        def mutate(records: list[Any]) -> Message:
            index, _ = _find(records, numeric_id)
            updated = dict(records[index])
            updated.update(changes)
            if has_note:
                if next_note:
                    updated["note"] = next_note
                else:
                    # never persist an empty note
                    updated.pop("note", None)
            records[index] = updated
            return Message.model_validate(updated)

        return self.read_modify_write(mutate)
