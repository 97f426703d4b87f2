"""
Domain Models

Key Models:
- User: authenticated identity (email) for Flask-Login
- Document: uploaded file owned by one extraction run
- RasterImage: transient page image produced for OCR
- ExtractionResult: terminal value of one extraction run
- ConversationEntry: one question/answer pair of the active session
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask_login import UserMixin


class ExtractionState(enum.Enum):
    RECEIVED = "received"
    DIRECT_ATTEMPTED = "direct_attempted"
    TEXT_FOUND = "text_found"
    NEEDS_OCR = "needs_ocr"
    RASTERIZED = "rasterized"
    RECOGNIZED = "recognized"
    AGGREGATED = "aggregated"
    PERSISTED = "persisted"
    CLEANED_UP = "cleaned_up"
    FAILED = "failed"


class User(UserMixin):
    """Identity already verified by the identity provider; the email is the id."""

    def __init__(self, email: str):
        self.id = email

    @property
    def email(self) -> str:
        return self.id


@dataclass(frozen=True)
class Document:
    """
    Uploaded document on local storage.

    ``document_id`` is the stable identifier used in the artifact key,
    normally the stored file name.
    """
    path: str
    document_id: str

    @classmethod
    def from_path(cls, path: str) -> "Document":
        return cls(path=path, document_id=os.path.basename(path))

    @property
    def stem(self) -> str:
        return os.path.splitext(self.document_id)[0] or self.document_id


@dataclass(frozen=True)
class RasterImage:
    page: int
    path: str


@dataclass
class ExtractionResult:
    document_id: str
    ok: bool = False
    key: Optional[str] = None
    text: Optional[str] = None
    page_count: Optional[int] = None
    used_ocr: bool = False
    state: ExtractionState = ExtractionState.RECEIVED
    transitions: List[ExtractionState] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def user_message(self) -> str:
        if self.ok:
            return ""
        return getattr(self.error, "user_message", None) or "Error processing PDF."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "ok": self.ok,
            "key": self.key,
            "page_count": self.page_count,
            "used_ocr": self.used_ocr,
            "state": self.state.value,
            "transitions": [s.value for s in self.transitions],
            "error": self.user_message or None,
        }


@dataclass(frozen=True)
class ConversationEntry:
    question: str
    answer: str

    def to_dict(self) -> Dict[str, str]:
        return {"question": self.question, "answer": self.answer}
