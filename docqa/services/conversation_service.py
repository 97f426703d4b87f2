"""
Conversation Service - per-session document key and question/answer history.

Routes load a ConversationContext from the session (kept server-side by
Flask-Session), pass it to the service calls that need it and save it
back. Nothing here reads ``flask.session`` on its own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional

from docqa.errors import QuestionAnswerError
from docqa.models import ConversationEntry

logger = logging.getLogger(__name__)

DOCUMENT_KEY = "pdf_key"
CONVERSATION_KEY = "conversation"


@dataclass
class ConversationContext:
    document_key: Optional[str] = None
    entries: List[ConversationEntry] = field(default_factory=list)

    @classmethod
    def load(cls, store: MutableMapping[str, Any]) -> "ConversationContext":
        entries = []
        for item in store.get(CONVERSATION_KEY) or []:
            if isinstance(item, dict):
                entries.append(ConversationEntry(
                    question=str(item.get("question") or ""),
                    answer=str(item.get("answer") or ""),
                ))
        return cls(document_key=store.get(DOCUMENT_KEY) or None, entries=entries)

    def save(self, store: MutableMapping[str, Any]) -> None:
        store[DOCUMENT_KEY] = self.document_key
        store[CONVERSATION_KEY] = [e.to_dict() for e in self.entries]

    def reset(self, document_key: Optional[str]) -> None:
        """Point at a newly stored document and forget the previous history."""
        self.document_key = document_key
        self.entries = []

    def clear(self) -> None:
        self.reset(None)

    def append(self, question: str, answer: str) -> ConversationEntry:
        entry = ConversationEntry(question=question, answer=answer)
        self.entries.append(entry)
        return entry

    def to_dicts(self) -> List[Dict[str, str]]:
        return [e.to_dict() for e in self.entries]


class ConversationService:
    """Answers questions about the document the context points at."""

    def __init__(self, store, answerer):
        self.store = store
        self.answerer = answerer

    def ask(self, context: ConversationContext, question: str) -> ConversationEntry:
        if not context.document_key:
            raise QuestionAnswerError("No document key in context", user_message="No PDF uploaded.")
        question = (question or "").strip()
        if not question:
            raise QuestionAnswerError("Empty question", user_message="Please enter a question.")

        document_text = self.store.get_text(context.document_key)
        answer = self.answerer.ask(question, document_text)
        logger.info("Answered question on %s (%d chars)", context.document_key, len(answer))
        return context.append(question, answer)
