"""
Conversation Context and Service Tests
"""
import pytest

from conftest import InMemoryArtifactStore, StubAnswerer
from docqa.errors import PersistenceError, QuestionAnswerError
from docqa.services.conversation_service import (
    CONVERSATION_KEY,
    DOCUMENT_KEY,
    ConversationContext,
    ConversationService,
)


class TestConversationContext:
    """Test session round trip"""

    def test_empty_session(self):
        context = ConversationContext.load({})
        assert context.document_key is None
        assert context.entries == []

    def test_save_then_load(self):
        session = {}
        context = ConversationContext.load(session)
        context.reset("pdf-texts/u/a.pdf.txt")
        context.append("Q1", "A1")
        context.save(session)

        assert session[DOCUMENT_KEY] == "pdf-texts/u/a.pdf.txt"
        assert session[CONVERSATION_KEY] == [{"question": "Q1", "answer": "A1"}]

        loaded = ConversationContext.load(session)
        assert loaded.document_key == "pdf-texts/u/a.pdf.txt"
        assert loaded.to_dicts() == [{"question": "Q1", "answer": "A1"}]

    def test_reset_forgets_history(self):
        """A new document starts an empty conversation"""
        context = ConversationContext(document_key="old")
        context.append("Q", "A")
        context.reset("new")
        assert context.document_key == "new"
        assert context.entries == []

    def test_clear(self):
        context = ConversationContext(document_key="old")
        context.append("Q", "A")
        context.clear()
        assert context.document_key is None
        assert context.entries == []

    def test_ignores_malformed_entries(self):
        context = ConversationContext.load({CONVERSATION_KEY: ["junk", {"question": "Q"}]})
        assert context.to_dicts() == [{"question": "Q", "answer": ""}]


class TestConversationService:
    """Test asking questions"""

    @pytest.fixture
    def text_store(self):
        store = InMemoryArtifactStore()
        store.put_text("k.txt", "document body")
        return store

    def test_ask_appends_entry(self, text_store):
        answerer = StubAnswerer()
        context = ConversationContext(document_key="k.txt")

        entry = ConversationService(text_store, answerer).ask(context, "  What is it?  ")

        assert entry.answer == "answer to What is it?"
        assert answerer.calls == [("What is it?", "document body")]
        assert context.to_dicts() == [{"question": "What is it?", "answer": "answer to What is it?"}]

    def test_no_document(self, text_store):
        with pytest.raises(QuestionAnswerError) as exc_info:
            ConversationService(text_store, StubAnswerer()).ask(ConversationContext(), "Q")
        assert exc_info.value.user_message == "No PDF uploaded."

    def test_empty_question(self, text_store):
        answerer = StubAnswerer()
        with pytest.raises(QuestionAnswerError) as exc_info:
            ConversationService(text_store, answerer).ask(ConversationContext(document_key="k.txt"), "   ")
        assert exc_info.value.user_message == "Please enter a question."
        assert answerer.calls == []

    def test_answer_failure_leaves_history_untouched(self, text_store):
        context = ConversationContext(document_key="k.txt")
        service = ConversationService(text_store, StubAnswerer(error=QuestionAnswerError("lambda down")))
        with pytest.raises(QuestionAnswerError):
            service.ask(context, "Q")
        assert context.entries == []

    def test_missing_artifact(self):
        service = ConversationService(InMemoryArtifactStore(), StubAnswerer())
        with pytest.raises(PersistenceError):
            service.ask(ConversationContext(document_key="gone.txt"), "Q")
