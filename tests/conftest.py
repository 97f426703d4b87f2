"""
Test Configuration and Fixtures
"""
import os
import tempfile

import pytest

_TMP = tempfile.mkdtemp(prefix="docqa-tests-")
os.environ.setdefault("UPLOAD_FOLDER", os.path.join(_TMP, "uploads"))
os.environ.setdefault("LOCAL_ARTIFACT_DIR", os.path.join(_TMP, "artifacts"))
os.environ.setdefault("SESSION_FILE_DIR", os.path.join(_TMP, "sessions"))

from docqa import create_app  # noqa: E402
from docqa.errors import IdentityError, OcrError, PersistenceError, RasterizationError  # noqa: E402
from docqa.models import Document, RasterImage  # noqa: E402
from docqa.services import Services  # noqa: E402
from docqa.services.conversation_service import ConversationService  # noqa: E402
from docqa.services.extraction import ExtractionOrchestrator  # noqa: E402


# ============ Deterministic stand-ins for the real backends ============

class StubExtractor:
    """Direct extractor returning canned text and page count"""

    def __init__(self, text="", pages=0, error=None):
        self.text = text
        self.pages = pages
        self.error = error
        self.calls = 0

    def extract(self, document):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text, self.pages

    def page_count(self, document):
        return self.pages


class StubRasterizer:
    """Writes a small placeholder image file per page"""

    def __init__(self, save_dir, fail_on=None, on_render=None):
        self.save_dir = str(save_dir)
        self.fail_on = fail_on
        self.on_render = on_render
        self.rendered = []
        self.leftovers_at_render = {}

    def render(self, document, page):
        os.makedirs(self.save_dir, exist_ok=True)
        self.leftovers_at_render[page] = sorted(os.listdir(self.save_dir))
        if self.on_render is not None:
            self.on_render(document, page)
        if page == self.fail_on:
            raise RasterizationError("renderer crashed", page=page)
        path = os.path.join(self.save_dir, f"{document.stem}.page.{page}.png")
        with open(path, "wb") as f:
            f.write(b"\x89PNG fake")
        self.rendered.append(page)
        return RasterImage(page=page, path=path)


class StubOcrEngine:
    """Returns "page{n} text" for page n"""

    def __init__(self, fail_on=None, texts=None, on_recognize=None):
        self.fail_on = fail_on
        self.texts = texts
        self.on_recognize = on_recognize
        self.calls = []
        self.languages = []

    def recognize(self, image, language):
        assert os.path.exists(image.path)
        self.calls.append(image.page)
        self.languages.append(language)
        if self.on_recognize is not None:
            self.on_recognize(image)
        if image.page == self.fail_on:
            raise OcrError("engine crashed")
        if self.texts is not None:
            return self.texts[image.page - 1]
        return f"page{image.page} text"


class InMemoryArtifactStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.data = {}
        self.writes = []

    def put_text(self, key, text):
        if self.fail:
            raise PersistenceError("bucket unavailable")
        self.writes.append(key)
        self.data[key] = text

    def get_text(self, key):
        if key not in self.data:
            raise PersistenceError(f"missing {key}")
        return self.data[key]


class StubIdentityProvider:
    def __init__(self):
        self.users = {"test@example.com": "testpassword123"}

    def register(self, email, password):
        if email in self.users:
            raise IdentityError("exists", user_message="An account with the given email already exists.")
        self.users[email] = password

    def authenticate(self, email, password):
        if self.users.get(email) != password:
            raise IdentityError("bad credentials", user_message="Incorrect username or password.")
        return email


class StubAnswerer:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def ask(self, question, document_text):
        self.calls.append((question, document_text))
        if self.error is not None:
            raise self.error
        return f"answer to {question}"


# ============ Fixtures ============

@pytest.fixture
def make_document(tmp_path):
    """Create an uploaded-file stand-in and return its Document"""
    def _make(name="1700000000000_scan.pdf", data=b"%PDF-1.4 fake"):
        upload_dir = tmp_path / "uploads"
        upload_dir.mkdir(exist_ok=True)
        path = upload_dir / name
        path.write_bytes(data)
        return Document.from_path(str(path))
    return _make


@pytest.fixture
def page_dir(tmp_path):
    return tmp_path / "pages"


@pytest.fixture
def store():
    return InMemoryArtifactStore()


@pytest.fixture
def build_orchestrator(page_dir, store):
    """Factory for an orchestrator wired to stubs"""
    def _build(extractor, rasterizer=None, ocr=None, artifact_store=None, **kwargs):
        return ExtractionOrchestrator(
            extractor=extractor,
            rasterizer=rasterizer or StubRasterizer(page_dir),
            ocr_engine=ocr or StubOcrEngine(),
            store=artifact_store or store,
            **kwargs,
        )
    return _build


@pytest.fixture
def answerer():
    return StubAnswerer()


@pytest.fixture
def identity():
    return StubIdentityProvider()


@pytest.fixture
def extractor():
    return StubExtractor(text="Hello world", pages=1)


@pytest.fixture
def app(tmp_path, page_dir, store, answerer, identity, extractor):
    """Create application for testing"""
    orchestrator = ExtractionOrchestrator(
        extractor=extractor,
        rasterizer=StubRasterizer(page_dir),
        ocr_engine=StubOcrEngine(),
        store=store,
    )
    services = Services(
        orchestrator=orchestrator,
        conversations=ConversationService(store, answerer),
        identity=identity,
        store=store,
    )
    app = create_app('testing', services=services)
    app.config['UPLOAD_FOLDER'] = str(tmp_path / "uploads")
    yield app


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def authenticated_client(client):
    """Create authenticated test client"""
    client.post('/login', data={
        'email': 'test@example.com',
        'password': 'testpassword123'
    })
    return client
