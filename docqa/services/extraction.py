"""
Extraction orchestrator.

Drives one uploaded document through direct text extraction, falls back
to per-page rasterization + OCR when no embedded text is found, persists
the aggregate text and deletes every transient artifact (page images and
the uploaded file) whatever the outcome.

States:
    RECEIVED -> DIRECT_ATTEMPTED -> TEXT_FOUND | NEEDS_OCR
    NEEDS_OCR -> (RASTERIZED -> RECOGNIZED)* -> AGGREGATED
    AGGREGATED -> PERSISTED -> CLEANED_UP
    any state -> FAILED
"""
from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple

from docqa.errors import (
    CleanupError,
    ExtractionCancelled,
    ExtractionError,
    ExtractionInProgress,
    MalformedDocument,
    OcrError,
    PageError,
    PersistenceError,
    RasterizationError,
)
from docqa.models import Document, ExtractionResult, ExtractionState, RasterImage
from docqa.services.aws_service import artifact_key
from docqa.services.pdf_service import text_is_meaningful

logger = logging.getLogger(__name__)

# Appended after every OCR page, so N pages yield N separators.
PAGE_SEPARATOR = "\n"

S = ExtractionState
_TRANSITIONS: Dict[ExtractionState, FrozenSet[ExtractionState]] = {
    S.RECEIVED: frozenset({S.DIRECT_ATTEMPTED}),
    S.DIRECT_ATTEMPTED: frozenset({S.TEXT_FOUND, S.NEEDS_OCR}),
    S.TEXT_FOUND: frozenset({S.AGGREGATED}),
    S.NEEDS_OCR: frozenset({S.RASTERIZED, S.AGGREGATED}),
    S.RASTERIZED: frozenset({S.RECOGNIZED}),
    S.RECOGNIZED: frozenset({S.RASTERIZED, S.AGGREGATED}),
    S.AGGREGATED: frozenset({S.PERSISTED}),
    S.PERSISTED: frozenset({S.CLEANED_UP}),
    S.CLEANED_UP: frozenset(),
    S.FAILED: frozenset(),
}


class TextExtractor(Protocol):
    def extract(self, document: Document) -> Tuple[str, int]: ...

    def page_count(self, document: Document) -> int: ...


class PageRasterizer(Protocol):
    def render(self, document: Document, page: int) -> RasterImage: ...


class OcrEngine(Protocol):
    def recognize(self, image: RasterImage, language: str) -> str: ...


class ArtifactStore(Protocol):
    def put_text(self, key: str, text: str) -> None: ...

    def get_text(self, key: str) -> str: ...


class ExtractionOrchestrator:
    """Sequential extraction pipeline; one run per document at a time."""

    _active: Set[str] = set()
    _active_lock = threading.Lock()

    def __init__(
            self,
            extractor: TextExtractor,
            rasterizer: PageRasterizer,
            ocr_engine: OcrEngine,
            store: ArtifactStore,
            language: str = "eng",
            key_prefix: str = "pdf-texts/",
            timeout_seconds: float = 0,
            clock: Callable[[], float] = time.monotonic
    ):
        self.extractor = extractor
        self.rasterizer = rasterizer
        self.ocr_engine = ocr_engine
        self.store = store
        self.language = language
        self.key_prefix = key_prefix
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    # ==================== Public API ====================

    def run(
            self,
            document: Document,
            user_id: str,
            cancel_event: Optional[threading.Event] = None
    ) -> ExtractionResult:
        """
        Extract, persist and clean up one document.

        Pipeline errors never escape: they end the run in FAILED with the
        cause on ``result.error``. Interrupts such as KeyboardInterrupt are
        re-raised, but only after cleanup has run.
        """
        result = ExtractionResult(document_id=document.document_id)
        self._advance(result, S.RECEIVED)

        if not self._claim(document):
            result.error = ExtractionInProgress(f"{document.document_id} already has an active run")
            logger.warning("Rejected concurrent run for %s", document.document_id)
            self._advance(result, S.FAILED)
            return result

        start_time = self.clock()
        deadline = start_time + self.timeout_seconds if self.timeout_seconds else None
        pending: Set[str] = set()

        try:
            text = self._extract(document, result, pending, cancel_event, deadline)
            self._advance(result, S.AGGREGATED)

            self._check_cancelled(cancel_event, deadline)
            key = artifact_key(user_id, document.document_id, self.key_prefix)
            self._persist(key, text)
            result.key = key
            result.text = text
            self._advance(result, S.PERSISTED)

        except ExtractionError as e:
            logger.error("Extraction failed for %s in state %s: %s",
                         document.document_id, result.state.value, e, exc_info=True)
            result.error = e
            self._advance(result, S.FAILED)

        except Exception as e:
            logger.exception("Unexpected error extracting %s in state %s",
                             document.document_id, result.state.value)
            result.error = e
            self._advance(result, S.FAILED)

        except BaseException:
            logger.warning("Extraction of %s interrupted in state %s",
                           document.document_id, result.state.value)
            self._advance(result, S.FAILED)
            raise

        finally:
            self._cleanup(document, pending)
            self._release(document)

        if result.state is S.PERSISTED:
            self._advance(result, S.CLEANED_UP)
            result.ok = True
            logger.info("Extraction of %s done in %.2fs: %d characters, ocr=%s",
                        document.document_id, self.clock() - start_time,
                        len(result.text or ""), result.used_ocr)
        return result

    # ==================== Pipeline Steps ====================

    def _extract(
            self,
            document: Document,
            result: ExtractionResult,
            pending: Set[str],
            cancel_event: Optional[threading.Event],
            deadline: Optional[float]
    ) -> str:
        try:
            text, page_count = self.extractor.extract(document)
        except ExtractionError:
            raise
        except Exception as e:
            raise MalformedDocument(f"Direct extraction failed: {e}") from e
        result.page_count = page_count
        self._advance(result, S.DIRECT_ATTEMPTED)

        if text_is_meaningful(text):
            self._advance(result, S.TEXT_FOUND)
            return text

        self._advance(result, S.NEEDS_OCR)
        logger.info("No embedded text in %s, falling back to OCR", document.document_id)
        if page_count is None:
            page_count = self.extractor.page_count(document)
        if not isinstance(page_count, int) or page_count < 0:
            raise MalformedDocument(f"Page count of {document.document_id} cannot be determined")
        result.page_count = page_count
        result.used_ocr = True

        parts: List[str] = []
        for page in range(1, page_count + 1):
            self._check_cancelled(cancel_event, deadline)
            parts.append(self._process_page(document, page, result, pending))
            parts.append(PAGE_SEPARATOR)
        aggregate = "".join(parts)
        if not text_is_meaningful(aggregate):
            logger.info("OCR recovered no text from %s", document.document_id)
            return ""
        return aggregate

    def _process_page(
            self,
            document: Document,
            page: int,
            result: ExtractionResult,
            pending: Set[str]
    ) -> str:
        logger.debug("Converting page %d of %s to image", page, document.document_id)
        try:
            image = self.rasterizer.render(document, page)
        except ExtractionError as e:
            _tag_page(e, page)
            raise
        except Exception as e:
            raise RasterizationError(str(e), page=page) from e
        pending.add(image.path)
        self._advance(result, S.RASTERIZED, page)

        try:
            logger.debug("Performing OCR on page %d of %s", page, document.document_id)
            text = self.ocr_engine.recognize(image, self.language)
        except ExtractionError as e:
            _tag_page(e, page)
            raise
        except Exception as e:
            raise OcrError(str(e), page=page) from e
        finally:
            # The page image never outlives its own step.
            self._delete(image.path, pending)

        self._advance(result, S.RECOGNIZED, page)
        return text or ""

    def _persist(self, key: str, text: str) -> None:
        try:
            self.store.put_text(key, text)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Artifact store write failed for {key}: {e}") from e

    # ==================== State + Bookkeeping ====================

    def _advance(self, result: ExtractionResult, state: ExtractionState, page: Optional[int] = None) -> None:
        if result.transitions:
            if state is not S.FAILED and state not in _TRANSITIONS[result.state]:
                raise RuntimeError(f"Illegal transition {result.state.value} -> {state.value}")
            if state is S.FAILED and result.state in (S.FAILED, S.CLEANED_UP):
                return
        result.state = state
        result.transitions.append(state)
        if page is None:
            logger.info("[extract] %s -> %s", result.document_id, state.value)
        else:
            logger.debug("[extract] %s page %d -> %s", result.document_id, page, state.value)

    def _check_cancelled(self, cancel_event: Optional[threading.Event], deadline: Optional[float]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ExtractionCancelled("Cancelled by caller")
        if deadline is not None and self.clock() > deadline:
            raise ExtractionCancelled(f"Deadline of {self.timeout_seconds}s exceeded")

    def _delete(self, path: str, pending: Set[str]) -> bool:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            err = CleanupError(f"Could not delete {path}: {e}")
            logger.warning("%s", err)
            return False
        pending.discard(path)
        return True

    def _cleanup(self, document: Document, pending: Set[str]) -> None:
        for path in sorted(pending):
            self._delete(path, pending)
        if pending:
            logger.error("Leaked page images for %s: %s", document.document_id, sorted(pending))
        if self._delete(document.path, set()):
            logger.debug("Deleted upload %s", document.path)

    @staticmethod
    def _run_key(document: Document) -> str:
        return os.path.realpath(document.path)

    def _claim(self, document: Document) -> bool:
        key = self._run_key(document)
        with self._active_lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    def _release(self, document: Document) -> None:
        with self._active_lock:
            self._active.discard(self._run_key(document))


def _tag_page(error: ExtractionError, page: int) -> None:
    if isinstance(error, PageError) and error.page is None:
        error.page = page
