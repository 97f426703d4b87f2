"""
Error taxonomy for document extraction and the services around it.

Every error carries a short ``user_message`` that is safe to render;
the exception text itself is for logs only.
"""
from __future__ import annotations

from typing import Optional


class DocqaError(Exception):
    """Base class for all application errors"""
    user_message = "Something went wrong."

    def __init__(self, message: str = "", *, user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class ExtractionError(DocqaError):
    """Fatal error raised somewhere in the extraction pipeline"""
    user_message = "Error processing PDF."


class MalformedDocument(ExtractionError):
    """Document cannot be parsed or its page count cannot be determined"""
    user_message = "The uploaded file is not a readable PDF."


class PageError(ExtractionError):
    """Failure tied to a single page"""

    def __init__(self, message: str = "", *, page: Optional[int] = None, user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message)
        self.page = page

    def __str__(self) -> str:
        base = super().__str__()
        if self.page is None:
            return base
        return f"page {self.page}: {base}"


class RasterizationError(PageError):
    user_message = "A page of the PDF could not be rendered for OCR."


class OcrError(PageError):
    user_message = "Text recognition failed on a page of the PDF."


class PersistenceError(ExtractionError):
    user_message = "The extracted text could not be saved."


class CleanupError(ExtractionError):
    """Best-effort artifact deletion failed. Logged, never surfaced."""


class ExtractionCancelled(ExtractionError):
    user_message = "Processing was cancelled before it finished."


class ExtractionInProgress(ExtractionError):
    user_message = "This document is already being processed."


class QuestionAnswerError(DocqaError):
    user_message = "Error processing your request."


class IdentityError(DocqaError):
    """Identity provider rejected the request; message comes from the provider"""
    user_message = "Authentication failed."
