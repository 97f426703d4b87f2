"""Page rasterization and OCR adapters.

PyMuPDF renders a single page, Pillow normalizes size and encoding, and
pytesseract recognizes the resulting image. Each adapter handles exactly
one page per call; sequencing and cleanup belong to the orchestrator.
"""
from __future__ import annotations

import io
import logging
import os
import shutil
from typing import Optional, Tuple

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from docqa.errors import OcrError, RasterizationError
from docqa.models import Document, RasterImage

logger = logging.getLogger(__name__)

_PIL_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "tif": "TIFF", "tiff": "TIFF"}


def configure_tesseract() -> None:
    """Ensure pytesseract can find the tesseract binary on common hosts."""
    if shutil.which("tesseract") is not None:
        return
    for cand in ("/usr/bin/tesseract", "/usr/local/bin/tesseract", "/opt/homebrew/bin/tesseract"):
        if os.path.exists(cand):
            pytesseract.pytesseract.tesseract_cmd = cand
            break


configure_tesseract()


def ocr_ready() -> Tuple[bool, str]:
    try:
        _ = pytesseract.get_tesseract_version()
    except (pytesseract.TesseractNotFoundError, OSError) as e:
        return False, f"tesseract not available: {e}"
    return True, ""


class PdfPageRasterizer:
    """Renders one PDF page to an image file at a fixed resolution."""

    def __init__(
            self,
            save_dir: str,
            density: int = 200,
            width: Optional[int] = 1200,
            height: Optional[int] = 1600,
            image_format: str = "png"
    ):
        fmt = (image_format or "png").lower()
        if fmt not in _PIL_FORMATS:
            raise ValueError(f"Unsupported raster format: {image_format}")
        self.save_dir = save_dir
        self.density = density
        self.width = width
        self.height = height
        self.image_format = fmt

    def output_path(self, document: Document, page: int) -> str:
        return os.path.join(self.save_dir, f"{document.stem}.page.{page}.{self.image_format}")

    def render(self, document: Document, page: int) -> RasterImage:
        try:
            doc = fitz.open(document.path)
        except Exception as e:
            raise RasterizationError(f"Could not open PDF for rendering: {e}", page=page) from e

        try:
            if page < 1 or page > doc.page_count:
                raise RasterizationError(
                    f"page index out of range (document has {doc.page_count} pages)", page=page
                )
            try:
                pix = doc.load_page(page - 1).get_pixmap(dpi=self.density, alpha=False)
                img = Image.open(io.BytesIO(pix.tobytes("png")))
            except Exception as e:
                raise RasterizationError(f"Rendering failed: {e}", page=page) from e
        finally:
            doc.close()

        if self.width and self.height:
            img = img.resize((self.width, self.height))

        os.makedirs(self.save_dir, exist_ok=True)
        path = self.output_path(document, page)
        try:
            img.save(path, format=_PIL_FORMATS[self.image_format])
        except (OSError, ValueError) as e:
            # Never leave a half-written image behind.
            if os.path.exists(path):
                os.remove(path)
            raise RasterizationError(f"Could not write page image: {e}", page=page) from e

        logger.debug("Rendered %s page %d -> %s", document.document_id, page, path)
        return RasterImage(page=page, path=path)


class TesseractOcrEngine:
    """OCR over a single raster image."""

    def __init__(self, config: str = ""):
        self.config = config

    def recognize(self, image: RasterImage, language: str = "eng") -> str:
        try:
            with Image.open(image.path) as img:
                text = pytesseract.image_to_string(img, lang=language, config=self.config)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError, RuntimeError) as e:
            raise OcrError(f"Recognition failed: {e}", page=image.page) from e
        return text or ""
