"""
Service wiring.

build_services() turns a Flask config mapping into the concrete
collaborators; create_app() stores the result under
``app.extensions["docqa"]`` so tests can inject stubs instead.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

from docqa.services.aws_service import (
    CognitoIdentityProvider,
    LambdaQuestionAnswerer,
    LocalArtifactStore,
    S3ArtifactStore,
)
from docqa.services.conversation_service import ConversationService
from docqa.services.extraction import ExtractionOrchestrator
from docqa.services.ocr_service import PdfPageRasterizer, TesseractOcrEngine
from docqa.services.pdf_service import PdfTextExtractor


@dataclass
class Services:
    orchestrator: ExtractionOrchestrator
    conversations: ConversationService
    identity: Any
    store: Any


def build_services(config: Mapping[str, Any]) -> Services:
    region = config.get("AWS_REGION") or None
    bucket = (config.get("AWS_S3_BUCKET") or "").strip()
    upload_dir = config.get("UPLOAD_FOLDER") or "uploads"

    if bucket:
        store = S3ArtifactStore(bucket, region=region)
    else:
        store = LocalArtifactStore(config.get("LOCAL_ARTIFACT_DIR") or "artifacts")

    orchestrator = ExtractionOrchestrator(
        extractor=PdfTextExtractor(),
        rasterizer=PdfPageRasterizer(
            save_dir=os.path.join(upload_dir, "pages"),
            density=config.get("RASTER_DENSITY", 200),
            width=config.get("RASTER_WIDTH", 1200),
            height=config.get("RASTER_HEIGHT", 1600),
            image_format=config.get("RASTER_FORMAT", "png"),
        ),
        ocr_engine=TesseractOcrEngine(),
        store=store,
        language=config.get("OCR_LANGUAGE", "eng"),
        key_prefix=config.get("ARTIFACT_PREFIX", "pdf-texts/"),
        timeout_seconds=config.get("EXTRACTION_TIMEOUT_SECONDS", 0),
    )
    answerer = LambdaQuestionAnswerer(config.get("LAMBDA_FUNCTION_NAME", ""), region=region)
    identity = CognitoIdentityProvider(config.get("COGNITO_CLIENT_ID", ""), region=region)

    return Services(
        orchestrator=orchestrator,
        conversations=ConversationService(store, answerer),
        identity=identity,
        store=store,
    )
