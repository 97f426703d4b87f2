"""AWS operations wrapper.

S3 holds extracted text, Lambda answers questions about it and Cognito
registers and authenticates users. Each wrapper translates botocore
failures into the application's error types.
"""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from docqa.errors import IdentityError, PersistenceError, QuestionAnswerError

logger = logging.getLogger(__name__)

_KEY_UNSAFE_RE = re.compile(r"[^A-Za-z0-9@._+-]")


def aws_ready(bucket: str, region: str) -> Tuple[bool, str]:
    if not bucket:
        return False, "AWS_S3_BUCKET not set"
    if not region:
        return False, "AWS_REGION not set"
    return True, ""


def artifact_key(user_id: str, document_id: str, prefix: str = "pdf-texts/") -> str:
    """Key for a user's extracted text: ``{prefix}{user}/{document}.txt``."""
    user = _KEY_UNSAFE_RE.sub("_", (user_id or "").strip()) or "anonymous"
    doc = _KEY_UNSAFE_RE.sub("_", os.path.basename(document_id or "").strip()) or "document"
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return f"{prefix or ''}{user}/{doc}.txt"


def _client_error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        err = e.response.get("Error") or {}
        return str(err.get("Message") or err.get("Code") or e)
    return str(e)


class S3ArtifactStore:
    """Durable text storage in one S3 bucket."""

    def __init__(self, bucket: str, region: Optional[str] = None, client=None):
        self.bucket = bucket
        self.s3 = client or boto3.client("s3", region_name=region or None)

    def put_text(self, key: str, text: str) -> None:
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=(text or "").encode("utf-8"),
                ContentType="text/plain; charset=utf-8",
            )
        except (BotoCoreError, ClientError) as e:
            raise PersistenceError(f"S3 put_object failed for {key}: {_client_error_message(e)}") from e
        logger.info("Text uploaded to S3: s3://%s/%s", self.bucket, key)

    def get_text(self, key: str) -> str:
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key)
            body = obj["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise PersistenceError(f"S3 get_object failed for {key}: {_client_error_message(e)}") from e
        return body.decode("utf-8")


class LocalArtifactStore:
    """Filesystem stand-in for S3 used when no bucket is configured."""

    def __init__(self, root: str):
        self.root = root

    def _path(self, key: str) -> str:
        parts = [p for p in key.split("/") if p not in ("", ".", "..")]
        if not parts:
            raise PersistenceError(f"Invalid artifact key: {key!r}")
        return os.path.join(self.root, *parts)

    def put_text(self, key: str, text: str) -> None:
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            # Write to a sibling temp file and swap it in, so readers never see a partial blob.
            fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), suffix=".part")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write((text or "").encode("utf-8"))
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise
        except OSError as e:
            raise PersistenceError(f"Local artifact write failed for {key}: {e}") from e
        logger.info("Text stored locally: %s", path)

    def get_text(self, key: str) -> str:
        try:
            with open(self._path(key), "rb") as f:
                return f.read().decode("utf-8")
        except OSError as e:
            raise PersistenceError(f"Local artifact read failed for {key}: {e}") from e


class LambdaQuestionAnswerer:
    """Synchronous question answering through a remote Lambda function."""

    def __init__(self, function_name: str, region: Optional[str] = None, client=None):
        self.function_name = function_name
        self.lam = client or boto3.client("lambda", region_name=region or None)

    def ask(self, question: str, document_text: str) -> str:
        if not self.function_name:
            raise QuestionAnswerError("LAMBDA_FUNCTION_NAME not set")
        payload = json.dumps({"question": question, "pdfText": document_text})
        try:
            res = self.lam.invoke(
                FunctionName=self.function_name,
                InvocationType="RequestResponse",
                Payload=payload.encode("utf-8"),
            )
            raw = res["Payload"].read()
        except (BotoCoreError, ClientError) as e:
            raise QuestionAnswerError(f"Lambda invoke failed: {_client_error_message(e)}") from e

        if res.get("FunctionError"):
            raise QuestionAnswerError(f"Lambda {res['FunctionError']} error: {raw[:500]!r}")
        try:
            data: Dict[str, Any] = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise QuestionAnswerError(f"Lambda returned invalid JSON: {e}") from e
        if not isinstance(data, dict) or "answer" not in data:
            raise QuestionAnswerError("Lambda response has no answer")
        return str(data["answer"] if data["answer"] is not None else "")


class CognitoIdentityProvider:
    """User registration and password login against a Cognito app client."""

    def __init__(self, client_id: str, region: Optional[str] = None, client=None):
        self.client_id = client_id
        self.cognito = client or boto3.client("cognito-idp", region_name=region or None)

    def register(self, email: str, password: str) -> None:
        try:
            self.cognito.sign_up(ClientId=self.client_id, Username=email, Password=password)
        except (BotoCoreError, ClientError) as e:
            message = _client_error_message(e)
            raise IdentityError(f"sign_up failed for {email}: {message}", user_message=message) from e

    def authenticate(self, email: str, password: str) -> str:
        try:
            res = self.cognito.initiate_auth(
                AuthFlow="USER_PASSWORD_AUTH",
                ClientId=self.client_id,
                AuthParameters={"USERNAME": email, "PASSWORD": password},
            )
        except (BotoCoreError, ClientError) as e:
            message = _client_error_message(e)
            raise IdentityError(f"initiate_auth failed for {email}: {message}", user_message=message) from e
        if not res.get("AuthenticationResult"):
            challenge = res.get("ChallengeName") or "unknown"
            raise IdentityError(
                f"initiate_auth for {email} returned challenge {challenge}",
                user_message="Additional verification is required for this account.",
            )
        return email
