"""
DocQA Configuration
Supports AWS Parameter Store for production secrets
"""
import os
from functools import lru_cache
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

load_dotenv()


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from AWS Parameter Store or environment"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if env_key in os.environ:
        return os.environ[env_key]

    if os.environ.get("USE_PARAMETER_STORE"):
        try:
            ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-east-1"))
            path = os.environ.get("PARAMETER_STORE_PATH", "/docqa/prod/")
            response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
            return response["Parameter"]["Value"]
        except (BotoCoreError, ClientError) as e:
            print(f"Warning: Could not load {name} from Parameter Store: {e}")

    return default


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else default


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50MB

    # Session (server-side, Flask-Session; the cookie only carries the session id)
    SESSION_TYPE = "cachelib"
    SESSION_FILE_DIR = os.environ.get("SESSION_FILE_DIR", "flask_session")
    SESSION_FILE_THRESHOLD = _int_env("SESSION_FILE_THRESHOLD", 500)
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = 86400

    # Security
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600

    # AWS
    AWS_REGION = os.environ.get("AWS_REGION", os.environ.get("REGION", "us-east-1"))
    AWS_S3_BUCKET = os.environ.get("AWS_S3_BUCKET", os.environ.get("BUCKET_NAME", ""))
    COGNITO_USER_POOL_ID = os.environ.get("COGNITO_USER_POOL_ID", os.environ.get("USER_POOL_ID", ""))
    COGNITO_CLIENT_ID = os.environ.get("COGNITO_CLIENT_ID", os.environ.get("CLIENT_ID", ""))
    LAMBDA_FUNCTION_NAME = os.environ.get("LAMBDA_FUNCTION_NAME", "")

    # Artifacts
    ARTIFACT_PREFIX = os.environ.get("ARTIFACT_PREFIX", "pdf-texts/")
    LOCAL_ARTIFACT_DIR = os.environ.get("LOCAL_ARTIFACT_DIR", "artifacts")
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")

    # Rasterization + OCR
    RASTER_DENSITY = _int_env("RASTER_DENSITY", 200)
    RASTER_WIDTH = _int_env("RASTER_WIDTH", 1200)
    RASTER_HEIGHT = _int_env("RASTER_HEIGHT", 1600)
    RASTER_FORMAT = os.environ.get("RASTER_FORMAT", "png")
    OCR_LANGUAGE = os.environ.get("OCR_LANGUAGE", "eng")
    EXTRACTION_TIMEOUT_SECONDS = _int_env("EXTRACTION_TIMEOUT_SECONDS", 0)

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # App Version
    APP_VERSION = os.environ.get("APP_VERSION", "2026.10")


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Override with Parameter Store in production
    SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
    COGNITO_CLIENT_ID = get_parameter("cognito-client-id", Config.COGNITO_CLIENT_ID)
    LAMBDA_FUNCTION_NAME = get_parameter("lambda-function-name", Config.LAMBDA_FUNCTION_NAME)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    SECRET_KEY = "test-secret-key"
    WTF_CSRF_ENABLED = False
    AWS_S3_BUCKET = ""
    EXTRACTION_TIMEOUT_SECONDS = 0


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


@lru_cache()
def get_config(env: Optional[str] = None):
    """Get configuration by environment name"""
    env = env or os.environ.get("FLASK_ENV", "development")
    return config.get(env, DevelopmentConfig)
