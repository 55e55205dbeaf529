"""Configuration service for the backend application.
Loads configuration from environment variables, AWS Secrets Manager, and secrets file.
"""

import logging
import os
from pathlib import Path
from typing import Any, cast

import boto3
import yaml
from botocore.exceptions import ClientError, NoCredentialsError
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "t", "yes")


class StripeSection(BaseModel):
    api_key: str = ""
    webhook_secret: str = ""
    success_url: str = ""
    cancel_url: str = ""


class AuthSection(BaseModel):
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""


class GenerationSection(BaseModel):
    endpoint_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 180.0
    images_per_batch: int = 6
    credits_per_batch: int = 6
    max_reference_images: int = 3
    image_size: str = "1024x1024"
    quality: str = "high"


class ConfigService:
    """Service for loading and accessing application configuration.
    Combines environment variables, AWS Secrets Manager, and secrets from YAML file.
    """

    stripe: StripeSection
    auth: AuthSection
    generation: GenerationSection

    def __init__(self) -> None:
        self._config: dict[str, Any] = {}
        self._secrets: dict[str, Any] = {}
        self._aws_secrets: dict[str, Any] = {}

        self._env = os.getenv("APP_ENV", "local")

        self._load_env_file()
        self._load_env_vars()
        self._load_aws_secrets()
        self._load_secrets()

        app_origin = str(self.get("app_origin") or "http://localhost:5173").rstrip("/")
        self.stripe = StripeSection(
            api_key=str(self.get("stripe.api_key") or ""),
            webhook_secret=str(self.get("stripe.webhook_secret") or ""),
            success_url=str(self.get("stripe.success_url") or f"{app_origin}/success"),
            cancel_url=str(self.get("stripe.cancel_url") or f"{app_origin}/pricing"),
        )
        self.auth = AuthSection(
            jwt_secret=str(self.get("auth.jwt_secret") or self.get("security.secret_key") or ""),
            jwt_algorithm=str(self.get("auth.jwt_algorithm") or "HS256"),
            jwt_audience=str(self.get("auth.jwt_audience") or ""),
        )
        self.generation = GenerationSection(
            endpoint_url=str(self.get("generation.endpoint_url") or ""),
            api_key=str(self.get("generation.api_key") or ""),
            timeout_seconds=float(self.get("generation.timeout_seconds") or 180.0),
        )

    def _base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    def _load_env_file(self) -> None:
        """Load the first existing of .env.<APP_ENV> (.env.local locally) and .env"""
        base_dir = self._base_dir()
        env_files_to_try = [base_dir / f".env.{self._env}", base_dir / ".env"]

        for env_file in env_files_to_try:
            if env_file.exists():
                logger.info(f"Loading environment from {env_file}")
                _ = load_dotenv(env_file)
                return

        logger.debug("No environment file found. Using default values.")

    def _load_env_vars(self) -> None:
        """Load configuration from environment variables"""
        self._config = {
            "app_env": self._env,
            "debug": os.getenv("DEBUG", "True").lower() in _TRUTHY,
            "api_prefix": os.getenv("API_PREFIX", "/api/v1"),
            "project_name": os.getenv("PROJECT_NAME", "Headshot Studio"),
            "cors_origins": os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(","),
            "port": int(os.getenv("PORT", "9998")),
            "host": os.getenv("HOST", "0.0.0.0"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "log_json_format": os.getenv("LOG_JSON_FORMAT", "False").lower() in _TRUTHY,
        }

        # Secrets only shadow the secrets file when actually present in the environment
        optional_env = {
            "app_origin": "APP_ORIGIN",
            "stripe.api_key": "STRIPE_SECRET_KEY",
            "stripe.webhook_secret": "STRIPE_WEBHOOK_SECRET",
            "stripe.success_url": "STRIPE_SUCCESS_URL",
            "stripe.cancel_url": "STRIPE_CANCEL_URL",
            "auth.jwt_secret": "JWT_SECRET",
            "auth.jwt_audience": "JWT_AUDIENCE",
            "generation.endpoint_url": "IMAGE_GENERATION_URL",
            "generation.api_key": "IMAGE_GENERATION_API_KEY",
            "generation.timeout_seconds": "IMAGE_GENERATION_TIMEOUT",
        }
        for key, env_name in optional_env.items():
            value = os.getenv(env_name)
            if value:
                self._config[key] = value

    def _load_aws_secrets(self) -> None:
        """Load secrets from AWS Secrets Manager if configured"""
        if self._env in ("local", "test", "testing"):
            logger.info(f"APP_ENV={self._env}. Skipping AWS Secrets Manager.")
            return

        if os.getenv("USE_AWS_SECRET_MANAGER", "true").lower() != "true":
            logger.info("AWS Secrets Manager disabled (USE_AWS_SECRET_MANAGER=false).")
            return

        secret_name = os.getenv("AWS_SECRETS_MANAGER_SECRET_NAME") or f"headshot_{self._env}_secret"

        try:
            region_name = os.getenv("AWS_DEFAULT_REGION", "us-east-1")
            session = boto3.Session()
            client = session.client(service_name="secretsmanager", region_name=region_name)  # type: ignore[misc]

            logger.info(f"Loading secrets from AWS Secrets Manager: {secret_name}")
            response: dict[str, Any] = client.get_secret_value(SecretId=secret_name)  # type: ignore[assignment]
            secret_string = cast(str, response["SecretString"])

            # Same layout as the local secrets.yaml
            secrets_data: Any = yaml.safe_load(secret_string)
            self._aws_secrets = cast(dict[str, Any], secrets_data) if secrets_data else {}
            logger.info("Successfully loaded secrets from AWS Secrets Manager")

        except NoCredentialsError:
            logger.exception("AWS credentials not found. Cannot load secrets from AWS Secrets Manager.")
        except ClientError as e:
            error_code = cast(dict[str, Any], e.response).get("Error", {}).get("Code", "Unknown")
            if error_code == "ResourceNotFoundException":
                logger.exception(f"The requested secret {secret_name} was not found.")
            else:
                logger.exception(f"Error loading secrets from AWS Secrets Manager: {error_code}")
        except yaml.YAMLError:
            logger.exception("Failed to parse secrets from AWS Secrets Manager. Expected YAML format.")

    def _load_secrets(self) -> None:
        """Load secrets from YAML file"""
        base_dir = self._base_dir()
        secrets_files_to_try = [base_dir / f"secrets.{self._env}.yaml", base_dir / "secrets.yaml"]

        secrets_file = next((path for path in secrets_files_to_try if path.exists()), None)
        if secrets_file is None:
            logger.debug("No secrets file found. Using default values.")
            self._secrets = {}
            return

        try:
            with open(secrets_file) as f:
                self._secrets = yaml.safe_load(f) or {}
            logger.info(f"Loaded secrets from {secrets_file}")
        except (OSError, yaml.YAMLError) as e:
            logger.exception(f"Error loading secrets file: {e}")
            self._secrets = {}

    @staticmethod
    def _lookup(source: dict[str, Any], key: str) -> tuple[bool, Any]:
        value: Any = source
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = cast("Any", value[part])
            else:
                return False, None
        return True, value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key, dot notation addresses nested secrets.
        Priority order:
        1. Environment variables (from _config dict)
        2. AWS Secrets Manager
        3. Local secrets file
        4. Direct environment variable lookup (os.getenv)
        5. Default value
        """
        if key in self._config:
            return self._config[key]

        for source in (self._aws_secrets, self._secrets):
            if source:
                found, value = self._lookup(source, key)
                if found:
                    return value

        env_value = os.getenv(key)
        if env_value is not None:
            return env_value

        return default

    def get_database_url(self) -> str:
        """Get the async database URL.
        Priority:
        1. DATABASE_URL from the environment
        2. database.url from AWS secrets, then local secrets
        3. Constructed from components
        """
        db_url = os.getenv("DATABASE_URL") or self.get("database.url")
        if not db_url:
            username = self.get("database.username", "postgres")
            password = self.get("database.password", "postgres")
            host = self.get("database.host", "localhost")
            port = self.get("database.port", 5432)
            name = self.get("database.name", "headshots")
            db_url = f"postgresql://{username}:{password}@{host}:{port}/{name}"
        return to_async_database_url(str(db_url))

    def is_sqlite(self) -> bool:
        return self.get_database_url().startswith("sqlite")

    def is_development(self) -> bool:
        return self._env.lower() in ("development", "local")

    def is_testing(self) -> bool:
        return self._env.lower() in ("test", "testing")

    def get_environment(self) -> str:
        return self._env


def to_async_database_url(url: str) -> str:
    """Rewrite sync driver URLs to their async counterparts."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


config_service = ConfigService()


class Settings(BaseSettings):
    """Application settings that loads from environment variables and secrets file"""

    model_config = SettingsConfigDict(env_file_encoding="utf-8", case_sensitive=True, extra="ignore")

    API_V1_STR: str = config_service.get("api_prefix", "/api/v1")
    PROJECT_NAME: str = config_service.get("project_name", "Headshot Studio")
    CORS_ORIGINS: str = ",".join(config_service.get("cors_origins", ["http://localhost:5173"]))
    DEBUG: bool = config_service.get("debug", True)
    LOG_LEVEL: str = config_service.get("log_level", "INFO")

    @property
    def BACKEND_CORS_ORIGINS(self) -> list[str]:
        """Returns the CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
