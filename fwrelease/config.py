"""Release pipeline configuration — env-driven.

Centralized settings using pydantic-settings. Values are read from the
process environment (unprefixed, case-insensitive) or a ``.env`` file in
the working directory, matching the variable names the deployment jobs
already export.
"""

from __future__ import annotations

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from fwrelease.errors import ConfigurationError

PUBLISH_ENDPOINT = "/v1/components/flightController/publish"

# Values copied from onboarding docs that must never reach the API.
PLACEHOLDER_API_KEYS: frozenset[str] = frozenset({
    "<retrieve-from-aws>",
    "your-api-key-here",
})


class ReleaseSettings(BaseSettings):
    """Release pipeline configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export UPDATE_API_KEY=...
        export MAX_RETRIES=5
        export S3_BUCKET=firmware-prod-binaries

    Or via .env file::

        AWS_ACCOUNT_ID=123456789012
        CROSS_ACCOUNT_ROLE_ARN=arn:aws:iam::123456789012:role/FirmwarePublisher
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Publish API
    update_api_url: str = "https://updates.example.invalid/dev"
    update_api_key: str = ""
    api_timeout: float = Field(default=30.0, gt=0)

    # Object store
    s3_bucket: str = "firmware-update-binaries"
    s3_key_prefix: str = "flight-controller"
    upload_timeout: float = Field(default=300.0, gt=0)

    # Shared retry bound
    max_retries: int = Field(default=3, ge=1)

    # Cross-account access
    aws_account_id: str = ""
    aws_region: str = "ca-central-1"
    cross_account_role_arn: str = ""
    cross_account_external_id: str = ""
    cross_account_session_name: str = "fwrelease"

    # Version command overrides
    override_version: str | None = None
    custom_release_notes: str | None = None
    max_release_notes_length: int = 1000

    @property
    def publish_url(self) -> str:
        """Full URL of the publish endpoint."""
        return self.update_api_url.rstrip("/") + PUBLISH_ENDPOINT

    @property
    def masked_api_key(self) -> str:
        """API key reduced to a log-safe prefix."""
        return f"{self.update_api_key[:8]}..." if self.update_api_key else "<unset>"

    def validate_api(self) -> None:
        """Fail before any network call if the API settings are unusable."""
        if not self.update_api_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Invalid API URL format: {self.update_api_url}",
                suggestion="UPDATE_API_URL must start with http:// or https://.",
            )
        if not self.update_api_key:
            raise ConfigurationError(
                "UPDATE_API_KEY environment variable is required",
                suggestion="Set it to your API key value before publishing.",
            )
        if self.update_api_key in PLACEHOLDER_API_KEYS:
            raise ConfigurationError(
                "UPDATE_API_KEY appears to be a placeholder",
                suggestion="Set it to the actual API key value.",
            )

    def validate_account(self) -> None:
        """Fail if the cross-account settings are incomplete."""
        missing = [
            name.upper()
            for name in (
                "aws_account_id",
                "cross_account_role_arn",
                "cross_account_external_id",
            )
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Required environment variables not set: {', '.join(missing)}",
                suggestion="Check your .env file.",
            )


def load_settings() -> ReleaseSettings:
    """Build settings from the environment, as a ``ConfigurationError`` on bad values."""
    try:
        return ReleaseSettings()
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']).upper()}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
