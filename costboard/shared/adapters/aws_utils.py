from dataclasses import dataclass
from typing import Any, Dict, Optional

import aioboto3
from botocore.config import Config as BotoConfig

from costboard.shared.core.config import DEFAULT_AWS_REGION, Settings, get_settings

# Standardized boto config with timeouts to prevent indefinite hangs
DEFAULT_BOTO_CONFIG = BotoConfig(
    read_timeout=30, connect_timeout=10, retries={"max_attempts": 3, "mode": "adaptive"}
)

# Mapping CamelCase to snake_case for aioboto3/boto3 credentials
AWS_CREDENTIAL_MAPPING = {
    "AccessKeyId": "aws_access_key_id",
    "SecretAccessKey": "aws_secret_access_key",
    "SessionToken": "aws_session_token",
    "aws_access_key_id": "aws_access_key_id",
    "aws_secret_access_key": "aws_secret_access_key",
    "aws_session_token": "aws_session_token",
}


def map_aws_credentials(credentials: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    Maps credentials dictionary to valid boto3/aioboto3 kwargs.
    Handles both CamelCase (AWS standard) and snake_case (boto3) keys.
    """
    mapped: Dict[str, str] = {}
    if not credentials:
        return mapped

    for src, dst in AWS_CREDENTIAL_MAPPING.items():
        if src in credentials and credentials[src]:
            mapped[dst] = credentials[src]

    return mapped


def resolve_aws_region_hint(region: Any) -> str:
    """
    Resolve a region hint to a concrete region.

    "global" and empty hints fall back to us-east-1, where Cost Explorer lives.
    """
    candidate = str(region or "").strip()
    if candidate and candidate != "global":
        return candidate
    return DEFAULT_AWS_REGION


@dataclass(frozen=True)
class AWSClientConfig:
    """
    Immutable AWS client configuration.

    Built once from settings and handed to adapters at construction time
    instead of mutating a process-wide SDK configuration.
    """

    region: str = DEFAULT_AWS_REGION
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    endpoint_url: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AWSClientConfig":
        settings = settings or get_settings()
        return cls(
            region=resolve_aws_region_hint(settings.AWS_REGION),
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            session_token=settings.AWS_SESSION_TOKEN,
            endpoint_url=settings.AWS_ENDPOINT_URL,
        )

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def client_kwargs(self, service_name: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "service_name": service_name,
            "region_name": self.region,
            "config": DEFAULT_BOTO_CONFIG,
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        kwargs.update(
            map_aws_credentials(
                {
                    "AccessKeyId": self.access_key_id or "",
                    "SecretAccessKey": self.secret_access_key or "",
                    "SessionToken": self.session_token or "",
                }
            )
        )
        return kwargs

    def __repr__(self) -> str:
        # Never echo secrets through reprs (logs, tracebacks).
        return (
            f"AWSClientConfig(region={self.region!r}, "
            f"static_credentials={self.has_static_credentials}, "
            f"endpoint_url={self.endpoint_url!r})"
        )


def get_boto_session() -> aioboto3.Session:
    """Returns a centralized aioboto3 session."""
    return aioboto3.Session()
