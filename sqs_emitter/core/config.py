# core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """
    Centralized emitter configuration.
    Grouped logically for readability; every value can be overridden from the
    environment or a local .env file.
    """

    # ------------------------------------------------------------
    # Project / Runtime
    # ------------------------------------------------------------
    PROJECT_NAME: str = "sqs-emitter"
    DEBUG: bool = False

    """
    Name of the service emitting events. Used as the STS role session name
    and as a segment of every offloaded content path.
    """
    SERVICE_NAME: str = Field(
        default="",
        description="Name of the calling service (role session name, content path segment)"
    )

    # ------------------------------------------------------------
    # AWS Core
    # ------------------------------------------------------------
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None

    # ------------------------------------------------------------
    # Messaging (SQS) limits
    # ------------------------------------------------------------

    """
    Transport-imposed limits. A single message and a whole batch request share
    the same 256 KiB ceiling; a batch request holds at most 10 entries.
    """
    SQS_MESSAGE_LIMIT_SIZE: int = 256 * 1024
    SQS_MAX_BATCH_SIZE: int = 10

    """
    Maximum number of batch pipelines running at the same time for one
    publish_events call.
    """
    MAX_CONCURRENCY: int = 25

    # ------------------------------------------------------------
    # Content offload (S3)
    # ------------------------------------------------------------

    """
    Bytes reserved for the bucket name and region embedded in the pointer body
    after upload. Must stay above the longest bucketName/region pair in use.

    "bucketName":"<up to ~60 chars>"  +  "region":"<up to ~25 chars>"  +  ~5
    """
    ESTIMATED_BUCKET_INFO_SIZE: int = 90

    CONTENT_PATH_PREFIX: str = "eventContent"
    CONTENT_PATH_EXTENSION: str = "json"

    """
    Tenant segment used in the content path when the emitter has no tenant.
    Set REQUIRE_TENANT_FOR_OFFLOAD to reject such events instead.
    """
    CONTENT_PATH_DEFAULT_TENANT: str = "storage"
    REQUIRE_TENANT_FOR_OFFLOAD: bool = False

    TENANT_ATTRIBUTE_NAME: str = "tenant-id"
    RANDOM_ID_LENGTH: int = 13

    # ------------------------------------------------------------
    # Storage target resolution (RAM -> SSM -> STS)
    # ------------------------------------------------------------
    STORAGE_PARAMETER_NAME: str = "/shared/internal-storage"
    RAM_REGION: str = "us-east-1"
    RAM_RESOURCE_OWNER: str = "OTHER-ACCOUNTS"
    ROLE_SESSION_DURATION: int = Field(
        default=1800,
        description="Assumed role credentials lifetime in seconds (1800 = 30 minutes)"
    )
    REMOTE_STORAGE_ROLE_NAME: str = "LambdaRemoteStorage"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
