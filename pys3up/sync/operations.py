"""S3 operations: session setup and the upload transport."""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, NoCredentialsError, ProfileNotFound

from ..exceptions import S3UpAuthenticationError, S3UpConfigError
from ..utils import DEFAULT_TIMEOUT
from .headers import (
    CACHE_CONTROL,
    CONTENT_ENCODING,
    CONTENT_TYPE,
    SERVER_SIDE_ENCRYPTION,
)
from .source_file import SourceFile

logger = logging.getLogger(__name__)


def available_regions(profile: Optional[str] = None) -> list[str]:
    """Return the regions S3 is available in, as known to botocore.

    Raises:
        S3UpAuthenticationError: If the profile (given or from AWS_PROFILE)
            does not exist
    """
    try:
        return boto3.Session(profile_name=profile).get_available_regions("s3")
    except ProfileNotFound as e:
        raise S3UpAuthenticationError(str(e)) from e


def validate_region(region: str, profile: Optional[str] = None) -> None:
    """Check that a region name is known.

    Raises:
        S3UpConfigError: If the region is unknown
        S3UpAuthenticationError: If the profile does not exist
    """
    regions = available_regions(profile)
    if region not in regions:
        raise S3UpConfigError(
            f"Invalid AWS region: {region}. Valid regions: {', '.join(sorted(regions))}"
        )


def create_s3_client(
    region: str,
    profile: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """Create an authenticated S3 client.

    botocore's own retries are reduced to a single attempt, as retries and
    backoff are handled by the upload scheduler.

    Args:
        region: AWS region of the bucket
        profile: Named profile from the AWS config files
        timeout: Connect and read timeout in seconds

    Returns:
        boto3 S3 client, safe to share between threads

    Raises:
        S3UpAuthenticationError: If no credentials can be found
    """
    try:
        session = boto3.Session(profile_name=profile, region_name=region)
    except ProfileNotFound as e:
        raise S3UpAuthenticationError(str(e)) from e

    if session.get_credentials() is None:
        raise S3UpAuthenticationError(
            "No AWS credentials found. Set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY "
            "or use --profile."
        )

    config = BotoConfig(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 1, "mode": "standard"},
        max_pool_connections=50,
    )
    try:
        return session.client("s3", config=config)
    except NoCredentialsError as e:
        raise S3UpAuthenticationError(str(e)) from e
    except BotoCoreError as e:
        raise S3UpAuthenticationError(f"Cannot create S3 client: {e}") from e


class S3Transport:
    """Uploads source files to a bucket with a shared S3 client."""

    def __init__(self, client: Any, bucket: str):
        """Initialize S3 transport.

        Args:
            client: boto3 S3 client
            bucket: Target bucket name
        """
        self.client = client
        self.bucket = bucket

    def put_args(self, src: SourceFile) -> dict[str, Any]:
        """Build the put_object keyword arguments for a file (without Body)."""
        args: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": src.name,
            "ContentType": src.get_header(CONTENT_TYPE),
        }
        optional = {
            "ContentEncoding": src.get_header(CONTENT_ENCODING),
            "CacheControl": src.get_header(CACHE_CONTROL),
            "ServerSideEncryption": src.get_header(SERVER_SIDE_ENCRYPTION),
        }
        args.update({k: v for k, v in optional.items() if v})
        return args

    def __call__(self, src: SourceFile) -> None:
        """Upload one file.

        Raises:
            S3UpReadError: If the file cannot be read
            botocore.exceptions.ClientError: If S3 refuses the upload
            botocore.exceptions.BotoCoreError: On connection level failures
        """
        body = src.body()
        args = self.put_args(src)
        logger.debug(f"PUT s3://{self.bucket}/{src.name} ({len(body)} bytes)")
        self.client.put_object(Body=body, **args)
