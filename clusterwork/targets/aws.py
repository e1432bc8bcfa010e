"""
AWS target - tasks call the EC2 API directly.

AWSCloud wraps a boto3 EC2 client. Every call goes through bounded
exponential backoff, and botocore errors are translated into the Clusterwork
error taxonomy so the engine never sees provider specific exceptions.
"""

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError, ConnectionError as BotoConnectionError

from ..engine.context import Context
from ..engine.target import Target, TargetKind
from ..errors import BackendError, InsufficientAccessError, TransientBackendError
from ..retry import RetryManager
from ..settings import get_settings

logger = logging.getLogger(__name__)

THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "RequestThrottled",
        "TooManyRequestsException",
        "InternalError",
        "InternalFailure",
        "ServiceUnavailable",
        "Unavailable",
    }
)

ACCESS_DENIED_CODES = frozenset({"UnauthorizedOperation", "AuthFailure"})


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def is_retryable(error: Exception) -> bool:
    """Whether an EC2 failure is worth retrying."""
    if isinstance(error, BotoConnectionError):
        return True
    if not isinstance(error, ClientError):
        return False
    if error_code(error) in THROTTLING_CODES:
        return True
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return status >= 500


def translate_error(operation: str, error: Exception) -> BackendError:
    """Map a botocore failure onto the Clusterwork error taxonomy."""
    if isinstance(error, ClientError):
        code = error_code(error)
        message = error.response.get("Error", {}).get("Message", str(error))
        text = f"{operation} failed: {code}: {message}"
        if code in ACCESS_DENIED_CODES or code.startswith("AccessDenied"):
            return InsufficientAccessError(text, code=code)
        if is_retryable(error):
            return TransientBackendError(text, code=code)
        return BackendError(text, code=code)
    if is_retryable(error):
        return TransientBackendError(f"{operation} failed: {error}")
    return BackendError(f"{operation} failed: {error}")


def ec2_tags_to_map(tags: list[dict[str, str]] | None) -> dict[str, str]:
    """Convert EC2 ``[{"Key": k, "Value": v}]`` tag lists to a dict."""
    return {tag["Key"]: tag.get("Value", "") for tag in tags or []}


def tag_specifications(resource_type: str, tags: dict[str, str] | None) -> list[dict[str, Any]]:
    """TagSpecifications parameter for EC2 create calls."""
    if not tags:
        return []
    return [
        {
            "ResourceType": resource_type,
            "Tags": [{"Key": k, "Value": v} for k, v in sorted(tags.items())],
        }
    ]


class AWSCloud:
    """Cluster handle for the EC2 API.

    Attributes:
        region: AWS region every call is made in
        ec2: boto3 EC2 client (injectable for tests)
    """

    def __init__(
        self,
        region: str | None = None,
        ec2_client: Any = None,
        retry: RetryManager | None = None,
    ):
        self.region = region or get_settings().aws_region
        if ec2_client is None:
            import boto3

            ec2_client = boto3.client("ec2", region_name=self.region)
        self.ec2 = ec2_client
        self.retry = retry or RetryManager.from_settings()

    def call(self, operation: str, **params: Any) -> dict[str, Any]:
        """Invoke an EC2 operation by its boto3 method name.

        Raises:
            InsufficientAccessError: The credentials may not perform the call
            TransientBackendError: Throttling or server errors outlasted retries
            BackendError: Any other EC2 error, carrying its error code
        """
        method = getattr(self.ec2, operation)
        logger.debug(f"EC2 {operation} {params}")
        try:
            return self.retry.call(
                lambda: method(**params),
                is_retryable,
                description=f"EC2 {operation}",
            )
        except (ClientError, BotoCoreError) as e:
            raise translate_error(operation, e) from e

    def get_tags(self, resource_id: str) -> dict[str, str]:
        response = self.call(
            "describe_tags",
            Filters=[{"Name": "resource-id", "Values": [resource_id]}],
        )
        return ec2_tags_to_map(response.get("Tags"))

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        self.call(
            "create_tags",
            Resources=[resource_id],
            Tags=[{"Key": k, "Value": v} for k, v in sorted(tags.items())],
        )


class AWSAPITarget(Target):
    """Applies change-sets by calling AWS directly."""

    kind = TargetKind.AWS

    def __init__(self, cloud: AWSCloud):
        self.cloud = cloud

    def add_aws_tags(self, c: Context, resource_id: str, tags: dict[str, str] | None) -> None:
        """Create the tags that are missing or different on a resource.

        Existing tags are read once per run and kept in the Context tag cache.
        """
        if not tags:
            return

        actual = c.tags.get(resource_id)
        if actual is None:
            actual = self.cloud.get_tags(resource_id)
            c.tags.put(resource_id, actual)

        missing = {k: v for k, v in tags.items() if actual.get(k) != v}
        if not missing:
            logger.debug(f"Tags on {resource_id} are up to date")
            return

        logger.info(f"Adding tags to {resource_id}: {sorted(missing)}")
        self.cloud.create_tags(resource_id, missing)
        c.tags.update(resource_id, missing)

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "region": self.cloud.region}
