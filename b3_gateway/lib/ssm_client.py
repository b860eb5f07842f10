"""SSM client for reading gateway secrets from AWS Parameter Store."""

import boto3
from botocore.exceptions import ClientError


class SSMClient:
    """SSM client for reading credential material (writes handled out of band)."""

    def __init__(self, region: str = "sa-east-1") -> None:
        """Initialize SSM client.

        Args:
            region: AWS region for SSM client
        """
        self.client = boto3.client("ssm", region_name=region)

    def get_secret(self, prefix: str, name: str) -> str | None:
        """Fetch a decrypted parameter stored under /{prefix}/{name}.

        Args:
            prefix: Parameter path prefix (e.g., 'b3-gateway/cert')
            name: Parameter name (e.g., 'client-secret')

        Returns:
            Parameter value, or None if the parameter does not exist

        Raises:
            ClientError: For any SSM error other than ParameterNotFound
        """
        path = f"/{prefix.strip('/')}/{name}"

        try:
            response = self.client.get_parameter(Name=path, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code == "ParameterNotFound":
                return None
            raise

        return response["Parameter"]["Value"]
