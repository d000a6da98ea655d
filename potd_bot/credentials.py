"""Account credential lookup in AWS Secrets Manager."""

import json

import boto3
from botocore.exceptions import ClientError

from .logging_config import create_execution_logger

IDENTIFIER_KEYS = ("username", "identifier", "handle")
PASSWORD_KEYS = ("password", "app_password")


def _first_value(secret_data: dict, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = secret_data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def get_bluesky_credentials(
    secret_name: str, aws_region: str, execution_id: str | None = None
) -> tuple[str, str]:
    """
    Retrieve the Bluesky identifier and app password from AWS Secrets Manager.

    The secret must be a JSON object such as
    ``{"username": "bot.bsky.social", "password": "xxxx-xxxx-xxxx-xxxx"}``.
    Credential values are never logged.

    Args:
        secret_name: Name of the secret in Secrets Manager
        aws_region: AWS region for Secrets Manager client
        execution_id: Execution ID for logging context

    Returns:
        (identifier, password) tuple

    Raises:
        RuntimeError: If the secret cannot be retrieved or has an invalid format
        ValueError: If secret name or region is empty
    """
    secrets_logger = create_execution_logger("secrets_manager", execution_id)

    if not secret_name or not secret_name.strip():
        raise ValueError("Secret name cannot be empty")

    if not aws_region or not aws_region.strip():
        raise ValueError("AWS region cannot be empty")

    try:
        secrets_logger.info(
            f"Retrieving Bluesky credentials from Secrets Manager: {secret_name}"
        )
        secrets_client = boto3.client("secretsmanager", region_name=aws_region)

        response = secrets_client.get_secret_value(SecretId=secret_name)

        if "SecretString" not in response:
            raise ValueError(f"Secret {secret_name} does not contain a string value")

        try:
            secret_data = json.loads(response["SecretString"])
        except json.JSONDecodeError:
            raise ValueError(f"Secret {secret_name} is not valid JSON")

        if not isinstance(secret_data, dict):
            raise ValueError(f"JSON secret {secret_name} must be an object")

        identifier = _first_value(secret_data, IDENTIFIER_KEYS)
        password = _first_value(secret_data, PASSWORD_KEYS)
        if not identifier or not password:
            raise ValueError(
                f"Secret {secret_name} must contain a username and a password"
            )

        secrets_logger.info("Successfully retrieved credentials from JSON secret")
        return identifier, password

    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        secrets_logger.error(
            f"AWS Secrets Manager error retrieving {secret_name}: {error_code}"
        )
        raise RuntimeError(f"Failed to retrieve secret {secret_name}") from e
    except ValueError as e:
        secrets_logger.error(f"Invalid secret format for {secret_name}: {e}")
        raise RuntimeError(f"Invalid secret format for {secret_name}") from e
