"""Unit tests for Secrets Manager credential lookup."""

import json
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from potd_bot.credentials import get_bluesky_credentials


def mock_secret(secret_string):
    client = Mock()
    client.get_secret_value.return_value = {"SecretString": secret_string}
    return client


class TestCredentialsUnit:
    """Unit tests for get_bluesky_credentials."""

    def test_json_secret(self):
        client = mock_secret(
            json.dumps({"username": "potd.bsky.social", "password": "app-pw"})
        )
        with patch("boto3.client", return_value=client) as mock_client:
            identifier, password = get_bluesky_credentials("potd-bot", "eu-west-1")

        assert (identifier, password) == ("potd.bsky.social", "app-pw")
        mock_client.assert_called_once_with("secretsmanager", region_name="eu-west-1")
        client.get_secret_value.assert_called_once_with(SecretId="potd-bot")

    def test_alias_keys(self):
        client = mock_secret(
            json.dumps({"handle": " bot.example ", "app_password": "pw "})
        )
        with patch("boto3.client", return_value=client):
            assert get_bluesky_credentials("s", "us-east-1") == ("bot.example", "pw")

    def test_plain_text_secret_is_rejected(self):
        with patch("boto3.client", return_value=mock_secret("just-a-password")):
            with pytest.raises(RuntimeError, match="Invalid secret format"):
                get_bluesky_credentials("s", "us-east-1")

    def test_missing_password_is_rejected(self):
        client = mock_secret(json.dumps({"username": "bot"}))
        with patch("boto3.client", return_value=client):
            with pytest.raises(RuntimeError, match="Invalid secret format"):
                get_bluesky_credentials("s", "us-east-1")

    def test_client_error_is_wrapped(self):
        client = Mock()
        client.get_secret_value.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "nope"}},
            "GetSecretValue",
        )
        with patch("boto3.client", return_value=client):
            with pytest.raises(RuntimeError, match="Failed to retrieve secret"):
                get_bluesky_credentials("missing", "us-east-1")

    @pytest.mark.parametrize("secret_name,region", [("", "us-east-1"), ("s", " ")])
    def test_empty_arguments_raise(self, secret_name, region):
        with pytest.raises(ValueError):
            get_bluesky_credentials(secret_name, region)
