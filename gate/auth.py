"""
Workload identity exchange
Trades the GitHub Actions OIDC token for short-lived AWS credentials
"""

import logging
import os
from typing import Mapping, Optional

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from .errors import AuthError
from .models import Credentials

logger = logging.getLogger(__name__)

STS_AUDIENCE = "sts.amazonaws.com"
SESSION_DURATION_SECONDS = 3600


def account_from_arn(arn: str) -> str:
    """Account id field of an ARN, empty when the ARN is malformed"""
    parts = arn.split(":")
    return parts[4] if len(parts) > 5 else ""


def fetch_identity_token(environ: Mapping[str, str], audience: str = STS_AUDIENCE) -> str:
    """
    Obtain the workload identity assertion for this run

    Uses the Actions token endpoint when the job has `id-token: write`,
    otherwise a web identity token file.

    Args:
        environ: Process environment
        audience: Audience claim requested from the token endpoint

    Returns:
        The signed JWT
    """
    request_url = environ.get("ACTIONS_ID_TOKEN_REQUEST_URL")
    request_token = environ.get("ACTIONS_ID_TOKEN_REQUEST_TOKEN")
    if request_url and request_token:
        try:
            resp = requests.get(
                request_url,
                params={"audience": audience},
                headers={"Authorization": f"bearer {request_token}"},
                timeout=30,
            )
            resp.raise_for_status()
            token = (resp.json() or {}).get("value")
        except (requests.RequestException, ValueError) as e:
            raise AuthError(f"Could not obtain OIDC token from the Actions runtime: {e}")
        if not token:
            raise AuthError("Actions token endpoint returned no token")
        return token

    token_file = environ.get("AWS_WEB_IDENTITY_TOKEN_FILE")
    if token_file:
        try:
            with open(token_file, "r", encoding="utf-8") as f:
                return f.read().strip()
        except OSError as e:
            raise AuthError(f"Could not read web identity token file {token_file}: {e}")

    raise AuthError("No workload identity available; grant the job 'id-token: write'")


class Authenticator:
    """STS web identity exchange for a single role"""

    def __init__(self, role_arn: str, region: str, session_name: str = "GitHub-OIDC-PULUMI",
                 expected_account_id: str = "", sts_client=None):
        self.role_arn = role_arn
        self.region = region
        self.session_name = session_name
        self.expected_account_id = expected_account_id
        self._sts = sts_client

    @property
    def sts(self):
        if self._sts is None:
            self._sts = boto3.client("sts", region_name=self.region)
        return self._sts

    def authenticate(self, identity_token: str) -> Credentials:
        """
        Exchange the identity assertion for scoped credentials

        Args:
            identity_token: OIDC JWT issued to this workflow run

        Returns:
            Temporary credentials for the assumed role

        Raises:
            AuthError: The identity provider or role trust policy rejected the caller
        """
        if not identity_token:
            raise AuthError("Empty identity token")

        logger.info("Assuming role %s as session %s", self.role_arn, self.session_name)
        try:
            resp = self.sts.assume_role_with_web_identity(
                RoleArn=self.role_arn,
                RoleSessionName=self.session_name,
                WebIdentityToken=identity_token,
                DurationSeconds=SESSION_DURATION_SECONDS,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise AuthError(f"STS rejected the web identity exchange ({code}): {e}")
        except BotoCoreError as e:
            raise AuthError(f"STS call failed: {e}")

        creds = resp.get("Credentials") or {}
        assumed_arn = (resp.get("AssumedRoleUser") or {}).get("Arn", "")
        account_id = account_from_arn(assumed_arn)
        if self.expected_account_id and account_id != self.expected_account_id:
            raise AuthError(
                f"Assumed role belongs to account {account_id or '<unknown>'}, expected {self.expected_account_id}"
            )

        logger.info("✅ Assumed %s", assumed_arn or self.role_arn)
        return Credentials(
            access_key_id=creds.get("AccessKeyId", ""),
            secret_access_key=creds.get("SecretAccessKey", ""),
            session_token=creds.get("SessionToken", ""),
            account_id=account_id,
            assumed_role_arn=assumed_arn,
        )

    def login(self, environ: Optional[Mapping[str, str]] = None) -> Credentials:
        """Fetch this run's identity token and exchange it"""
        return self.authenticate(fetch_identity_token(os.environ if environ is None else environ))
