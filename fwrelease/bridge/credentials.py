"""Credential broker — cross-account session for S3 access.

If the ambient identity is already the expected role in the target account
it is reused as-is. Otherwise the long-lived identity assumes the
cross-account role with the external id, and the resulting session is
checked against the target account before anything uses it.

The effective account is re-verified at the start of every upload and
publish operation; a mismatch is always fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fwrelease.config import ReleaseSettings
from fwrelease.errors import AuthorizationError

logger = logging.getLogger(__name__)

SESSION_DURATION_SECONDS = 3600


def role_name_from_arn(role_arn: str) -> str:
    """``arn:aws:iam::123:role/path/Name`` -> ``Name``."""
    return role_arn.rsplit("/", 1)[-1] if "/" in role_arn else ""


def _caller_identity(session: Any) -> dict[str, str]:
    try:
        identity = session.client("sts").get_caller_identity()
    except (BotoCoreError, ClientError) as exc:
        raise AuthorizationError(
            f"Unable to determine caller identity: {exc}",
            suggestion="Check your credentials and cross-account setup.",
        ) from exc
    return {"Account": str(identity.get("Account", "")), "Arn": str(identity.get("Arn", ""))}


class CredentialContext:
    """A usable session bound to the target account.

    Parameters
    ----------
    session:
        boto3 ``Session`` to build service clients from.
    account_id:
        Target account the session must act in.
    arn:
        Caller ARN observed when the context was established.
    assumed:
        True if the role was assumed, False if the ambient identity was reused.
    """

    def __init__(self, session: Any, account_id: str, arn: str, *, assumed: bool) -> None:
        self.session = session
        self.account_id = account_id
        self.arn = arn
        self.assumed = assumed

    def verify(self) -> None:
        """Re-check that the effective account is still the target."""
        account = _caller_identity(self.session)["Account"]
        if account != self.account_id:
            raise AuthorizationError(
                f"Connected to wrong account: {account} (expected {self.account_id})"
            )
        logger.debug("Verified account %s", account)

    def __repr__(self) -> str:
        return (
            f"CredentialContext(account_id={self.account_id!r}, "
            f"arn={self.arn!r}, assumed={self.assumed})"
        )


class CredentialBroker:
    """Produces a ``CredentialContext`` for the configured target account.

    Parameters
    ----------
    settings:
        Release settings carrying account, role and external id.
    session_factory:
        Builds boto3 sessions; called with only ``region_name`` for the
        ambient identity, and with temporary credentials after role
        assumption.
    """

    def __init__(
        self,
        settings: ReleaseSettings,
        session_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory or boto3.Session

    def ensure_session(self) -> CredentialContext:
        self._settings.validate_account()
        target = self._settings.aws_account_id
        role_name = role_name_from_arn(self._settings.cross_account_role_arn)

        ambient = self._session_factory(region_name=self._settings.aws_region)
        identity = _caller_identity(ambient)
        if identity["Account"] == target and role_name and role_name in identity["Arn"]:
            logger.info("Already using cross-account role in target account: %s", target)
            context = CredentialContext(ambient, target, identity["Arn"], assumed=False)
        else:
            context = self._assume_role(ambient, target)

        context.verify()
        logger.info("Connected to account: %s", target)
        return context

    def _assume_role(self, ambient: Any, target: str) -> CredentialContext:
        logger.info("Assuming cross-account role %s", self._settings.cross_account_role_arn)
        try:
            response = ambient.client("sts").assume_role(
                RoleArn=self._settings.cross_account_role_arn,
                ExternalId=self._settings.cross_account_external_id,
                RoleSessionName=self._settings.cross_account_session_name,
                DurationSeconds=SESSION_DURATION_SECONDS,
            )
        except (BotoCoreError, ClientError) as exc:
            raise AuthorizationError(
                f"Failed to assume cross-account role: {exc}",
                suggestion="Check CROSS_ACCOUNT_ROLE_ARN and CROSS_ACCOUNT_EXTERNAL_ID.",
            ) from exc

        creds = response["Credentials"]
        session = self._session_factory(
            aws_access_key_id=creds["AccessKeyId"],
            aws_secret_access_key=creds["SecretAccessKey"],
            aws_session_token=creds["SessionToken"],
            region_name=self._settings.aws_region,
        )
        arn = str(response.get("AssumedRoleUser", {}).get("Arn", ""))
        return CredentialContext(session, target, arn, assumed=True)
