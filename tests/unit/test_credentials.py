"""Unit tests for the cross-account credential broker.

boto3 sessions are replaced by small doubles; the broker only ever asks a
session for an ``sts`` client, so that is all the doubles provide.
"""

from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from fwrelease.bridge.credentials import (
    SESSION_DURATION_SECONDS,
    CredentialBroker,
    CredentialContext,
    role_name_from_arn,
)
from fwrelease.errors import AuthorizationError, ConfigurationError

TARGET = "111122223333"
ROLE_ARN = "arn:aws:iam::111122223333:role/FirmwarePublisher"
ASSUMED_ARN = "arn:aws:sts::111122223333:assumed-role/FirmwarePublisher/fwrelease"
TEMP_CREDS = {
    "AccessKeyId": "ASIATESTKEY",
    "SecretAccessKey": "secret",
    "SessionToken": "token",
}


class _Sts:
    def __init__(self, account: str, arn: str, assume_error: Exception | None = None) -> None:
        self.account = account
        self.arn = arn
        self.assume_error = assume_error
        self.assume_calls: list[dict] = []

    def get_caller_identity(self) -> dict:
        return {"Account": self.account, "Arn": self.arn, "UserId": "AIDA"}

    def assume_role(self, **kwargs) -> dict:
        self.assume_calls.append(kwargs)
        if self.assume_error is not None:
            raise self.assume_error
        return {"Credentials": TEMP_CREDS, "AssumedRoleUser": {"Arn": ASSUMED_ARN}}


class _Session:
    def __init__(self, sts: _Sts) -> None:
        self.sts = sts

    def client(self, service: str, **kwargs):
        assert service == "sts"
        return self.sts


class _SessionFactory:
    """Hands out scripted sessions in order and records how each was built."""

    def __init__(self, *sessions: _Session) -> None:
        self.sessions = list(sessions)
        self.calls: list[dict] = []

    def __call__(self, **kwargs) -> _Session:
        self.calls.append(kwargs)
        return self.sessions.pop(0)


class TestRoleName:
    def test_simple_arn(self):
        assert role_name_from_arn(ROLE_ARN) == "FirmwarePublisher"

    def test_path_arn(self):
        assert role_name_from_arn("arn:aws:iam::1:role/ci/deploy/Publisher") == "Publisher"

    def test_no_role_segment(self):
        assert role_name_from_arn("not-an-arn") == ""


class TestEnsureSession:
    def test_reuses_ambient_role(self, settings):
        ambient = _Session(_Sts(TARGET, ASSUMED_ARN))
        factory = _SessionFactory(ambient)

        context = CredentialBroker(settings, session_factory=factory).ensure_session()

        assert context.session is ambient
        assert context.assumed is False
        assert factory.calls == [{"region_name": "ca-central-1"}]
        assert ambient.sts.assume_calls == []

    def test_assumes_role_from_other_account(self, settings):
        source = _Sts("999988887777", "arn:aws:iam::999988887777:user/ci")
        assumed = _Session(_Sts(TARGET, ASSUMED_ARN))
        factory = _SessionFactory(_Session(source), assumed)

        context = CredentialBroker(settings, session_factory=factory).ensure_session()

        assert context.assumed is True
        assert context.session is assumed
        assert context.arn == ASSUMED_ARN
        assert source.assume_calls == [
            {
                "RoleArn": ROLE_ARN,
                "ExternalId": "external-secret",
                "RoleSessionName": "fwrelease",
                "DurationSeconds": SESSION_DURATION_SECONDS,
            }
        ]
        assert factory.calls[1] == {
            "aws_access_key_id": "ASIATESTKEY",
            "aws_secret_access_key": "secret",
            "aws_session_token": "token",
            "region_name": "ca-central-1",
        }

    def test_right_account_wrong_role_still_assumes(self, settings):
        source = _Sts(TARGET, "arn:aws:iam::111122223333:user/operator")
        factory = _SessionFactory(_Session(source), _Session(_Sts(TARGET, ASSUMED_ARN)))

        context = CredentialBroker(settings, session_factory=factory).ensure_session()
        assert context.assumed is True
        assert len(source.assume_calls) == 1

    def test_assumed_session_in_wrong_account(self, settings):
        source = _Sts("999988887777", "arn:aws:iam::999988887777:user/ci")
        stray = _Session(_Sts("444455556666", "arn:aws:sts::444455556666:assumed-role/X/y"))
        factory = _SessionFactory(_Session(source), stray)

        with pytest.raises(AuthorizationError, match="wrong account: 444455556666"):
            CredentialBroker(settings, session_factory=factory).ensure_session()

    def test_assume_role_denied(self, settings):
        denied = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "not authorized"}},
            "AssumeRole",
        )
        source = _Sts("999988887777", "arn:aws:iam::999988887777:user/ci", assume_error=denied)
        factory = _SessionFactory(_Session(source))

        with pytest.raises(AuthorizationError, match="Failed to assume") as exc_info:
            CredentialBroker(settings, session_factory=factory).ensure_session()
        assert exc_info.value.suggestion
        assert len(factory.calls) == 1

    def test_missing_settings_fail_before_any_call(self, settings):
        incomplete = settings.model_copy(update={"cross_account_external_id": ""})
        factory = _SessionFactory()

        with pytest.raises(ConfigurationError, match="CROSS_ACCOUNT_EXTERNAL_ID"):
            CredentialBroker(incomplete, session_factory=factory).ensure_session()
        assert factory.calls == []


class TestCredentialContext:
    def test_verify_passes_in_target_account(self):
        context = CredentialContext(_Session(_Sts(TARGET, ASSUMED_ARN)), TARGET, ASSUMED_ARN, assumed=True)
        context.verify()

    def test_verify_detects_drift(self):
        sts = _Sts(TARGET, ASSUMED_ARN)
        context = CredentialContext(_Session(sts), TARGET, ASSUMED_ARN, assumed=True)
        sts.account = "000000000000"
        with pytest.raises(AuthorizationError, match="expected 111122223333"):
            context.verify()

    def test_repr_has_no_secrets(self):
        context = CredentialContext(_Session(_Sts(TARGET, ASSUMED_ARN)), TARGET, ASSUMED_ARN, assumed=False)
        assert "secret" not in repr(context)
        assert TARGET in repr(context)
