"""One certificate issuance run, from stored secrets to files on disk."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

from nersc_sshproxy.adapters.interfaces import KeyTool, SigningClient
from nersc_sshproxy.adapters.ssh_keygen import KeyToolError, SshKeygen
from nersc_sshproxy.adapters.sshproxy_http import SshProxyClient
from nersc_sshproxy.config.credentials import load_credentials
from nersc_sshproxy.config.settings import Settings
from nersc_sshproxy.core.auth_token import assemble_auth_token
from nersc_sshproxy.core.secure_writer import SecureFileWriter
from nersc_sshproxy.core.splitter import ArtifactSplitter
from nersc_sshproxy.core.totp import generate_totp
from nersc_sshproxy.models.artifacts import IssueResult, KeyArtifactSet, ValidityWindow
from nersc_sshproxy.secrets.base import SecretStore

LOGGER = logging.getLogger(__name__)


class IssueStage(str, Enum):
    IDLE = "IDLE"
    SECRETS_LOADED = "SECRETS_LOADED"
    CODE_GENERATED = "CODE_GENERATED"
    TOKEN_ASSEMBLED = "TOKEN_ASSEMBLED"
    RESPONSE_RECEIVED = "RESPONSE_RECEIVED"
    ARTIFACTS_SPLIT = "ARTIFACTS_SPLIT"
    FILES_WRITTEN = "FILES_WRITTEN"
    DONE = "DONE"
    FAILED = "FAILED"


class CertificateIssuer:
    def __init__(
        self,
        settings: Settings,
        store: SecretStore,
        signing_client: SigningClient,
        key_tool: KeyTool,
        writer: Optional[SecureFileWriter] = None,
        splitter: Optional[ArtifactSplitter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._store = store
        self._signing_client = signing_client
        self._key_tool = key_tool
        self._writer = writer or SecureFileWriter()
        self._splitter = splitter or ArtifactSplitter(
            private_key_labels=settings.response.private_key_labels,
            certificate_labels=settings.response.certificate_labels,
            openssh_certificate_line=settings.response.openssh_certificate_line,
        )
        self._clock = clock
        self.stage = IssueStage.IDLE
        self.failed_after: Optional[IssueStage] = None

    @classmethod
    def from_settings(cls, settings: Settings, store: SecretStore) -> "CertificateIssuer":
        return cls(
            settings=settings,
            store=store,
            signing_client=SshProxyClient(
                url=settings.server.url,
                scope=settings.server.scope,
                timeout_seconds=settings.server.timeout_seconds,
            ),
            key_tool=SshKeygen(command=settings.keygen_command),
        )

    def _advance(self, stage: IssueStage) -> None:
        LOGGER.debug("stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def issue(self, username: str) -> IssueResult:
        self.stage = IssueStage.IDLE
        self.failed_after = None
        try:
            return self._issue(username)
        except Exception:
            # failed_after keeps the last stage that completed.
            self.failed_after = self.stage
            self._advance(IssueStage.FAILED)
            raise

    def _issue(self, username: str) -> IssueResult:
        totp = self._settings.totp

        credentials = load_credentials(self._store, self._settings.secrets, username)
        self._advance(IssueStage.SECRETS_LOADED)

        code = generate_totp(
            credentials.otp_seed,
            at=self._clock(),
            step=totp.step_seconds,
            digits=totp.digits,
            algorithm=totp.algorithm,
        )
        self._advance(IssueStage.CODE_GENERATED)

        auth_token = assemble_auth_token(credentials.password, code)
        self._advance(IssueStage.TOKEN_ASSEMBLED)

        response = self._signing_client.create_pair(username, auth_token)
        del auth_token, code, credentials
        self._advance(IssueStage.RESPONSE_RECEIVED)

        split = self._splitter.split(response)
        self._advance(IssueStage.ARTIFACTS_SPLIT)

        artifacts = KeyArtifactSet(
            private_key_path=self._settings.key_path,
            certificate_path=self._settings.certificate_path,
            public_key_path=self._settings.public_key_path,
        )
        self._writer.ensure_private_dir(artifacts.private_key_path.parent)
        self._writer.write(artifacts.private_key_path, split.private_key)
        self._writer.write(artifacts.certificate_path, split.certificate)
        public_key = self._key_tool.derive_public_key(artifacts.private_key_path)
        self._writer.write(artifacts.public_key_path, public_key)
        self._advance(IssueStage.FILES_WRITTEN)
        LOGGER.info("wrote key=%s cert=%s pub=%s", *artifacts.all_paths())

        validity: Optional[ValidityWindow] = None
        try:
            validity = self._key_tool.inspect_validity(artifacts.certificate_path)
        except KeyToolError as exc:
            LOGGER.warning("could not read certificate validity: %s", exc)
        self._advance(IssueStage.DONE)

        return IssueResult(username=username, artifacts=artifacts, validity=validity)
