"""
Provisions the secrets a job needs from Vault: a limited use child token that the remote job
uses to read back its configuration, the configuration itself stored in a cubbyhole mount, and
a TLS certificate / key pair.
"""

import asyncio
import logging
from typing import NamedTuple

from condorlauncher import logfields
from condorlauncher.arg_checkers import (
    check_num as _check_num,
    not_falsy as _not_falsy,
    require_string as _require_string,
)
from condorlauncher.vault.client import (
    IssueCertConfig,
    MountConfig,
    RoleConfig,
    VaultClient,
)
from condorlauncher.vault.exceptions import (
    CertIssueError,
    MalformedSecretError,
    ProvisioningError,
    ProvisionStep,
    RoleCreateError,
    VaultClientError,
)


CUBBYHOLE_TYPE = "cubbyhole"
CUBBYHOLE_DESCRIPTION = "A cubbyhole for the iRODS configs used in jobs"
CONFIG_FIELD = "config"
"""
The field in the cubbyhole secret where the job configuration is stored.
"""

DEFAULT_CHILD_TOKEN_USES = 2
"""
One use to store the job configuration and one for the remote job to read it.
"""

TLS_TTL = "8760h"
_TLS_KEY_BITS = 4096
_NEWLINE = b"\n"


class TLSBundle(NamedTuple):
    """ A TLS certificate and key pair. """
    certificate: bytes
    """ The PEM certificate chain, the issued certificate followed by the issuing CA. """
    private_key: bytes
    """ The PEM private key. """


class ProvisionedJob(NamedTuple):
    """ The credentials provisioned for a job. """
    token: str
    """ The child token that can read the job configuration from the cubbyhole. """
    tls: TLSBundle
    """ The job's TLS certificate and key. """


class CredentialBroker:
    """
    Provisions job credentials via a Vault client.
    """

    def __init__(
        self,
        client: VaultClient,
        cubbyhole_mount: str,
        tls_mount: str,
        tls_role: str,
        tls_common_name: str,
        child_token_uses: int = DEFAULT_CHILD_TOKEN_USES,
    ):
        """
        Create the broker.

        client - the Vault client, configured with the parent token.
        cubbyhole_mount - the mount point for the cubbyhole where job configurations are stored.
        tls_mount - the mount point of the PKI secrets engine.
        tls_role - the name of the PKI role to issue certificates from.
        tls_common_name - the common name for issued certificates.
        child_token_uses - the number of uses for each child token.
        """
        self._client = _not_falsy(client, "client")
        self._cubbyhole = _require_string(cubbyhole_mount, "cubbyhole_mount").strip("/")
        self._tls_mount = _require_string(tls_mount, "tls_mount")
        self._tls_role = _require_string(tls_role, "tls_role")
        self._tls_cn = _require_string(tls_common_name, "tls_common_name")
        self._uses = _check_num(child_token_uses, "child_token_uses")
        # concurrent jobs must not race to mount the cubbyhole
        self._mount_lock = asyncio.Lock()

    @property
    def child_token_uses(self) -> int:
        """ The number of uses each child token is created with. """
        return self._uses

    def config_path(self, job_id: str) -> str:
        """ Get the path in Vault where the configuration for a job is stored. """
        return f"{self._cubbyhole}/{_require_string(job_id, 'job_id')}"

    async def mount_cubbyhole(self):
        """ Mount the cubbyhole if it isn't already mounted. """
        async with self._mount_lock:
            if not await self._client.is_mounted(self._cubbyhole):
                await self._client.mount(
                    self._cubbyhole,
                    MountConfig(type=CUBBYHOLE_TYPE, description=CUBBYHOLE_DESCRIPTION),
                )
                logging.getLogger(__name__).info(
                    "Mounted cubbyhole", extra={logfields.MOUNT: self._cubbyhole}
                )

    async def child_token(self) -> str:
        """ Create a child token of the parent token with a limited number of uses. """
        return await self._client.create_child_token(self._uses)

    async def store_config(self, token: str, job_id: str, config: bytes):
        """
        Store a job's configuration in the cubbyhole.

        token - the token to write the configuration with. Only this token can read it back.
        job_id - the ID of the job.
        config - the serialized configuration.
        """
        if config is None:
            raise ValueError("config is required")
        await self._client.write(self.config_path(job_id), token, {CONFIG_FIELD: config})

    async def generate_tls(self) -> TLSBundle:
        """
        Ensure the PKI role exists and issue a new certificate from it.
        """
        await self._ensure_role()
        return await self._issue_tls()

    async def _ensure_role(self):
        try:
            await self._client.create_role(
                self._tls_mount,
                self._tls_role,
                RoleConfig(key_bits=_TLS_KEY_BITS, max_ttl=TLS_TTL, allow_any_name=True),
            )
        except VaultClientError as e:
            raise RoleCreateError(f"error creating role {self._tls_role}: {e}") from e
        logging.getLogger(__name__).info(
            "Ensured PKI role",
            extra={logfields.MOUNT: self._tls_mount, logfields.ROLE: self._tls_role},
        )

    async def _issue_tls(self) -> TLSBundle:
        try:
            cert = await self._client.issue_cert(
                self._tls_mount,
                self._tls_role,
                IssueCertConfig(common_name=self._tls_cn, ttl=TLS_TTL, format="pem"),
            )
        except MalformedSecretError:
            raise
        except VaultClientError as e:
            raise CertIssueError(f"error issuing cert with role {self._tls_role}: {e}") from e
        # the chain must end with a newline
        pem = _NEWLINE.join([cert.certificate, cert.issuing_ca]) + _NEWLINE
        return TLSBundle(certificate=pem, private_key=cert.private_key)

    async def provision_job(self, job_id: str, config: bytes) -> ProvisionedJob:
        """
        Provision the credentials for a job. In order:

        1. Mount the cubbyhole if necessary.
        2. Create a child token.
        3. Store the job configuration in the cubbyhole with the child token.
        4. Create the PKI role if necessary.
        5. Issue a TLS certificate.

        job_id - the ID of the job.
        config - the serialized job configuration to store.

        Throws ProvisioningError with the failing step if any step fails. The underlying
        error is the cause of the ProvisioningError.
        """
        _require_string(job_id, "job_id")
        if config is None:
            raise ValueError("config is required")
        await self._step(ProvisionStep.MOUNT_CUBBYHOLE, job_id, self.mount_cubbyhole)
        token = await self._step(ProvisionStep.CHILD_TOKEN, job_id, self.child_token)
        await self._step(
            ProvisionStep.STORE_CONFIG, job_id, self.store_config, token, job_id, config
        )
        await self._step(ProvisionStep.CREATE_ROLE, job_id, self._ensure_role)
        tls = await self._step(ProvisionStep.ISSUE_CERT, job_id, self._issue_tls)
        logging.getLogger(__name__).info(
            "Provisioned job credentials", extra={logfields.JOB_ID: job_id}
        )
        return ProvisionedJob(token=token, tls=tls)

    async def _step(self, step: ProvisionStep, job_id: str, func, *args):
        try:
            res = await func(*args)
        except VaultClientError as e:
            raise ProvisioningError(
                step, f"Provisioning step {step.value} failed for job {job_id}: {e}"
            ) from e
        logging.getLogger(__name__).info(
            "Completed provisioning step",
            extra={logfields.JOB_ID: job_id, logfields.STEP: step.value},
        )
        return res
