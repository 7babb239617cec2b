"""
Prepares jobs for submission to HTCondor by provisioning their credentials in Vault and
writing their artifacts to a job directory.
"""

import logging
from pathlib import Path
from typing import NamedTuple, Self

from condorlauncher import logfields
from condorlauncher.arg_checkers import not_falsy as _not_falsy
from condorlauncher.config import CHILD_TOKEN_KEY, LauncherConfig
from condorlauncher.log import logging_extra_var
from condorlauncher.models import Job
from condorlauncher.renderer import ArtifactRenderer
from condorlauncher.templates import get_submission_dialect
from condorlauncher.vault.broker import CredentialBroker, TLSBundle
from condorlauncher.vault.client import VaultClient


class LaunchResult(NamedTuple):
    """ The result of preparing a job for submission. """
    submit_file: Path
    """ The absolute path to the HTCondor submit file. """
    tls: TLSBundle
    """ The job's TLS certificate and key. """


class JobLauncher:
    """
    Prepares jobs for submission.
    """

    @classmethod
    async def create(cls, config: LauncherConfig) -> Self:
        """
        Create the launcher and its dependencies from the launcher configuration.
        No calls are made to Vault.
        """
        _not_falsy(config, "config")
        # compile the templates first so a broken template doesn't leak a client session
        renderer = ArtifactRenderer(
            get_submission_dialect(config.submit_dialect, config.sge_memory_floor_bytes)
        )
        client = await VaultClient.create(
            config.vault_url, config.vault_token, timeout_sec=config.vault_timeout_sec
        )
        broker = CredentialBroker(
            client,
            config.cubbyhole_mount,
            config.tls_mount,
            config.tls_role,
            config.tls_common_name,
            child_token_uses=config.child_token_uses,
        )
        return JobLauncher(config, broker, renderer, client=client)

    def __init__(
        self,
        config: LauncherConfig,
        broker: CredentialBroker,
        renderer: ArtifactRenderer,
        client: VaultClient = None,
    ):
        """
        Create the launcher. Prefer the create method.

        config - the launcher configuration.
        broker - the credential broker.
        renderer - the artifact renderer.
        client - the Vault client used by the broker. If provided, it is closed when the
            launcher is closed.
        """
        self._config = _not_falsy(config, "config")
        self._broker = _not_falsy(broker, "broker")
        self._renderer = _not_falsy(renderer, "renderer")
        self._client = client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """ Close the launcher and the Vault client it owns, if any. """
        if self._client:
            await self._client.close()

    async def launch(self, job: Job, runtime_config: bytes, job_dir: Path) -> LaunchResult:
        """
        Prepare a job for submission.

        The job directory is created if needed, the job's credentials are provisioned, and the
        job artifacts are written to the directory with the job's child token in the job
        configuration.

        job - the job.
        runtime_config - the job's runtime configuration, stored in Vault for the job to read.
        job_dir - the directory for the job artifacts.

        Returns the path to the submit file and the job's TLS certificate and key.
        """
        _not_falsy(job, "job")
        _not_falsy(job_dir, "job_dir")
        if runtime_config is None:
            raise ValueError("runtime_config is required")
        job_dir = Path(job_dir)
        token = logging_extra_var.set({logfields.JOB_ID: job.invocation_id})
        try:
            logging.getLogger(__name__).info("Launching job")
            job_dir.mkdir(parents=True, exist_ok=True)
            creds = await self._broker.provision_job(job.invocation_id, runtime_config)
            config = self._config.job_config.with_values({CHILD_TOKEN_KEY: creds.token})
            submit = self._renderer.render(job, job_dir, config)
            logging.getLogger(__name__).info(
                "Job ready for submission", extra={logfields.FILE: str(submit)}
            )
            return LaunchResult(submit_file=submit, tls=creds.tls)
        finally:
            logging_extra_var.reset(token)
