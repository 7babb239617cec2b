""" Prepare a single job for submission to HTCondor. """

import asyncio
import logging
from pathlib import Path
import sys
from typing import TextIO

from condorlauncher.config import LauncherConfig
from condorlauncher.exceptions import LauncherError
from condorlauncher.launcher import JobLauncher
from condorlauncher.log import configure_logging
from condorlauncher.models import Job
from condorlauncher.settings import Settings
from condorlauncher.vault.exceptions import VaultClientError


TLS_CERT_FILE = "tls.crt"
TLS_KEY_FILE = "tls.key"


async def run_launcher(stdout: TextIO, stderr: TextIO) -> bool:
    """
    Read the settings from the environment and prepare the job they specify.

    stdout - where the path to the submit file is written.
    stderr - where the configuration is written.

    Returns True for success, False for failure.
    """
    settings = Settings()
    with open(settings.config_path, "rb") as f:
        cfg = LauncherConfig(f)
    cfg.print_config(stderr)
    job = Job.model_validate_json(Path(settings.job_path).read_bytes())
    runtime_config = Path(settings.runtime_config_path).read_bytes()
    try:
        async with await JobLauncher.create(cfg) as launcher:
            res = await launcher.launch(job, runtime_config, Path(settings.job_dir))
    except (LauncherError, VaultClientError) as e:
        logging.getLogger(__name__).exception(f"Failed to launch job {job.invocation_id}: {e}")
        return False
    if settings.tls_dir:
        tls_dir = Path(settings.tls_dir)
        tls_dir.mkdir(parents=True, exist_ok=True)
        (tls_dir / TLS_CERT_FILE).write_bytes(res.tls.certificate)
        key = tls_dir / TLS_KEY_FILE
        key.touch(mode=0o600)
        # touch doesn't change the mode of an existing file
        key.chmod(0o600)
        key.write_bytes(res.tls.private_key)
    stdout.write(f"{res.submit_file}\n")
    return True


if __name__ == "__main__":
    configure_logging()
    res = asyncio.run(run_launcher(sys.stdout, sys.stderr))  # allow testing via replacing streams
    if not res:
        sys.exit(1)
