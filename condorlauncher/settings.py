"""
Settings for running the launcher from the command line, read from the environment.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Annotated


class Settings(BaseSettings):
    """
    The settings for a single launch of a job.
    """
    model_config = SettingsConfigDict(case_sensitive=True, str_strip_whitespace=True)

    config_path: Annotated[str, Field(
        validation_alias="CONDOR_LAUNCHER_CONFIG",
        examples=["/etc/condor-launcher/launcher.toml"],
        description="The path to the TOML launcher configuration file.",
        min_length=1,
    )]
    job_path: Annotated[str, Field(
        validation_alias="JOB_FILE",
        examples=["/var/jobs/submissions/b9faffb2-453a-4ebe-9bba-1b96636cb3b1.json"],
        description="The path to the job submission JSON file.",
        min_length=1,
    )]
    runtime_config_path: Annotated[str, Field(
        validation_alias="RUNTIME_CONFIG_FILE",
        examples=["/var/jobs/irods-config"],
        description="The path to the job's runtime configuration. The file contents are "
            + "stored in Vault for the job to read.",
        min_length=1,
    )]
    job_dir: Annotated[str, Field(
        validation_alias="JOB_DIR",
        examples=["/var/jobs/b9faffb2-453a-4ebe-9bba-1b96636cb3b1"],
        description="The directory in which to write the job's artifacts. It is created "
            + "if it doesn't exist.",
        min_length=1,
    )]
    tls_dir: Annotated[str | None, Field(
        validation_alias="TLS_DIR",
        examples=["/var/jobs/b9faffb2-453a-4ebe-9bba-1b96636cb3b1/tls"],
        description="The directory in which to write the job's TLS certificate and key. "
            + "If absent the certificate and key are not written.",
        min_length=1,
    )] = None
