"""
A configuration parser for the condor launcher. The configuration is expected to be in TOML
(https://toml.io/en/) format.

Besides the settings the launcher itself uses, the entire key tree is made available to the
job configuration template via ConfigProvider.
"""

import copy
import tomllib
from typing import Any, BinaryIO, Self, TextIO

from condorlauncher.exceptions import LauncherConfigError
from condorlauncher.templates import SubmitDialect
from condorlauncher.vault.broker import DEFAULT_CHILD_TOKEN_USES


_SEC_VAULT = "vault"
_SEC_VAULT_IRODS = "vault.irods"
_SEC_VAULT_TLS = "vault.tls"
_SEC_VAULT_CHILD_TOKEN = "vault.child_token"
_SEC_CONDOR = "condor"

_SECS = [_SEC_VAULT, _SEC_VAULT_IRODS, _SEC_VAULT_TLS, _SEC_CONDOR]

CHILD_TOKEN_KEY = "vault.child_token.token"
"""
The key under which the per job child token is made available to the job configuration template.
"""


class ConfigProvider:
    """
    Read only access to a tree of configuration values via dotted keys, e.g. `amqp.exchange.name`.

    Missing keys resolve to the empty string.
    """

    def __init__(self, tree: dict[str, Any]):
        """
        Create the provider.

        tree - the configuration tree. The tree is copied.
        """
        self._tree = copy.deepcopy(tree) if tree else {}

    def get(self, key: str) -> Any:
        """
        Get the value for a dotted key, or None if the key or any of its parents is missing.
        """
        node = self._tree
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def get_string(self, key: str) -> str:
        """
        Get the value for a dotted key as a string, or the empty string if the key is missing.
        """
        val = self.get(key)
        if val is None or isinstance(val, dict):
            return ""
        if isinstance(val, bool):
            return str(val).lower()
        if isinstance(val, list):
            return ",".join(str(v) for v in val)
        return str(val)

    def with_values(self, values: dict[str, Any]) -> Self:
        """
        Get a new provider with the given dotted keys set to the given values. This provider is
        not modified.
        """
        tree = copy.deepcopy(self._tree)
        for key, val in values.items():
            node = tree
            parts = key.split(".")
            for part in parts[:-1]:
                if not isinstance(node.get(part), dict):
                    node[part] = {}
                node = node[part]
            node[parts[-1]] = val
        return ConfigProvider(tree)


class LauncherConfig:
    """
    The condor launcher configuration parsed from a TOML configuration file. Once initialized,
    this class will contain the fields:

    vault_url: str - the root URL of the Vault server.
    vault_token: str - the parent Vault token used to create child tokens.
    vault_timeout_sec: float | None - the timeout for Vault requests, if any.
    cubbyhole_mount: str - the mount point of the cubbyhole where job configurations are stored.
    child_token_uses: int - the number of uses allowed for each job's child token.
    tls_mount: str - the mount point of the Vault PKI secrets engine.
    tls_role: str - the PKI role used to issue job certificates.
    tls_common_name: str - the common name of job certificates.
    submit_dialect: SubmitDialect - the dialect of the HTCondor submit file to write.
    sge_memory_floor_bytes: int - the minimum per slot memory requested from SGE.
    job_config: ConfigProvider - the entire configuration tree, for use in job templates.
    """

    def __init__(self, config_file: BinaryIO):
        """
        Create the configuration parser.

        config_file - an open file-like object, opened in binary mode, containing the TOML
            config file data.
        """
        if not config_file:
            raise ValueError("config_file is required")
        # toml errors are thrown as is, the person starting the launcher can deal with them
        config = tomllib.load(config_file)
        for sec in _SECS:
            _check_missing_section(config, sec)
        self.vault_url = _get_string_required(config, _SEC_VAULT, "url")
        self.vault_token = _get_string_required(config, _SEC_VAULT, "token")
        self.vault_timeout_sec = _get_float_optional(config, _SEC_VAULT, "timeout_sec", minimum=0)
        self.cubbyhole_mount = _get_string_required(config, _SEC_VAULT_IRODS, "mount_path")
        uses = None
        if _get_section(config, _SEC_VAULT_CHILD_TOKEN) is not None:
            uses = _get_int_optional(config, _SEC_VAULT_CHILD_TOKEN, "use_limit", minimum=1)
        self.child_token_uses = uses or DEFAULT_CHILD_TOKEN_USES
        self.tls_mount = _get_string_required(config, _SEC_VAULT_TLS, "mount")
        self.tls_role = _get_string_required(config, _SEC_VAULT_TLS, "role")
        self.tls_common_name = _get_string_required(config, _SEC_VAULT_TLS, "common_name")
        dialect = _get_string_optional(config, _SEC_CONDOR, "submission_dialect")
        try:
            self.submit_dialect = SubmitDialect(dialect or SubmitDialect.GRID_SGE.value)
        except ValueError as e:
            raise LauncherConfigError(
                f"Unknown value for key submission_dialect in section {_SEC_CONDOR}: {dialect}. "
                + f"Expected one of {[d.value for d in SubmitDialect]}"
            ) from e
        self.sge_memory_floor_bytes = _get_int_optional(
            config, _SEC_CONDOR, "sge_memory_floor_bytes", minimum=0
        ) or 0
        self.job_config = ConfigProvider(config)

    def print_config(self, output: TextIO):
        """
        Print the configuration to the output argument, censoring secrets.
        """
        output.writelines([line + "\n" for line in [
            "\n*** Condor Launcher Configuration ***",
            f"Vault URL: {self.vault_url}",
            "Vault token: REDACTED FOR YOUR SAFETY AND COMFORT",
            f"Vault request timeout (sec): {self.vault_timeout_sec}",
            f"Vault cubbyhole mount: {self.cubbyhole_mount}",
            f"Vault child token uses: {self.child_token_uses}",
            f"Vault TLS mount: {self.tls_mount}",
            f"Vault TLS role: {self.tls_role}",
            f"Vault TLS common name: {self.tls_common_name}",
            f"HTCondor submission dialect: {self.submit_dialect.value}",
            f"SGE memory floor (bytes): {self.sge_memory_floor_bytes}",
            "*** End Condor Launcher Configuration ***\n"
        ]])


def _get_section(config, section) -> dict[str, Any] | None:
    node = config
    for part in section.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, dict) else None


def _check_missing_section(config, section):
    if _get_section(config, section) is None:
        raise LauncherConfigError(f"Missing section {section}")


# assumes section exists
def _get_int_optional(config, section, key, minimum: int = None) -> int | None:
    putative = _get_section(config, section).get(key)
    if putative is None:
        return None
    if type(putative) != int:
        raise LauncherConfigError(
            f"Expected integer value for key {key} in section {section}, got {putative}")
    if minimum is not None and putative < minimum:
        raise LauncherConfigError(
            f"Expected value >= {minimum} for key {key} in section {section}, got {putative}")
    return putative


# assumes section exists
def _get_float_optional(config, section, key, minimum: float = None) -> float | None:
    putative = _get_section(config, section).get(key)
    if putative is None:
        return None
    if type(putative) not in {int, float}:
        raise LauncherConfigError(
            f"Expected float value for key {key} in section {section}, got {putative}")
    if minimum is not None and putative < minimum:
        raise LauncherConfigError(
            f"Expected value >= {minimum} for key {key} in section {section}, got {putative}")
    return putative


# assumes section exists
def _get_string_required(config, section, key) -> str:
    putative = _get_string_optional(config, section, key)
    if not putative:
        raise LauncherConfigError(f"Missing value for key {key} in section {section}")
    return putative


# assumes section exists
def _get_string_optional(config, section, key) -> str | None:
    putative = _get_section(config, section).get(key)
    if putative is None:
        return None
    if type(putative) != str:
        raise LauncherConfigError(
            f"Expected string value for key {key} in section {section}, got {putative}")
    if not putative.strip():
        return None
    return putative.strip()
