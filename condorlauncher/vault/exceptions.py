""" Vault client and credential broker exceptions. """

from enum import Enum


class VaultClientError(Exception):
    """ The base class for Vault client errors. """


class VaultConfigError(VaultClientError, ValueError):
    """ Thrown when the Vault client is configured incorrectly, e.g. a malformed URL. """


class VaultTransportError(VaultClientError):
    """ Thrown when the HTTP request to Vault fails to complete. """


class VaultResponseError(VaultClientError):
    """
    Thrown when Vault returns a non-success status code.

    status - the HTTP status code.
    errors - the error strings returned by Vault, if any.
    """

    def __init__(self, message: str, status: int, errors: list[str] = None):
        super().__init__(message)
        self.status = status
        self.errors = errors or []


class MissingAuthError(VaultClientError):
    """ Thrown when a token creation response has no auth section. """


class EmptyTokenError(VaultClientError):
    """ Thrown when a token creation response contains an empty client token. """


class MalformedSecretError(VaultClientError):
    """
    Thrown when a secret returned from Vault is missing an expected field or the field is of
    the wrong type.

    field - the name of the offending field.
    """

    def __init__(self, field: str):
        super().__init__(f"{field} field was missing from the secret")
        self.field = field


class RoleCreateError(VaultClientError):
    """ Thrown when a PKI role cannot be created. """


class CertIssueError(VaultClientError):
    """ Thrown when a certificate cannot be issued from a PKI role. """


class ProvisionStep(str, Enum):
    """ The steps of provisioning credentials for a job, in order. """

    MOUNT_CUBBYHOLE = "mount_cubbyhole"
    CHILD_TOKEN = "child_token"
    STORE_CONFIG = "store_config"
    CREATE_ROLE = "create_role"
    ISSUE_CERT = "issue_cert"


class ProvisioningError(VaultClientError):
    """
    Thrown when provisioning credentials for a job fails. The underlying error is available as
    the exception cause.

    step - the step that failed.
    """

    def __init__(self, step: ProvisionStep, message: str):
        super().__init__(message)
        self.step = step
