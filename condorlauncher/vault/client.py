"""
A minimal async client for the HashiCorp Vault HTTP API, covering the operations needed to
provision credentials for a job: mounts, child tokens, writes to a mount, and PKI certificates.
"""

import aiohttp
import base64
import json
import logging
from pydantic import BaseModel
from typing import Any, NamedTuple, Self
from yarl import URL

from condorlauncher.arg_checkers import (
    not_falsy as _not_falsy,
    check_num as _check_num,
    require_string as _require_string,
)
from condorlauncher.vault.exceptions import (
    EmptyTokenError,
    MalformedSecretError,
    MissingAuthError,
    VaultConfigError,
    VaultResponseError,
    VaultTransportError,
)


_API_VERSION = "v1"
_TOKEN_HEADER = "X-Vault-Token"
_CERT_FIELDS = ("certificate", "private_key", "issuing_ca")


class MountConfig(BaseModel):
    """ The configuration for a new secrets engine mount. """

    type: str
    """ The secrets engine type, e.g. `cubbyhole`. """

    description: str = ""
    """ A human readable description of the mount. """


class RoleConfig(BaseModel):
    """ The configuration for a PKI role. """

    key_bits: int = 4096
    max_ttl: str = "8760h"
    allow_any_name: bool = True


class IssueCertConfig(BaseModel):
    """ The parameters for issuing a certificate from a PKI role. """

    common_name: str
    ttl: str = "8760h"
    format: str = "pem"


class IssuedCert(NamedTuple):
    """ A certificate issued from a PKI role, PEM encoded. """
    certificate: bytes
    private_key: bytes
    issuing_ca: bytes


def parse_vault_url(url: str | URL) -> URL:
    """
    Parse and check a Vault URL. The URL must be an http or https URL with a host and no
    query or fragment.

    Throws VaultConfigError if the URL is malformed.
    """
    if not url or not str(url).strip():
        raise VaultConfigError("Vault url is required")
    try:
        parsed = URL(str(url).strip())
    except (ValueError, TypeError) as e:
        raise VaultConfigError(f"Vault url {url} is malformed: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise VaultConfigError(f"Vault url {url} must be an http or https url with a host")
    if parsed.query_string or parsed.fragment:
        raise VaultConfigError(f"Vault url {url} cannot contain query or fragment sections")
    return parsed


def decode_issued_cert(data: Any) -> IssuedCert:
    """
    Decode the data section of a PKI issue response into a certificate.

    Throws MalformedSecretError naming the first field that is missing or not a string.
    """
    if not isinstance(data, dict):
        raise MalformedSecretError("data")
    fields = {}
    for field in _CERT_FIELDS:
        val = data.get(field)
        if isinstance(val, str):
            fields[field] = val.encode("utf-8")
        elif isinstance(val, bytes):
            fields[field] = val
        else:
            raise MalformedSecretError(field)
    return IssuedCert(**fields)


def _mount_path(path: str) -> str:
    return _require_string(path, "path").strip("/")


def _encode_data(data: dict[str, str | bytes]) -> dict[str, str]:
    # Vault stores strings. Bytes are sent as standard base64, which is how the original job
    # tooling wrote them and how the remote job expects to read them
    return {
        k: base64.b64encode(v).decode("ascii") if isinstance(v, bytes) else v
        for k, v in data.items()
    }


class VaultClient:
    """
    The Vault client.

    Every call is made with the parent token the client was created with unless a token is
    explicitly provided for that call.
    """

    @classmethod
    async def create(cls, url: str, token: str, timeout_sec: float | None = None) -> Self:
        """
        Create the client. No calls are made to Vault.

        url - the root URL of the Vault server, e.g. https://vault.example.org:8200.
        token - the parent token used for all calls not otherwise specifying a token.
        timeout_sec - the total timeout for each request in seconds. If not provided, the
            aiohttp default is used. Callers may also close the client to abort calls.
        """
        # check everything before opening a session
        url = parse_vault_url(url)
        _require_string(token, "token")
        kwargs = {}
        if timeout_sec is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(
                total=_check_num(timeout_sec, "timeout_sec", minimum=0)
            )
        cli = VaultClient(url, token, aiohttp.ClientSession(**kwargs))
        logging.getLogger(__name__).info(f"Initialized Vault client for {url}")
        return cli

    def __init__(self, url: str | URL, token: str, session: aiohttp.ClientSession):
        """
        Create the client with an existing session. Prefer the create method.

        url - the root URL of the Vault server.
        token - the parent token.
        session - the aiohttp session to use for requests. The client takes ownership of the
            session and closes it when the client is closed.
        """
        self._url = parse_vault_url(url)
        self._token = _require_string(token, "token")
        self._sess = _not_falsy(session, "session")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """ Close the client. Any in flight requests will fail. """
        await self._sess.close()

    async def _request(
        self, method: str, path: str, token: str = None, body: dict[str, Any] = None
    ) -> dict[str, Any] | None:
        url = self._url / _API_VERSION / path
        headers = {_TOKEN_HEADER: token or self._token}
        try:
            async with self._sess.request(method, url, headers=headers, json=body) as res:
                text = await res.text()
                status = res.status
                ok = res.ok
        except (aiohttp.ClientError, TimeoutError) as e:
            raise VaultTransportError(f"Vault {method} request to {path} failed: {e}") from e
        try:
            j = json.loads(text) if text.strip() else None
        except json.JSONDecodeError:
            err = f"Non-JSON response from Vault for {method} {path}, status code: {status}"
            logging.getLogger(__name__).info("%s, response:\n%s", err, text)
            raise VaultResponseError(err, status)
        if not ok:
            errors = j.get("errors") if isinstance(j, dict) else None
            errors = [str(e) for e in errors] if isinstance(errors, list) else []
            msg = f"Vault returned status {status} for {method} {path}"
            if errors:
                msg += ": " + "; ".join(errors)
            raise VaultResponseError(msg, status, errors)
        return j

    async def is_mounted(self, path: str) -> bool:
        """
        Check whether a secrets engine is mounted at the given path. The path must match exactly,
        ignoring leading and trailing slashes.
        """
        mount = _mount_path(path) + "/"
        res = await self._request("GET", "sys/mounts") or {}
        # newer Vault versions duplicate the mounts in a data section
        mounts = res.get("data") if isinstance(res.get("data"), dict) else res
        return mount in mounts

    async def mount(self, path: str, config: MountConfig):
        """
        Mount a secrets engine at the given path.
        Vault will return an error if the path is already mounted.
        """
        _not_falsy(config, "config")
        await self._request("POST", f"sys/mounts/{_mount_path(path)}", body=config.model_dump())

    async def create_child_token(self, num_uses: int) -> str:
        """
        Create a child token of the parent token that may be used num_uses times.

        Returns the token.
        """
        res = await self._request(
            "POST", "auth/token/create", body={"num_uses": _check_num(num_uses, "num_uses")}
        )
        auth = res.get("auth") if isinstance(res, dict) else None
        if not auth:
            raise MissingAuthError("auth field was missing from the token create response")
        token = auth.get("client_token")
        if not token:
            raise EmptyTokenError("client token was empty in the token create response")
        return token

    async def write(self, path: str, token: str, data: dict[str, str | bytes]):
        """
        Write data to a path in a mount using the given token, rather than the parent token,
        for this call.

        path - the path, including the mount, e.g. `cubbyhole/my_secret`.
        token - the token to use for the write.
        data - the data to write. Bytes values are base64 encoded.
        """
        await self._request(
            "POST",
            _mount_path(path),
            token=_require_string(token, "token"),
            body=_encode_data(_not_falsy(data, "data")),
        )

    async def read(self, path: str, token: str) -> dict[str, Any]:
        """
        Read data from a path in a mount using the given token.

        Returns the data section of the secret.
        """
        res = await self._request(
            "GET", _mount_path(path), token=_require_string(token, "token")
        )
        data = res.get("data") if isinstance(res, dict) else None
        if not isinstance(data, dict):
            raise MalformedSecretError("data")
        return data

    async def create_role(self, mount: str, role: str, config: RoleConfig) -> dict[str, Any] | None:
        """
        Create or update a role in a PKI mount. Writing a role with identical parameters is a
        no-op.

        Returns the response from Vault, if any.
        """
        _not_falsy(config, "config")
        return await self._request(
            "POST",
            f"{_mount_path(mount)}/roles/{_require_string(role, 'role')}",
            body=config.model_dump(),
        )

    async def issue_cert(self, mount: str, role: str, config: IssueCertConfig) -> IssuedCert:
        """
        Issue a new certificate from a role in a PKI mount.
        """
        _not_falsy(config, "config")
        res = await self._request(
            "POST",
            f"{_mount_path(mount)}/issue/{_require_string(role, 'role')}",
            body=config.model_dump(),
        )
        return decode_issued_cert(res.get("data") if isinstance(res, dict) else None)
