"""Credential lookup across environment variables, mounted secret files and SSM."""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import boto3

from llm_proxy.config import Settings
from llm_proxy.constants import KEY_STATUS_VENDORS, VENDOR_SECRET_NAMES

logger = logging.getLogger(__name__)


def _get_secure_parameter(ssm_client: Any, parameter_name: str) -> str:
    result = ssm_client.get_parameter(Name=parameter_name, WithDecryption=True)
    value = result["Parameter"].get("Value")
    if not value:
        raise RuntimeError(f"SSM parameter {parameter_name} has no value")
    return value


class SecretResolver:
    """Resolves named secrets without ever logging their values.

    Development deployments read ``NAME.upper()`` from the environment.
    Production deployments read ``<secrets_dir>/<name>``, or the SSM parameter
    ``<prefix>/<name>`` when an SSM prefix is configured.
    """

    def __init__(
        self,
        settings: Settings,
        environ: Mapping[str, str] | None = None,
        ssm_client: Any = None,
    ) -> None:
        self._settings = settings
        self._environ = environ
        self._ssm_client = ssm_client
        self._cache: dict[str, str | None] = {}

    def get_secret(self, name: str) -> str | None:
        if not self._settings.production:
            return self._read_environment(name)
        if name not in self._cache:
            if self._settings.ssm_parameter_prefix:
                self._cache[name] = self._read_ssm(name)
            else:
                self._cache[name] = self._read_file(name)
        return self._cache[name]

    def has_secret(self, name: str) -> bool:
        return self.get_secret(name) is not None

    def get_vendor_key(self, vendor: str) -> str | None:
        for name in VENDOR_SECRET_NAMES.get(vendor, ()):
            value = self.get_secret(name)
            if value is not None:
                return value
        return None

    def has_vendor_key(self, vendor: str) -> bool:
        return self.get_vendor_key(vendor) is not None

    def available_keys(self) -> dict[str, bool]:
        return {vendor: self.has_vendor_key(vendor) for vendor in KEY_STATUS_VENDORS}

    def _read_environment(self, name: str) -> str | None:
        environ = os.environ if self._environ is None else self._environ
        value = (environ.get(name.upper()) or "").strip()
        if not value:
            logger.warning("Secret is not set in the environment", extra={"secret_name": name})
            return None
        return value

    def _read_file(self, name: str) -> str | None:
        path = Path(self._settings.secrets_dir) / name
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError:
            logger.warning("Could not read secret file", extra={"secret_name": name})
            return None
        return value or None

    def _read_ssm(self, name: str) -> str | None:
        parameter_name = f"{self._settings.ssm_parameter_prefix.rstrip('/')}/{name}"
        try:
            if self._ssm_client is None:
                self._ssm_client = boto3.client("ssm", region_name=self._settings.aws_region)
            return _get_secure_parameter(self._ssm_client, parameter_name).strip() or None
        except Exception:
            logger.warning(
                "SSM secret parameter is unavailable",
                extra={"secret_name": name},
                exc_info=True,
            )
            return None
