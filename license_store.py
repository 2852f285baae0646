import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from config import BUILT_IN_LICENSE_SERVER, settings
from models import LicenseConfig

logger = logging.getLogger(__name__)


class LicenseStore:
    """
    Reads and writes the license section of the local config.json.

    The document may hold other application settings; only `licenseServer`
    and `license.domain` / `license.licenseKey` matter here.
    """

    def __init__(
        self,
        config_file: Union[str, Path],
        server_override: str = "",
        built_in_server: str = BUILT_IN_LICENSE_SERVER
    ):
        self.config_file = Path(config_file)
        self.server_override = server_override
        self.built_in_server = built_in_server

    @classmethod
    def from_settings(cls) -> "LicenseStore":
        return cls(settings.config_path, server_override=settings.LICENSE_SERVER)

    def _load_document(self) -> Optional[Dict[str, Any]]:
        if not self.config_file.exists():
            return None

        try:
            document = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Could not read config file %s: %s", self.config_file, e)
            return None

        if not isinstance(document, dict):
            logger.warning("Config file %s is not a JSON object", self.config_file)
            return None

        return document

    def read_config(self) -> Optional[LicenseConfig]:
        """
        Get the configured domain and license key, or None when unconfigured.
        """
        document = self._load_document()
        if document is None:
            return None

        section = document.get("license")
        if not isinstance(section, dict):
            return None

        domain = section.get("domain")
        license_key = section.get("licenseKey")
        if not (isinstance(domain, str) and domain and isinstance(license_key, str) and license_key):
            return None

        return LicenseConfig(domain=domain, licenseKey=license_key)

    def resolve_authority_address(self) -> str:
        """
        Resolve the license server address.

        Precedence: explicit override (LICENSE_SERVER), then `licenseServer`
        in config.json, then the built-in address.
        """
        if self.server_override.strip():
            return self.server_override.strip().rstrip("/")

        document = self._load_document()
        if document:
            configured = document.get("licenseServer")
            if isinstance(configured, str) and configured.strip():
                return configured.strip().rstrip("/")

        return self.built_in_server.rstrip("/")

    def save_license(self, domain: str, license_key: str):
        """
        Record a domain/license key pair, keeping the rest of the document.
        """
        document = self._load_document() or {}
        section = document.get("license")
        if not isinstance(section, dict):
            section = {}

        section["domain"] = domain
        section["licenseKey"] = license_key
        document["license"] = section

        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.config_file.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.config_file)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info("License configuration saved for domain %s", domain)
