"""
Configuration Manager

Persists app settings and remembered Artifactory servers as JSON under the
platform configuration directory. API keys are never written to disk; they
come from --api-key or ARTIFACTORY_API_KEY on every run.
"""

import copy
import hashlib
import json
import logging
import os
import platform
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from artifactory_client import sanitize_url

logger = logging.getLogger(__name__)

CONFIG_VERSION = "1.0"
PAGE_SIZE_CHOICES = (10, 25, 50, 100)

DEFAULT_APP_SETTINGS: Dict[str, Any] = {
    "debug_enabled": False,
    "mock_mode": False,
    "default_page_size": 10,
    "page_window_radius": 2,
    "request_timeout": 30,
    "verify_ssl": True,
    # None means artifacts.db next to config.json
    "database_path": None,
}


def platform_config_base() -> Path:
    """Directory that holds per-application config folders on this OS"""
    system = platform.system().lower()
    if system == "darwin":
        return Path.home() / "Library" / "Application Support"
    if system == "windows":
        return Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    return Path.home() / ".config"


class ConfigManager:
    """Reads and writes config.json for the catalog

    Every getter re-reads the file, so edits made while the app runs are
    picked up on the next call.
    """

    def __init__(self, app_name: str = "artifactory-card-catalog", config_dir: Optional[Path] = None):
        self.app_name = app_name
        self._use_directory(Path(config_dir) if config_dir else platform_config_base() / app_name)

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            os.chmod(self.config_dir, 0o700)
        except OSError as e:
            fallback = Path(tempfile.gettempdir()) / app_name
            logger.error(f"Cannot use config directory {self.config_dir} ({e}), falling back to {fallback}")
            self._use_directory(fallback)
            self.config_dir.mkdir(exist_ok=True)

        logger.info(f"Using config directory {self.config_dir}")

    def _use_directory(self, directory: Path) -> None:
        self.config_dir = directory
        self.config_file = directory / "config.json"
        self.backup_file = directory / "config.backup.json"

    def _fresh_config(self) -> Dict[str, Any]:
        return {
            "version": CONFIG_VERSION,
            "last_updated": datetime.now().isoformat(),
            "app_settings": copy.deepcopy(DEFAULT_APP_SETTINGS),
            "servers": [],
        }

    def load_config(self) -> Dict[str, Any]:
        """Current configuration; defaults when the file is missing or unusable"""
        if not self.config_file.exists():
            logger.debug("No config.json yet, starting from defaults")
            return self._fresh_config()

        try:
            config = json.loads(self.config_file.read_text())
        except json.JSONDecodeError as e:
            logger.error(f"Ignoring corrupt {self.config_file}: {e}")
            return self._fresh_config()
        except OSError as e:
            logger.error(f"Cannot read {self.config_file}: {e}")
            return self._fresh_config()

        if not isinstance(config, dict) or not isinstance(config.get("servers"), list):
            logger.warning(f"Ignoring {self.config_file}: no servers list")
            return self._fresh_config()

        # Settings introduced after the file was written get their defaults
        config["app_settings"] = {**DEFAULT_APP_SETTINGS, **(config.get("app_settings") or {})}
        logger.debug(f"Loaded config with {len(config['servers'])} servers")
        return config

    def save_config(self, config: Dict[str, Any]) -> bool:
        """Write `config`, keeping the previous file as config.backup.json"""
        config["last_updated"] = datetime.now().isoformat()

        if self.config_file.exists():
            try:
                self.backup_file.write_text(self.config_file.read_text())
            except OSError as e:
                logger.warning(f"Config backup skipped: {e}")

        try:
            serialized = json.dumps(config, indent=2, sort_keys=True)
            self.config_file.write_text(serialized)
            os.chmod(self.config_file, 0o600)
        except (OSError, TypeError) as e:
            logger.error(f"Failed to write {self.config_file}: {e}")
            return False

        logger.info(f"Saved config ({len(config.get('servers', []))} servers)")
        return True

    def get_app_settings(self) -> Dict[str, Any]:
        return self.load_config()["app_settings"]

    def get_database_path(self) -> Path:
        """Catalog database location, artifacts.db in the config directory unless overridden"""
        configured = self.get_app_settings().get("database_path")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir / "artifacts.db"

    def get_server_config(self, server_url: str) -> Optional[Dict[str, Any]]:
        server_url = sanitize_url(server_url)
        return next((s for s in self.list_configured_servers() if s.get("url") == server_url), None)

    def save_server_config(self, server_url: str, username: str, last_repository: Optional[str] = None) -> bool:
        """Remember a server, its username and the last repository synced from it"""
        server_url = sanitize_url(server_url)
        config = self.load_config()
        now = datetime.now().isoformat()

        server = next((s for s in config["servers"] if s.get("url") == server_url), None)
        if server is None:
            server = {"id": self._server_id(server_url), "url": server_url, "created": now}
            config["servers"].append(server)

        server["username"] = username
        server["last_updated"] = now
        if last_repository is not None:
            server["last_repository"] = last_repository

        return self.save_config(config)

    @staticmethod
    def _server_id(server_url: str) -> str:
        """Readable, stable id: host/path slug plus a short URL hash"""
        slug = server_url.split("://", 1)[-1].replace("/", "-").replace(".", "-")
        return f"{slug}-{hashlib.md5(server_url.encode()).hexdigest()[:8]}"

    def remove_server_config(self, server_url: str) -> bool:
        """Forget a server; False if it was not remembered"""
        server_url = sanitize_url(server_url)
        config = self.load_config()

        remaining = [s for s in config["servers"] if s.get("url") != server_url]
        if len(remaining) == len(config["servers"]):
            logger.warning(f"No remembered server {server_url} to remove")
            return False

        config["servers"] = remaining
        return self.save_config(config)

    def list_configured_servers(self) -> List[Dict[str, Any]]:
        return self.load_config()["servers"]
