"""nixhelp runtime configuration and paths."""
import os
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from nixhelp.core.errors import ConfigError
from nixhelp.core.logger import get_logger

logger = get_logger(__name__)

# Template categories in lookup order (dependency search walks them in this order)
TEMPLATE_CATEGORIES = ("base", "configs", "development", "custom")

CATEGORY_LABELS = {
    "base": "Base Templates",
    "configs": "Full Configurations",
    "development": "Development Environments",
    "custom": "Custom Templates",
}

SETTINGS_FILE = "config.yml"
SETTINGS_KEYS = {"verbose", "lock_timeout", "template_dir"}


def find_repo_root(start: Path) -> Optional[Path]:
    """Return the nearest directory at or above ``start`` holding a flake.nix."""
    current = start.resolve()
    for candidate in (current, *current.parents):
        if (candidate / "flake.nix").is_file():
            return candidate
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class NixhelpConfig:
    """Resolved paths and settings for one nixhelp invocation.

    Built once at process start and handed to every component; there is no
    module-level instance.

    Attributes:
        repo_path: NixOS configuration repository (directory with flake.nix)
        config_dir: nixhelp configuration directory
        cache_dir: Cache directory (registry index lives here)
        data_dir: Data directory
        template_dir: Root of the template category directories
        backup_dir: Where template backups are written
        log_dir: Where nixhelp.log is written
        verbose: Debug-level logging and tracebacks on error
        lock_timeout: Seconds to wait for the index lock
    """

    repo_path: Path
    config_dir: Path
    cache_dir: Path
    data_dir: Path
    template_dir: Path
    backup_dir: Path
    log_dir: Path
    verbose: bool = False
    lock_timeout: int = 5

    @property
    def template_roots(self) -> "OrderedDict[str, Path]":
        """Category name -> category root directory, in lookup order."""
        return OrderedDict(
            (category, self.template_dir / category) for category in TEMPLATE_CATEGORIES
        )

    @property
    def template_cache_dir(self) -> Path:
        return self.cache_dir / "templates"

    @property
    def index_file(self) -> Path:
        return self.template_cache_dir / "index.json"

    @property
    def index_lock_file(self) -> Path:
        return self.template_cache_dir / "index.lock"

    @property
    def log_file(self) -> Path:
        return self.log_dir / "nixhelp.log"

    def ensure_directories(self) -> None:
        """Create every directory nixhelp writes to."""
        for directory in (
            self.config_dir,
            self.cache_dir,
            self.data_dir,
            self.template_dir,
            self.backup_dir,
            self.log_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> "NixhelpConfig":
        """Create config from environment variables and config.yml.

        Environment variables:
            NIXHELP_REPO_PATH: Configuration repository
            NIXHELP_CONFIG_DIR: Configuration directory
            NIXHELP_CACHE_DIR: Cache directory
            NIXHELP_DATA_DIR: Data directory
            NIXHELP_VERBOSE: Verbose logging (1/true/yes)
            NIXHELP_LOCK_TIMEOUT: Index lock timeout in seconds

        Precedence is environment, then config.yml, then defaults.

        Raises:
            ConfigError: If config.yml is not a YAML mapping or has bad values
        """
        env = os.environ if environ is None else environ
        cwd = Path(cwd) if cwd else Path.cwd()
        home = Path(env.get("HOME", str(Path.home())))

        xdg_config = Path(env.get("XDG_CONFIG_HOME") or home / ".config")
        xdg_cache = Path(env.get("XDG_CACHE_HOME") or home / ".cache")
        xdg_data = Path(env.get("XDG_DATA_HOME") or home / ".local" / "share")

        if env.get("NIXHELP_REPO_PATH"):
            repo_path = Path(env["NIXHELP_REPO_PATH"])
        else:
            repo_path = find_repo_root(cwd) or cwd

        if env.get("NIXHELP_CONFIG_DIR"):
            config_dir = Path(env["NIXHELP_CONFIG_DIR"])
        elif (repo_path / ".nixhelp").is_dir():
            config_dir = repo_path / ".nixhelp"
        else:
            config_dir = xdg_config / "nixhelp"

        cache_dir = Path(env.get("NIXHELP_CACHE_DIR") or xdg_cache / "nixhelp")
        data_dir = Path(env.get("NIXHELP_DATA_DIR") or xdg_data / "nixhelp")

        settings = load_settings(config_dir / SETTINGS_FILE)

        template_dir = Path(settings.get("template_dir") or config_dir / "templates")
        verbose = _as_bool(env.get("NIXHELP_VERBOSE", settings.get("verbose", False)))
        try:
            lock_timeout = int(env.get("NIXHELP_LOCK_TIMEOUT", settings.get("lock_timeout", 5)))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"lock_timeout must be an integer: {e}") from e

        return cls(
            repo_path=repo_path,
            config_dir=config_dir,
            cache_dir=cache_dir,
            data_dir=data_dir,
            template_dir=template_dir.expanduser(),
            backup_dir=config_dir / "backups",
            log_dir=config_dir / "logs",
            verbose=verbose,
            lock_timeout=lock_timeout,
        )


def load_settings(settings_file: Path) -> Dict[str, Any]:
    """Read config.yml, returning an empty mapping when it does not exist.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping
    """
    if not settings_file.exists():
        return {}

    try:
        with open(settings_file) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {settings_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{settings_file} must contain a mapping, got {type(data).__name__}")

    for key in sorted(set(data) - SETTINGS_KEYS):
        logger.warning(f"Ignoring unknown setting '{key}' in {settings_file}")

    return {key: value for key, value in data.items() if key in SETTINGS_KEYS}
