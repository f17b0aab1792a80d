"""Install the packaged default templates into the template directory."""
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from nixhelp.core.backup import BackupService
from nixhelp.core.config import NixhelpConfig
from nixhelp.core.errors import TemplateIOError
from nixhelp.core.logger import get_logger
from nixhelp.templates.metadata import MetadataStore
from nixhelp.templates.models import METADATA_FILE
from nixhelp.templates.registry import TemplateRegistry

logger = get_logger(__name__)

DEFAULTS_DIR = Path(__file__).parent / "defaults"


class TemplateInstaller:
    """Copies the default template set shipped with nixhelp."""

    def __init__(
        self,
        config: NixhelpConfig,
        registry: TemplateRegistry,
        store: Optional[MetadataStore] = None,
        backup: Optional[BackupService] = None,
        defaults_dir: Optional[Path] = None,
    ):
        self.config = config
        self.registry = registry
        self.store = store or registry.store
        self.backup = backup or BackupService(config.backup_dir)
        self.defaults_dir = defaults_dir or DEFAULTS_DIR

    def init_directories(self) -> None:
        """Create the category roots and the cache directory."""
        self.registry.ensure_roots()
        try:
            self.config.template_cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TemplateIOError(self.config.template_cache_dir, str(e)) from e

    def default_templates(self) -> List[Tuple[str, str, Path]]:
        """Return (category, name, source directory) for every packaged default."""
        defaults = []
        for category in self.registry.categories:
            category_dir = self.defaults_dir / category
            if not category_dir.is_dir():
                continue
            for meta_file in sorted(category_dir.rglob(METADATA_FILE)):
                source = meta_file.parent
                defaults.append((category, source.relative_to(category_dir).as_posix(), source))
        return defaults

    def default_source(self, category: str, name: str) -> Optional[Path]:
        """Return the packaged directory for ``category/name``, if it is a default."""
        for default_category, default_name, source in self.default_templates():
            if (default_category, default_name) == (category, name):
                return source
        return None

    def install_defaults(self, force: bool = False) -> List[str]:
        """Install the default templates.

        Args:
            force: Overwrite defaults that are already installed

        Returns:
            Keys (category/name) of the templates that were written

        Raises:
            TemplateIOError: If a copy fails
        """
        self.init_directories()

        installed = []
        for category, name, source in self.default_templates():
            target = self.registry.category_root(category) / name
            if target.exists() and not force:
                logger.debug(f"Default template {category}/{name} already installed")
                continue

            self._install(source, target)
            installed.append(f"{category}/{name}")
            logger.info(f"Installed template {category}/{name}")

        self.registry.rebuild_index()
        return installed

    def refresh_defaults(self, install_missing: bool = False) -> List[str]:
        """Overwrite installed defaults with the packaged copies.

        Each installed default is backed up first.

        Args:
            install_missing: Also install defaults that are not present

        Returns:
            Keys of the templates that were written
        """
        self.init_directories()

        refreshed = []
        for category, name, source in self.default_templates():
            target = self.registry.category_root(category) / name
            if target.exists():
                backup_id = self.backup.create_backup(target, f"{category}_{name}")
                logger.info(f"Backed up {category}/{name} as {backup_id}")
            elif not install_missing:
                continue

            self._install(source, target)
            refreshed.append(f"{category}/{name}")

        self.registry.rebuild_index()
        return refreshed

    def _install(self, source: Path, target: Path) -> None:
        try:
            if target.exists():
                shutil.rmtree(target)
            shutil.copytree(source, target)
        except (shutil.Error, OSError) as e:
            raise TemplateIOError(target, f"copy from {source} failed: {e}") from e
        self.stamp(target)

    def stamp(self, template_dir: Path) -> None:
        """Record install time in the template's metadata."""
        metadata = self.store.load(template_dir)
        now = datetime.now().isoformat(timespec="seconds")
        self.store.write(
            template_dir,
            metadata.model_copy(update={"created": metadata.created or now, "updated": now}),
        )
