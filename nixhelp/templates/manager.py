"""High-level template lifecycle: install, add, remove, update, apply."""
import shutil
from pathlib import Path
from typing import Any, List, Mapping, Optional

from nixhelp.core.backup import BackupService
from nixhelp.core.config import NixhelpConfig
from nixhelp.core.errors import (
    TemplateExistsError,
    TemplateIOError,
    TemplateNotFoundError,
    ValidationError,
)
from nixhelp.core.logger import get_logger
from nixhelp.templates.applicator import TemplateApplicator
from nixhelp.templates.installer import TemplateInstaller
from nixhelp.templates.metadata import MetadataStore
from nixhelp.templates.models import ApplyResult, TemplateMetadata
from nixhelp.templates.registry import TemplateRegistry

logger = get_logger(__name__)


class TemplateManager:
    """Wires the template components together for one configuration."""

    def __init__(self, config: NixhelpConfig):
        self.config = config
        self.store = MetadataStore()
        self.registry = TemplateRegistry(config, self.store)
        self.backup = BackupService(config.backup_dir)
        self.applicator = TemplateApplicator(self.registry, self.store)
        self.installer = TemplateInstaller(config, self.registry, self.store, self.backup)

    def apply(
        self,
        category: str,
        name: str,
        target_dir: Path,
        variables: Optional[Mapping[str, Any]] = None,
        target_system: Optional[str] = None,
    ) -> ApplyResult:
        return self.applicator.apply(category, name, target_dir, variables, target_system)

    def _load_source(self, source: Path) -> TemplateMetadata:
        source = Path(source)
        if not source.is_dir():
            raise ValidationError(
                f"Template source must be a directory: {source}",
                reason="missing-file",
            )
        self.store.validate(source)
        return self.store.load(source)

    def _replace_tree(self, source: Path, target: Path) -> None:
        try:
            if target.exists():
                shutil.rmtree(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target)
        except (shutil.Error, OSError) as e:
            raise TemplateIOError(target, f"copy from {source} failed: {e}") from e

    def add_template(
        self,
        category: str,
        name: str,
        source: Path,
        force: bool = False,
    ) -> Path:
        """Copy a template directory into a category.

        Args:
            category: Destination category
            name: Template name (path under the category root)
            source: Directory holding template.json and the template files
            force: Replace an existing template of the same name

        Returns:
            The installed template directory

        Raises:
            NotFoundError: Unknown category
            ValidationError: Source is not a valid template, or the name is
                empty or escapes the category root
            TemplateExistsError: Template exists and force is not set
            TemplateIOError: Copy failed
        """
        target = self.registry.template_path(category, name)
        name = name.strip("/")
        metadata = self._load_source(source)

        if target.exists() and not force:
            raise TemplateExistsError(category, name)

        self._replace_tree(Path(source), target)
        self.registry.rebuild_index()

        logger.info(f"Added template {category}/{name} ({metadata.name} {metadata.version})")
        return target

    def remove_template(self, category: str, name: str) -> Path:
        """Delete an installed template.

        Raises:
            TemplateNotFoundError: If it is not installed
            TemplateIOError: If it cannot be deleted
        """
        path = self.registry.find(category, name)
        if path is None:
            raise TemplateNotFoundError(category, name)

        try:
            shutil.rmtree(path)
        except OSError as e:
            raise TemplateIOError(path, f"remove failed: {e}") from e

        self.registry.rebuild_index()
        logger.info(f"Removed template {category}/{name}")
        return path

    def update_template(
        self,
        category: str,
        name: str,
        source: Optional[Path] = None,
    ) -> str:
        """Back up and replace an installed template.

        Without a source the packaged default of the same name is reinstalled,
        which only works for default templates.

        Returns:
            Backup id of the previous version

        Raises:
            TemplateNotFoundError: If it is not installed
            ValidationError: Source invalid, or no packaged default to refresh from
        """
        path = self.registry.find(category, name)
        if path is None:
            raise TemplateNotFoundError(category, name)
        name = path.relative_to(self.registry.category_root(category)).as_posix()

        from_default = source is None
        if source is not None:
            self._load_source(source)
            source = Path(source)
        else:
            source = self.installer.default_source(category, name)
            if source is None:
                raise ValidationError(
                    f"No packaged default for {category}/{name}; pass a source directory",
                    reason="missing-file",
                )

        backup_id = self.backup.create_backup(path, f"{category}_{name}")
        self._replace_tree(source, path)
        if from_default:
            self.installer.stamp(path)

        self.registry.rebuild_index()
        logger.info(f"Updated template {category}/{name} (backup {backup_id})")
        return backup_id

    def update_defaults(self, install_missing: bool = False) -> List[str]:
        """Refresh every installed default template from the packaged copies."""
        return self.installer.refresh_defaults(install_missing=install_missing)
