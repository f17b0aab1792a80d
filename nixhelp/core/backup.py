"""Timestamped backups of template directories taken before destructive updates."""
import shutil
from datetime import datetime
from pathlib import Path

from nixhelp.core.errors import TemplateIOError
from nixhelp.core.logger import get_logger

logger = get_logger(__name__)


class BackupService:
    """Copy a directory tree aside before it is overwritten."""

    def __init__(self, backup_dir: Path):
        self.backup_dir = Path(backup_dir) / "templates"

    def create_backup(self, path: Path, label: str) -> str:
        """Back up a template directory.

        Args:
            path: Directory to back up
            label: Human-readable prefix, e.g. "configs_editor-vim"

        Returns:
            Backup id (the backup directory name under <backup_dir>/templates)

        Raises:
            TemplateIOError: If the source is missing or the copy fails
        """
        source = Path(path)
        if not source.is_dir():
            raise TemplateIOError(source, "nothing to back up")

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        safe_label = label.replace("/", "-")
        backup_id = f"{safe_label}_{timestamp}"
        target = self.backup_dir / backup_id
        suffix = 1
        while target.exists():
            backup_id = f"{safe_label}_{timestamp}_{suffix}"
            target = self.backup_dir / backup_id
            suffix += 1

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target)
        except (shutil.Error, OSError) as e:
            raise TemplateIOError(target, f"backup failed: {e}") from e

        logger.info(f"Backed up {source} to {target}")
        return backup_id

    def backup_path(self, backup_id: str) -> Path:
        """Return the directory holding a backup."""
        return self.backup_dir / backup_id
