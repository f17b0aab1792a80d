"""Apply a template and its dependencies onto a target directory."""
import shutil
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional

from nixhelp.core.errors import TemplateIOError
from nixhelp.core.logger import get_logger
from nixhelp.templates.metadata import MetadataStore
from nixhelp.templates.models import METADATA_FILE, ApplyResult, TemplateRef
from nixhelp.templates.registry import TemplateRegistry
from nixhelp.templates.resolver import DependencyResolver
from nixhelp.templates.substitution import resolve_variables, substitute

logger = get_logger(__name__)


def iter_template_files(template_dir: Path) -> Iterator[Path]:
    """Yield every content file of a template, skipping metadata files."""
    for path in sorted(template_dir.rglob("*")):
        if path.is_file() and path.name != METADATA_FILE:
            yield path


class TemplateApplicator:
    """Copies templates onto a target, dependencies first.

    Apply is not transactional: a failure part-way leaves whatever was
    already copied in place.
    """

    def __init__(
        self,
        registry: TemplateRegistry,
        store: Optional[MetadataStore] = None,
        resolver: Optional[DependencyResolver] = None,
    ):
        self.registry = registry
        self.store = store or registry.store
        self.resolver = resolver or DependencyResolver(registry)

    def apply(
        self,
        category: str,
        name: str,
        target_dir: Path,
        variables: Optional[Mapping[str, Any]] = None,
        target_system: Optional[str] = None,
    ) -> ApplyResult:
        """Apply template ``category/name`` to ``target_dir``.

        Args:
            category: Template category (base, configs, development, custom)
            name: Template name within the category (e.g. "editor/vim")
            target_dir: Destination directory, created if missing
            variables: Caller values for template variables. When empty, no
                substitution is done at all.
            target_system: Optional system tag checked against the
                template's compatibility list

        Returns:
            ApplyResult listing applied templates and written files

        Raises:
            NotFoundError: Unknown category
            TemplateNotFoundError: Template not in the registry
            ValidationError: Metadata invalid, or incompatible system
            ResolutionError: Dependency missing or at the wrong version
            TemplateIOError: Copy, write or rename failed
            SubstitutionError: Declared variable has no value
        """
        template = self.registry.get(category, name)

        if target_system:
            self.store.check_compatibility(template.metadata, target_system)

        plan = self.resolver.resolve(template)

        target_dir = Path(target_dir)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TemplateIOError(target_dir, f"cannot create target directory: {e}") from e

        result = ApplyResult(target=target_dir)
        for ref in plan:
            result.files.extend(self._apply_files(ref, target_dir, variables))
            result.templates.append(ref.key)
            logger.info(f"Applied {ref.key} to {target_dir}")

        return result

    def _apply_files(
        self,
        template: TemplateRef,
        target_dir: Path,
        variables: Optional[Mapping[str, Any]],
    ) -> List[Path]:
        resolved = resolve_variables(template, variables) if variables else None

        written: List[Path] = []
        for source in iter_template_files(template.path):
            relative = source.relative_to(template.path)
            target_file = target_dir / relative

            try:
                target_file.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target_file)
            except OSError as e:
                raise TemplateIOError(target_file, f"copy from {source} failed: {e}") from e
            logger.debug(f"Copied {template.key}:{relative.as_posix()}")

            if resolved is not None:
                substitute(target_file, resolved)

            written.append(target_file)

        return written
