"""Dependency resolution for templates.

Only direct dependencies are resolved: dependencies of dependencies are not
followed, so there is no cycle detection either.
"""
from typing import List

from nixhelp.core.errors import UnresolvedDependencyError, VersionMismatchError
from nixhelp.core.logger import get_logger
from nixhelp.templates.models import TemplateRef
from nixhelp.templates.registry import TemplateRegistry

logger = get_logger(__name__)


def versions_compatible(required: str, installed: str) -> bool:
    """Return True if ``installed`` satisfies ``required``.

    Exact string equality. Range matching would replace this function only.
    """
    return required == installed


class DependencyResolver:
    """Turns a template's declared dependencies into an ordered apply list."""

    def __init__(self, registry: TemplateRegistry):
        self.registry = registry

    def resolve(self, template: TemplateRef) -> List[TemplateRef]:
        """Resolve the templates to apply for ``template``.

        Args:
            template: The template being applied

        Returns:
            Dependencies in declaration order, then the template itself

        Raises:
            UnresolvedDependencyError: A dependency is not in the registry
            VersionMismatchError: A dependency is installed at another version
            ValidationError: A dependency's metadata is invalid
        """
        resolved: List[TemplateRef] = []

        for dep in template.metadata.dependencies:
            entry = self.registry.find_by_name(dep.name)
            if entry is None:
                raise UnresolvedDependencyError(dep.name)

            dep_ref = self.registry.ref_for(entry)
            installed = dep_ref.metadata.version
            if not versions_compatible(dep.version, installed):
                raise VersionMismatchError(dep.name, dep.version, installed)

            logger.debug(f"Resolved dependency {dep.name} -> {dep_ref.key} ({installed})")
            resolved.append(dep_ref)

        resolved.append(template)
        return resolved
