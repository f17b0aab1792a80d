"""Scaffold new NixOS / home-manager modules from the base module templates."""
import shutil
from collections import OrderedDict
from pathlib import Path
from typing import Optional

from nixhelp.core.config import NixhelpConfig
from nixhelp.core.errors import NixhelpError, TemplateExistsError, ValidationError
from nixhelp.core.logger import get_logger
from nixhelp.templates.manager import TemplateManager

logger = get_logger(__name__)

MODULE_CATEGORIES = OrderedDict([
    ("core", "Core system modules"),
    ("desktop", "Desktop environment modules"),
    ("apps", "Application modules"),
    ("development", "Development environment modules"),
    ("editor", "Editor configurations"),
    ("theme", "Theme and appearance modules"),
    ("services", "System services"),
])

MODULE_TYPES = ("nixos", "home-manager")

# Module category -> (template category, name prefix) applied into <module>/config
CATEGORY_TEMPLATES = {
    "development": ("development", ""),
    "editor": ("configs", "editor/"),
}


class ModuleScaffolder:
    """Creates modules/<category>/<name> inside the configuration repository."""

    def __init__(self, config: NixhelpConfig, manager: Optional[TemplateManager] = None):
        self.config = config
        self.manager = manager or TemplateManager(config)

    def module_path(self, category: str, name: str) -> Path:
        return self.config.repo_path / "modules" / category / name

    def create_module(self, category: str, name: str, module_type: str = "nixos") -> Path:
        """Create a module from base/module/<module_type>.

        Development and editor modules also get the matching development or
        editor template applied into their config/ directory when one is
        installed.

        Returns:
            The new module directory

        Raises:
            ValidationError: Unknown category or module type
            TemplateExistsError: Module directory already exists
            NixhelpError: Any failure applying the base template
        """
        if category not in MODULE_CATEGORIES:
            raise ValidationError(
                f"Invalid module category: {category} "
                f"(available: {', '.join(MODULE_CATEGORIES)})",
                reason="invalid-field",
                field="category",
            )
        if module_type not in MODULE_TYPES:
            raise ValidationError(
                f"Invalid module type: {module_type} (expected nixos or home-manager)",
                reason="invalid-field",
                field="type",
            )

        module_path = self.module_path(category, name)
        if module_path.exists():
            raise TemplateExistsError(category, name)

        logger.info(f"Creating {module_type} module: {category}/{name}")
        variables = {
            "category": category,
            "name": name,
            "description": f"{MODULE_CATEGORIES[category]} module for {name}",
            "type": module_type,
        }

        try:
            for subdir in ("config", "lib"):
                (module_path / subdir).mkdir(parents=True, exist_ok=True)
            self.manager.apply("base", f"module/{module_type}", module_path, variables)
        except (NixhelpError, OSError):
            shutil.rmtree(module_path, ignore_errors=True)
            raise

        if category in CATEGORY_TEMPLATES:
            template_category, prefix = CATEGORY_TEMPLATES[category]
            template_name = f"{prefix}{name}"
            if self.manager.registry.find(template_category, template_name):
                self.manager.apply(
                    template_category, template_name, module_path / "config", variables
                )
                logger.info(f"Applied {template_category}/{template_name} to {name}")

        return module_path
