"""Template engine for NixOS configuration repositories.

Templates live under per-category directories, each described by a
template.json file, and are applied onto a target directory together with
the templates they depend on.
"""

from .applicator import TemplateApplicator
from .installer import TemplateInstaller
from .manager import TemplateManager
from .metadata import MetadataStore
from .registry import TemplateRegistry
from .resolver import DependencyResolver

__all__ = [
    "DependencyResolver",
    "MetadataStore",
    "TemplateApplicator",
    "TemplateInstaller",
    "TemplateManager",
    "TemplateRegistry",
]
