"""Template discovery and the cached (category, name) -> directory index.

The filesystem tree is the source of truth. The index is a best-effort
cache: it is rebuilt by a full rescan, written atomically under an advisory
lock, and a stale or missing entry just triggers another rescan.
"""
import json
import os
import tempfile
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from nixhelp.core.config import NixhelpConfig
from nixhelp.core.errors import (
    NixhelpError,
    NotFoundError,
    TemplateIOError,
    TemplateNotFoundError,
    ValidationError,
)
from nixhelp.core.lock import LockError, index_lock
from nixhelp.core.logger import get_logger
from nixhelp.templates.metadata import MetadataStore
from nixhelp.templates.models import (
    METADATA_FILE,
    IndexEntry,
    TemplateRef,
    TemplateSummary,
)

logger = get_logger(__name__)

INDEX_VERSION = "1.0"

# category -> name -> entry
TemplateIndex = Dict[str, Dict[str, IndexEntry]]


class TemplateRegistry:
    """Finds templates under the configured category roots."""

    def __init__(self, config: NixhelpConfig, store: Optional[MetadataStore] = None):
        self.config = config
        self.store = store or MetadataStore()
        self._index: Optional[TemplateIndex] = None

    @property
    def categories(self) -> List[str]:
        return list(self.config.template_roots.keys())

    def category_root(self, category: str) -> Path:
        """Return the root directory for a category.

        Raises:
            NotFoundError: If the category is unknown
        """
        roots = self.config.template_roots
        if category not in roots:
            raise NotFoundError(
                f"Invalid template category: {category} "
                f"(expected one of: {', '.join(roots)})"
            )
        return roots[category]

    def template_path(self, category: str, name: str) -> Path:
        """Return the directory a template ``category/name`` lives in.

        Raises:
            NotFoundError: If the category is unknown
            ValidationError: If the name is empty or leaves the category root
        """
        root = self.category_root(category)
        name = name.strip("/")
        target = root / name
        if not name or root.resolve() not in target.resolve().parents:
            raise ValidationError(
                f"Invalid template name {name!r}: must be a path inside {root}",
                reason="invalid-field",
                field="name",
            )
        return target

    def invalidate(self) -> None:
        """Drop the in-memory index; the next lookup reloads or rescans."""
        self._index = None

    def rebuild_index(self) -> TemplateIndex:
        """Rescan every category root and replace the index.

        Templates whose metadata fails validation are skipped with a warning.
        """
        index: TemplateIndex = OrderedDict()

        for category, root in self.config.template_roots.items():
            index[category] = OrderedDict()
            if not root.is_dir():
                continue

            for meta_file in sorted(root.rglob(METADATA_FILE)):
                template_dir = meta_file.parent
                if template_dir == root:
                    logger.warning(f"Ignoring {meta_file}: metadata at a category root")
                    continue

                name = template_dir.relative_to(root).as_posix()
                try:
                    metadata = self.store.load(template_dir)
                except NixhelpError as e:
                    logger.warning(f"Skipping template {category}/{name}: {e}")
                    continue

                index[category][name] = IndexEntry(
                    category=category,
                    name=name,
                    path=template_dir,
                    metadata_name=metadata.name,
                    version=metadata.version,
                )

        self._index = index
        self._write_cache(index)

        total = sum(len(entries) for entries in index.values())
        logger.debug(f"Indexed {total} template(s)")
        return index

    def _write_cache(self, index: TemplateIndex) -> None:
        """Replace the on-disk index cache in one rename.

        A rebuild that cannot take the lock keeps its in-memory index and
        leaves the cache file to whoever holds the lock.
        """
        cache_file = self.config.index_file
        document = {
            "version": INDEX_VERSION,
            "template_dir": str(self.config.template_dir),
            "generated_at": datetime.now().isoformat(),
            "templates": [
                entry.to_dict() for entries in index.values() for entry in entries.values()
            ],
        }

        try:
            with index_lock(self.config.index_lock_file, timeout=self.config.lock_timeout):
                cache_file.parent.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    'w', dir=cache_file.parent, prefix=".index.", suffix=".tmp", delete=False
                ) as tmp:
                    json.dump(document, tmp, indent=2)
                    temp_name = tmp.name
                os.replace(temp_name, cache_file)
        except LockError as e:
            logger.warning(f"Template index cache not written: {e}")
        except OSError as e:
            logger.warning(f"Failed to write template index cache {cache_file}: {e}")

    def _load_cache(self) -> Optional[TemplateIndex]:
        """Read the on-disk index cache, or None if absent or unreadable."""
        cache_file = self.config.index_file
        if not cache_file.exists():
            return None

        try:
            with open(cache_file) as f:
                document = json.load(f)
            if document.get("version") != INDEX_VERSION:
                return None
            if document.get("template_dir") != str(self.config.template_dir):
                logger.debug(f"Ignoring index cache {cache_file}: built for another template directory")
                return None
            index: TemplateIndex = OrderedDict((category, OrderedDict()) for category in self.categories)
            for row in document["templates"]:
                entry = IndexEntry.from_dict(row)
                if entry.category in index:
                    index[entry.category][entry.name] = entry
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Ignoring unreadable index cache {cache_file}: {e}")
            return None

        logger.debug(f"Loaded template index from {cache_file}")
        return index

    def _ensure_index(self) -> TemplateIndex:
        if self._index is None:
            self._index = self._load_cache()
        if self._index is None:
            self.rebuild_index()
        return self._index

    @staticmethod
    def _is_live(entry: Optional[IndexEntry]) -> bool:
        return entry is not None and (entry.path / METADATA_FILE).is_file()

    def find_entry(self, category: str, name: str) -> Optional[IndexEntry]:
        """Look up an index entry, rescanning once on a miss or stale hit.

        Raises:
            NotFoundError: If the category is unknown
        """
        self.category_root(category)
        name = name.strip("/")

        entry = self._ensure_index().get(category, {}).get(name)
        if self._is_live(entry):
            return entry

        entry = self.rebuild_index().get(category, {}).get(name)
        return entry if self._is_live(entry) else None

    def find(self, category: str, name: str) -> Optional[Path]:
        """Return the directory of template ``category/name``, or None."""
        entry = self.find_entry(category, name)
        return entry.path if entry else None

    def _search_by_name(self, index: TemplateIndex, name: str) -> Optional[IndexEntry]:
        for category in self.categories:
            entries = index.get(category, {})
            if self._is_live(entries.get(name)):
                return entries[name]
            for entry in entries.values():
                if entry.metadata_name == name and self._is_live(entry):
                    return entry
        return None

    def find_by_name(self, name: str) -> Optional[IndexEntry]:
        """Find a template by name across every category, in root order.

        Matches either the registry name (path under the category root) or
        the metadata ``name`` field.
        """
        name = name.strip("/")
        entry = self._search_by_name(self._ensure_index(), name)
        if entry is None:
            entry = self._search_by_name(self.rebuild_index(), name)
        return entry

    def get(self, category: str, name: str) -> TemplateRef:
        """Locate a template and load its metadata.

        Raises:
            TemplateNotFoundError: If it is not in the registry
            ValidationError: If its metadata is invalid
        """
        entry = self.find_entry(category, name)
        if entry is not None:
            return self.ref_for(entry)

        # Present on disk but unindexed means its metadata failed validation
        name = name.strip("/")
        if not name:
            raise TemplateNotFoundError(category, name)
        path = self.template_path(category, name)
        if (path / METADATA_FILE).is_file():
            return TemplateRef(category=category, name=name, path=path, metadata=self.store.load(path))
        raise TemplateNotFoundError(category, name)

    def ref_for(self, entry: IndexEntry) -> TemplateRef:
        """Load metadata for an index entry."""
        return TemplateRef(
            category=entry.category,
            name=entry.name,
            path=entry.path,
            metadata=self.store.load(entry.path),
        )

    def list_templates(self, category: str = "all") -> "OrderedDict[str, List[TemplateSummary]]":
        """List templates grouped by category.

        Args:
            category: A category name, or "all"

        Returns:
            Ordered mapping category -> summaries sorted by name

        Raises:
            NotFoundError: If the category is unknown
        """
        if category == "all":
            wanted = self.categories
        else:
            self.category_root(category)
            wanted = [category]

        index = self.rebuild_index()
        listing: "OrderedDict[str, List[TemplateSummary]]" = OrderedDict()

        for cat in wanted:
            summaries = []
            for name in sorted(index.get(cat, {})):
                entry = index[cat][name]
                try:
                    metadata = self.store.load(entry.path)
                except NixhelpError as e:
                    logger.warning(f"Skipping template {entry.key}: {e}")
                    continue
                summaries.append(TemplateSummary(
                    name=name,
                    version=metadata.version,
                    type=metadata.type.value,
                    description=metadata.description,
                    dependencies=list(metadata.dependencies),
                ))
            listing[cat] = summaries

        return listing

    def ensure_roots(self) -> None:
        """Create every category root directory."""
        for root in self.config.template_roots.values():
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise TemplateIOError(root, f"cannot create template directory: {e}") from e
