"""Template metadata models."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nixhelp.core.config import TEMPLATE_CATEGORIES

METADATA_FILE = "template.json"
SCHEMA_VERSION = "1.0"

REQUIRED_FIELDS = (
    "name",
    "version",
    "description",
    "category",
    "type",
    "dependencies",
    "variables",
    "compatibility",
)


class TemplateType(str, Enum):
    """What kind of content a template produces."""

    NIXOS_MODULE = "nixos-module"
    HOME_MANAGER_MODULE = "home-manager-module"
    FLAKE = "flake"
    HOST_CONFIG = "host-config"
    DEV_ENVIRONMENT = "dev-environment"
    RAW_FILE_TREE = "raw-file-tree"


class DependencySpec(BaseModel):
    """A template another template must be applied on top of."""

    model_config = ConfigDict(extra='forbid')

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)


class VariableSpec(BaseModel):
    """A placeholder a template's files may reference as {{name}}."""

    model_config = ConfigDict(extra='allow')

    type: str = "string"
    description: str = ""
    default: Any = None


class TemplateMetadata(BaseModel):
    """Parsed template.json document."""

    model_config = ConfigDict(extra='allow', populate_by_name=True)

    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    description: str
    category: str
    type: TemplateType
    dependencies: List[DependencySpec] = Field(default_factory=list)
    variables: Dict[str, VariableSpec] = Field(default_factory=dict)
    compatibility: List[str] = Field(default_factory=list)
    created: Optional[str] = None
    updated: Optional[str] = None

    @field_validator('category')
    @classmethod
    def validate_category(cls, v):
        """Category must be one of the template roots."""
        if v not in TEMPLATE_CATEGORIES:
            raise ValueError(
                f"Unknown category '{v}'. Must be one of: {', '.join(TEMPLATE_CATEGORIES)}"
            )
        return v

    def to_document(self) -> Dict[str, Any]:
        """Return the JSON document form, with schemaVersion first."""
        document = self.model_dump(mode="json", by_alias=True)
        for stamp in ("created", "updated"):
            if document.get(stamp) is None:
                document.pop(stamp, None)
        return document


@dataclass(frozen=True)
class IndexEntry:
    """One row of the registry index."""

    category: str
    name: str
    path: Path
    metadata_name: str
    version: str

    @property
    def key(self) -> str:
        return f"{self.category}/{self.name}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category,
            "name": self.name,
            "path": str(self.path),
            "metadata_name": self.metadata_name,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexEntry":
        return cls(
            category=data["category"],
            name=data["name"],
            path=Path(data["path"]),
            metadata_name=data.get("metadata_name", data["name"]),
            version=data.get("version", ""),
        )


@dataclass(frozen=True)
class TemplateRef:
    """A located template together with its parsed metadata."""

    category: str
    name: str
    path: Path
    metadata: TemplateMetadata

    @property
    def key(self) -> str:
        return f"{self.category}/{self.name}"


@dataclass
class TemplateSummary:
    """Listing row for `template list`."""

    name: str
    version: str
    type: str
    description: str
    dependencies: List[DependencySpec] = field(default_factory=list)


@dataclass
class ApplyResult:
    """Outcome of a successful apply."""

    target: Path
    templates: List[str] = field(default_factory=list)
    files: List[Path] = field(default_factory=list)
