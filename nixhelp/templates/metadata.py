"""Read, write and validate template.json descriptors."""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import ValidationError as PydanticValidationError

from nixhelp.core.errors import CompatibilityError, TemplateIOError, ValidationError
from nixhelp.core.logger import get_logger
from nixhelp.templates.models import METADATA_FILE, REQUIRED_FIELDS, TemplateMetadata

logger = get_logger(__name__)

PathLike = Union[str, Path]


def metadata_path(path: PathLike) -> Path:
    """Accept a template directory or its template.json and return the file path."""
    path = Path(path)
    if path.name == METADATA_FILE and not path.is_dir():
        return path
    return path / METADATA_FILE


class MetadataStore:
    """Structural checks and typed access for template metadata.

    Nothing here repairs a broken document; callers must re-create it.
    """

    def read_document(self, path: PathLike) -> Dict[str, Any]:
        """Parse template.json into a dict.

        Raises:
            ValidationError: missing-file or malformed-document
        """
        meta_file = metadata_path(path)
        if not meta_file.is_file():
            raise ValidationError(
                f"Template metadata file not found: {meta_file}",
                reason="missing-file",
            )

        try:
            with open(meta_file) as f:
                document = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(
                f"Invalid template metadata JSON: {meta_file}: {e}",
                reason="malformed-document",
            ) from e
        except OSError as e:
            raise TemplateIOError(meta_file, str(e)) from e

        if not isinstance(document, dict):
            raise ValidationError(
                f"Template metadata must be a JSON object: {meta_file}",
                reason="malformed-document",
            )
        return document

    def validate(self, path: PathLike) -> None:
        """Validate template metadata structure.

        Checks, in order: the document parses as a JSON object, every
        required field is present, dependencies is a list, variables is a
        mapping.

        Raises:
            ValidationError: Naming the first problem found
        """
        self._check_structure(self.read_document(path))

    def _check_structure(self, document: Dict[str, Any]) -> None:
        for field_name in REQUIRED_FIELDS:
            if field_name not in document:
                raise ValidationError(
                    f"Missing required field in template metadata: {field_name}",
                    reason="missing-field",
                    field=field_name,
                )

        if not isinstance(document["dependencies"], list):
            raise ValidationError(
                "Invalid dependencies format in template metadata (expected a list)",
                reason="invalid-dependencies",
                field="dependencies",
            )

        if not isinstance(document["variables"], dict):
            raise ValidationError(
                "Invalid variables format in template metadata (expected a mapping)",
                reason="invalid-variables",
                field="variables",
            )

    def load(self, path: PathLike) -> TemplateMetadata:
        """Validate and parse template metadata.

        Raises:
            ValidationError: Structural problem, or a field with a bad value
        """
        document = self.read_document(path)
        self._check_structure(document)

        try:
            return TemplateMetadata.model_validate(document)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field_name = ".".join(str(part) for part in first["loc"]) or None
            raise ValidationError(
                f"Invalid value for '{field_name}' in {metadata_path(path)}: {first['msg']}",
                reason="invalid-field",
                field=field_name,
            ) from e

    def get(self, path: PathLike, field: str, default: Any = None) -> Any:
        """Return one metadata field, or ``default``.

        The default is used when the file is missing or unreadable, or the
        field is absent, null or an empty string. Never raises.
        """
        try:
            document = self.read_document(path)
        except (ValidationError, TemplateIOError):
            return default

        value = document.get(field)
        if value is None or value == "":
            return default
        return value

    def write(self, path: PathLike, metadata: TemplateMetadata) -> Path:
        """Write metadata as template.json, replacing any existing file atomically.

        Raises:
            TemplateIOError: If the file cannot be written
        """
        meta_file = metadata_path(path)
        content = json.dumps(metadata.to_document(), indent=4) + "\n"

        temp_name = None
        try:
            meta_file.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', dir=meta_file.parent, prefix=".template.", suffix=".tmp", delete=False
            ) as tmp:
                temp_name = tmp.name
                tmp.write(content)
            os.replace(temp_name, meta_file)
        except OSError as e:
            if temp_name and os.path.exists(temp_name):
                os.unlink(temp_name)
            raise TemplateIOError(meta_file, str(e)) from e

        logger.debug(f"Wrote template metadata: {meta_file}")
        return meta_file

    def check_compatibility(self, metadata: TemplateMetadata, target_system: str) -> None:
        """Ensure a template supports ``target_system``.

        An empty compatibility list means unrestricted.

        Raises:
            CompatibilityError: If the system is not listed
        """
        if not metadata.compatibility:
            return
        if target_system not in metadata.compatibility:
            raise CompatibilityError(metadata.name, target_system)
