"""{{variable}} placeholder substitution in copied template files."""
import json
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from nixhelp.core.errors import SubstitutionError, TemplateIOError
from nixhelp.core.logger import get_logger
from nixhelp.templates.models import TemplateRef

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{([A-Za-z0-9_.\-]+)\}\}")


def render_value(value: Any) -> str:
    """Render a variable value as the text that replaces its token."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def resolve_variables(
    template: TemplateRef,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    """Compute the value of every variable a template declares.

    A non-empty caller override wins, then a non-empty metadata default.
    Overrides for variables the template does not declare are ignored.

    Raises:
        SubstitutionError: A declared variable has neither
    """
    overrides = overrides or {}
    resolved: Dict[str, str] = {}

    for name, spec in template.metadata.variables.items():
        value = overrides.get(name)
        if _is_empty(value):
            value = spec.default
        if _is_empty(value):
            raise SubstitutionError(name, template.key)
        resolved[name] = render_value(value)

    return resolved


def substitute_text(content: str, variables: Mapping[str, str]) -> str:
    """Replace ``{{name}}`` tokens in one pass; unknown names stay verbatim."""

    def replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in variables:
            return variables[name]
        return match.group(0)

    return TOKEN_PATTERN.sub(replace, content)


def substitute(file_path: Path, variables: Mapping[str, str]) -> bool:
    """Rewrite a file with its tokens substituted.

    The new content goes to a temporary file in the same directory which is
    then renamed over the original, so the original is either fully replaced
    or untouched.

    Returns:
        True if the file changed, False if it had nothing to substitute or is
        not UTF-8 text

    Raises:
        TemplateIOError: If reading, writing or renaming fails
    """
    file_path = Path(file_path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logger.debug(f"Skipping substitution in non-text file {file_path}")
        return False
    except OSError as e:
        raise TemplateIOError(file_path, str(e)) from e

    rendered = substitute_text(content, variables)
    if rendered == content:
        return False

    temp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            'w', encoding="utf-8", dir=file_path.parent,
            prefix=f".{file_path.name}.", suffix=".tmp", delete=False,
        ) as tmp:
            temp_name = tmp.name
            tmp.write(rendered)
        shutil.copymode(file_path, temp_name)
        os.replace(temp_name, file_path)
    except OSError as e:
        if temp_name and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise TemplateIOError(file_path, str(e)) from e

    return True
