"""Exception hierarchy for nixhelp operations.

Every layer of the template engine fails fast with one of these. The CLI
turns them into ``Error: <kind>: <message>`` and exit code 1.
"""
from pathlib import Path
from typing import Optional, Union


class NixhelpError(Exception):
    """Base class for all nixhelp errors."""

    kind = "Error"


class ConfigError(NixhelpError):
    """Raised when the settings file cannot be used."""

    kind = "ConfigError"


class NotFoundError(NixhelpError):
    """A template, category or dependency is absent."""

    kind = "NotFoundError"


class TemplateNotFoundError(NotFoundError):
    """Raised when a (category, name) pair is not in the registry."""

    def __init__(self, category: str, name: str):
        self.category = category
        self.name = name
        super().__init__(f"Template not found: {category}/{name}")


class ValidationError(NixhelpError):
    """Template metadata is malformed or missing a required field.

    Attributes:
        reason: Machine-readable reason (missing-file, malformed-document,
            missing-field, invalid-dependencies, invalid-variables,
            invalid-field, incompatible)
        field: Offending field name, when there is one
    """

    kind = "ValidationError"

    def __init__(self, message: str, reason: str, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        super().__init__(message)


class CompatibilityError(ValidationError):
    """Template does not declare support for the requested target system."""

    def __init__(self, template: str, target_system: str):
        self.template = template
        self.target_system = target_system
        super().__init__(
            f"Template {template} is not compatible with {target_system}",
            reason="incompatible",
            field="compatibility",
        )


class ResolutionError(NixhelpError):
    """A dependency could not be resolved."""

    kind = "ResolutionError"


class UnresolvedDependencyError(ResolutionError):
    """Raised when a declared dependency is not in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Dependency not found: {name}")


class VersionMismatchError(ResolutionError):
    """Raised when the installed dependency version does not satisfy the requirement."""

    def __init__(self, name: str, required: str, found: str):
        self.name = name
        self.required = required
        self.found = found
        super().__init__(
            f"Incompatible dependency version: {name} "
            f"(required: {required}, found: {found})"
        )


class TemplateIOError(NixhelpError):
    """A copy, write or rename failed."""

    kind = "IOError"

    def __init__(self, path: Union[str, Path], detail: str = ""):
        self.path = Path(path)
        self.detail = detail
        message = f"I/O failure at {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SubstitutionError(NixhelpError):
    """A declared variable has no resolvable value."""

    kind = "SubstitutionError"

    def __init__(self, variable: str, template: str):
        self.variable = variable
        self.template = template
        super().__init__(
            f"Missing required variable '{variable}' declared by template {template}"
        )


class TemplateExistsError(NixhelpError):
    """Raised when adding a template over an existing one without force."""

    kind = "ExistsError"

    def __init__(self, category: str, name: str):
        self.category = category
        self.name = name
        super().__init__(
            f"Template already exists: {category}/{name} (use --force or 'template update')"
        )
