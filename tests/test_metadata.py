"""Tests for template metadata validation and access."""
import json

import pytest

from nixhelp.core.errors import CompatibilityError, ValidationError
from nixhelp.templates.models import REQUIRED_FIELDS, TemplateType

from conftest import template_document, write_template


class TestValidate:
    """Test MetadataStore.validate."""

    def test_valid_document(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl"))
        store.validate(path)

    def test_validation_is_idempotent(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl"))
        before = (path / "template.json").read_text()

        store.validate(path)
        store.validate(path)

        assert (path / "template.json").read_text() == before

    @pytest.mark.parametrize("missing", REQUIRED_FIELDS)
    def test_missing_field_is_named(self, tmp_path, store, missing):
        document = template_document("tpl")
        del document[missing]
        path = write_template(tmp_path / "tpl", document)

        with pytest.raises(ValidationError) as exc_info:
            store.validate(path)

        assert exc_info.value.reason == "missing-field"
        assert exc_info.value.field == missing
        assert missing in str(exc_info.value)

    def test_missing_file(self, tmp_path, store):
        with pytest.raises(ValidationError) as exc_info:
            store.validate(tmp_path)
        assert exc_info.value.reason == "missing-file"

    def test_malformed_json(self, tmp_path, store):
        (tmp_path / "template.json").write_text("{ not json")
        with pytest.raises(ValidationError) as exc_info:
            store.validate(tmp_path)
        assert exc_info.value.reason == "malformed-document"

    def test_top_level_array(self, tmp_path, store):
        (tmp_path / "template.json").write_text("[]")
        with pytest.raises(ValidationError) as exc_info:
            store.validate(tmp_path)
        assert exc_info.value.reason == "malformed-document"

    def test_dependencies_must_be_list(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", dependencies={"a": "1"}))
        with pytest.raises(ValidationError) as exc_info:
            store.validate(path)
        assert exc_info.value.reason == "invalid-dependencies"

    def test_variables_must_be_mapping(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", variables=["a"]))
        with pytest.raises(ValidationError) as exc_info:
            store.validate(path)
        assert exc_info.value.reason == "invalid-variables"

    def test_accepts_metadata_file_path(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl"))
        store.validate(path / "template.json")


class TestLoad:
    """Test MetadataStore.load."""

    def test_typed_fields(self, tmp_path, store):
        document = template_document(
            "editor/vim",
            category="configs",
            type="home-manager-module",
            dependencies=[{"name": "lib", "version": "1.0.0"}],
            variables={"extraConfig": {"type": "string", "default": ""}},
        )
        metadata = store.load(write_template(tmp_path / "vim", document))

        assert metadata.name == "editor/vim"
        assert metadata.type is TemplateType.HOME_MANAGER_MODULE
        assert metadata.dependencies[0].name == "lib"
        assert metadata.variables["extraConfig"].default == ""
        assert metadata.schema_version == "1.0"

    def test_schema_version_optional(self, tmp_path, store):
        document = template_document("tpl")
        del document["schemaVersion"]
        metadata = store.load(write_template(tmp_path / "tpl", document))
        assert metadata.schema_version == "1.0"

    def test_unknown_type(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", type="shell-script"))
        with pytest.raises(ValidationError) as exc_info:
            store.load(path)
        assert exc_info.value.reason == "invalid-field"
        assert exc_info.value.field == "type"

    def test_unknown_category(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", category="misc"))
        with pytest.raises(ValidationError) as exc_info:
            store.load(path)
        assert exc_info.value.field == "category"

    def test_dependency_needs_version(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", dependencies=[{"name": "a"}]))
        with pytest.raises(ValidationError) as exc_info:
            store.load(path)
        assert exc_info.value.reason == "invalid-field"


class TestGet:
    """Test MetadataStore.get."""

    def test_present_field(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", version="2.1.0"))
        assert store.get(path, "version") == "2.1.0"

    def test_absent_or_empty_uses_default(self, tmp_path, store):
        path = write_template(tmp_path / "tpl", template_document("tpl", description=""))
        assert store.get(path, "description", "none") == "none"
        assert store.get(path, "author", "nobody") == "nobody"

    def test_missing_file_uses_default(self, tmp_path, store):
        assert store.get(tmp_path / "absent", "name", "x") == "x"
        assert store.get(tmp_path / "absent", "name") is None


class TestWrite:
    """Test MetadataStore.write."""

    def test_round_trip_keeps_extra_fields(self, tmp_path, store):
        document = template_document("tpl", author="someone")
        path = write_template(tmp_path / "tpl", document)

        metadata = store.load(path)
        store.write(path, metadata.model_copy(update={"version": "1.1.0"}))

        written = json.loads((path / "template.json").read_text())
        assert written["version"] == "1.1.0"
        assert written["author"] == "someone"
        assert list(written)[0] == "schemaVersion"
        assert "created" not in written
        assert not list(path.glob(".template.*"))

    def test_creates_directory(self, tmp_path, store):
        source = write_template(tmp_path / "src", template_document("tpl"))
        metadata = store.load(source)

        store.write(tmp_path / "new", metadata)
        assert store.load(tmp_path / "new").name == "tpl"


class TestCompatibility:
    """Test MetadataStore.check_compatibility."""

    def test_empty_list_is_unrestricted(self, tmp_path, store):
        metadata = store.load(write_template(tmp_path / "tpl", template_document("tpl")))
        store.check_compatibility(metadata, "darwin")

    def test_listed_system(self, tmp_path, store):
        document = template_document("tpl", compatibility=["nixos"])
        metadata = store.load(write_template(tmp_path / "tpl", document))
        store.check_compatibility(metadata, "nixos")

    def test_unlisted_system(self, tmp_path, store):
        document = template_document("tpl", compatibility=["nixos"])
        metadata = store.load(write_template(tmp_path / "tpl", document))

        with pytest.raises(CompatibilityError) as exc_info:
            store.check_compatibility(metadata, "darwin")
        assert exc_info.value.reason == "incompatible"
