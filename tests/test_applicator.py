"""Tests for applying templates onto a target directory."""
import json

import pytest

from nixhelp.core.errors import (
    CompatibilityError,
    NotFoundError,
    SubstitutionError,
    TemplateNotFoundError,
    ValidationError,
    VersionMismatchError,
)
from nixhelp.templates.applicator import TemplateApplicator, iter_template_files


@pytest.fixture
def applicator(registry):
    return TemplateApplicator(registry)


class TestApply:
    """Test TemplateApplicator.apply."""

    def test_copies_files_without_metadata(self, applicator, make_template, tmp_path):
        make_template("custom", "tree", files={
            "default.nix": "{ }\n",
            "lib/helpers.nix": "{ lib }: { }\n",
        })
        target = tmp_path / "out"

        result = applicator.apply("custom", "tree", target)

        assert (target / "default.nix").read_text() == "{ }\n"
        assert (target / "lib" / "helpers.nix").exists()
        assert not (target / "template.json").exists()
        assert result.templates == ["custom/tree"]
        assert sorted(p.name for p in result.files) == ["default.nix", "helpers.nix"]

    def test_nested_metadata_never_copied(self, applicator, make_template, tmp_path):
        make_template("custom", "tree", files={
            "default.nix": "{ }",
            "vendored/template.json": "{}",
        })
        target = tmp_path / "out"

        applicator.apply("custom", "tree", target)

        assert not list(target.rglob("template.json"))

    def test_vim_end_to_end(self, applicator, make_template, tmp_path):
        make_template(
            "configs", "editor/vim",
            type="home-manager-module",
            variables={"extraConfig": {"type": "string", "default": ""}},
            files={"default.nix": "extraConfig = ''\n  {{extraConfig}}\n'';\n"},
        )
        target = tmp_path / "home"

        applicator.apply("configs", "editor/vim", target, {"extraConfig": "set number"})

        assert "set number" in (target / "default.nix").read_text()
        assert "{{extraConfig}}" not in (target / "default.nix").read_text()
        assert not (target / "template.json").exists()

    def test_no_variables_means_no_substitution(self, applicator, make_template, tmp_path):
        make_template(
            "base", "host",
            variables={"hostname": {"type": "string"}},
            files={"configuration.nix": 'networking.hostName = "{{hostname}}";'},
        )
        target = tmp_path / "out"

        applicator.apply("base", "host", target)

        assert "{{hostname}}" in (target / "configuration.nix").read_text()

    def test_unknown_tokens_left_verbatim(self, applicator, make_template, tmp_path):
        make_template(
            "custom", "t",
            variables={"name": {"type": "string"}},
            files={"default.nix": "{{name}} {{other}}"},
        )
        target = tmp_path / "out"

        applicator.apply("custom", "t", target, {"name": "vim"})

        assert (target / "default.nix").read_text() == "vim {{other}}"

    def test_missing_variable_value(self, applicator, make_template, tmp_path):
        make_template(
            "custom", "t",
            variables={"name": {"type": "string"}, "category": {"type": "string"}},
            files={"default.nix": "{{name}}"},
        )

        with pytest.raises(SubstitutionError) as exc_info:
            applicator.apply("custom", "t", tmp_path / "out", {"name": "vim"})
        assert exc_info.value.variable == "category"

    def test_dependencies_applied_first(self, applicator, make_template, tmp_path):
        make_template("base", "lib", files={"lib/options.nix": "lib\n"})
        make_template(
            "configs", "editor/neovim",
            dependencies=[{"name": "lib", "version": "1.0.0"}],
            files={"default.nix": "neovim\n"},
        )
        target = tmp_path / "out"

        result = applicator.apply("configs", "editor/neovim", target)

        assert result.templates == ["base/lib", "configs/editor/neovim"]
        assert (target / "lib" / "options.nix").read_text() == "lib\n"
        assert (target / "default.nix").read_text() == "neovim\n"

    def test_template_file_overrides_dependency(self, applicator, make_template, tmp_path):
        make_template("base", "a", files={"x.nix": "from dependency"})
        make_template(
            "custom", "t",
            dependencies=[{"name": "a", "version": "1.0.0"}],
            files={"x.nix": "from template"},
        )
        target = tmp_path / "out"

        applicator.apply("custom", "t", target)

        assert (target / "x.nix").read_text() == "from template"

    def test_dependency_variables_resolved_per_template(self, applicator, make_template, tmp_path):
        make_template(
            "base", "a",
            variables={"greeting": {"type": "string", "default": "hello"}},
            files={"a.txt": "{{greeting}} {{name}}"},
        )
        make_template(
            "custom", "t",
            dependencies=[{"name": "a", "version": "1.0.0"}],
            variables={"name": {"type": "string"}},
            files={"t.txt": "{{name}}"},
        )
        target = tmp_path / "out"

        applicator.apply("custom", "t", target, {"name": "ann"})

        assert (target / "t.txt").read_text() == "ann"
        assert (target / "a.txt").read_text() == "hello {{name}}"

    def test_version_mismatch_applies_nothing(self, applicator, make_template, tmp_path):
        make_template("base", "a", version="1.0.1", files={"a.nix": "a"})
        make_template(
            "custom", "t",
            dependencies=[{"name": "a", "version": "1.0.0"}],
            files={"t.nix": "t"},
        )
        target = tmp_path / "out"

        with pytest.raises(VersionMismatchError) as exc_info:
            applicator.apply("custom", "t", target)

        assert (exc_info.value.name, exc_info.value.required, exc_info.value.found) == (
            "a", "1.0.0", "1.0.1",
        )
        assert not target.exists() or not any(target.iterdir())

    def test_unknown_template(self, applicator, registry, tmp_path):
        registry.ensure_roots()
        with pytest.raises(TemplateNotFoundError):
            applicator.apply("base", "missing", tmp_path / "out")

    def test_invalid_metadata_names_field(self, applicator, make_template, tmp_path):
        broken = make_template("custom", "broken", files={"a.nix": "a"})
        document = json.loads((broken / "template.json").read_text())
        del document["description"]
        (broken / "template.json").write_text(json.dumps(document))

        with pytest.raises(ValidationError) as exc_info:
            applicator.apply("custom", "broken", tmp_path / "out")

        assert exc_info.value.field == "description"
        assert not (tmp_path / "out").exists()

    def test_unknown_category(self, applicator, tmp_path):
        with pytest.raises(NotFoundError):
            applicator.apply("extras", "x", tmp_path / "out")

    def test_incompatible_system(self, applicator, make_template, tmp_path):
        make_template("base", "nixos-only", compatibility=["nixos"], files={"a": "a"})

        with pytest.raises(CompatibilityError):
            applicator.apply("base", "nixos-only", tmp_path / "out", target_system="darwin")

        result = applicator.apply("base", "nixos-only", tmp_path / "out", target_system="nixos")
        assert result.templates == ["base/nixos-only"]

    def test_existing_target_files_overwritten(self, applicator, make_template, tmp_path):
        make_template("custom", "t", files={"default.nix": "new"})
        target = tmp_path / "out"
        target.mkdir()
        (target / "default.nix").write_text("old")
        (target / "keep.nix").write_text("keep")

        applicator.apply("custom", "t", target)

        assert (target / "default.nix").read_text() == "new"
        assert (target / "keep.nix").read_text() == "keep"


def test_iter_template_files_sorted(tmp_path):
    for name in ("b.nix", "a.nix", "template.json", "sub/c.nix"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")

    relative = [p.relative_to(tmp_path).as_posix() for p in iter_template_files(tmp_path)]
    assert relative == ["a.nix", "b.nix", "sub/c.nix"]
