from __future__ import annotations

import pytest

from preserve_utils.convert.models import (
    TableLockedError,
    TableNotSeededError,
    UnresolvableTargetError,
)
from preserve_utils.convert.resolution import (
    KEEP_ORIGINAL,
    FolderOverride,
    FormatResolutionTable,
    SettingsEntry,
)


def test_format_override_wins_over_class_default(table):
    assert table.resolve("JPEG", "Image") == "fmt/353"


def test_falls_back_to_class_default(table):
    assert table.resolve("DOCX", "Document") == "fmt/477"
    assert table.resolve("GIF", "Image") == "fmt/13"
    assert table.resolve("", "Image") == "fmt/13"
    assert table.resolve(None, "Document") == "fmt/477"


def test_unresolvable_when_neither_key_exists(table):
    with pytest.raises(UnresolvableTargetError):
        table.resolve("WAV", "Audio")


def test_resolve_before_seed_is_a_programming_error():
    with pytest.raises(TableNotSeededError):
        FormatResolutionTable().resolve("JPEG", "Image")


def test_set_override_is_visible_immediately(table):
    table.set_override("JPEG", "FMT/CODE2")

    assert table.resolve("JPEG", "Image") == "FMT/CODE2"
    assert table.resolve("GIF", "Image") == "fmt/13"


def test_override_on_class_key_changes_fallback(table):
    table.set_override("Image", "fmt/11")

    assert table.resolve("GIF", "Image") == "fmt/11"
    assert table.resolve("JPEG", "Image") == "fmt/353"


def test_reseeding_never_reverts_an_override(table):
    table.set_override("JPEG", "FMT/CODE2")
    table.set_override("Document", "fmt/18")

    table.seed(
        [
            SettingsEntry(
                class_name="Image",
                class_default="fmt/13",
                format_name="JPEG",
                format_default="fmt/353",
            ),
            SettingsEntry(class_name="Document", class_default="fmt/477"),
        ]
    )

    assert table.resolve("JPEG", "Image") == "FMT/CODE2"
    assert table.resolve("DOCX", "Document") == "fmt/18"


def test_seed_fills_missing_keys_only():
    table = FormatResolutionTable()
    table.seed([SettingsEntry(class_name="Image", class_default="fmt/13")])
    table.seed(
        [
            SettingsEntry(class_name="Image", class_default="fmt/353"),
            SettingsEntry(class_name="Email", class_default="fmt/18"),
        ]
    )

    assert table.resolve(None, "Image") == "fmt/13"
    assert table.resolve(None, "Email") == "fmt/18"


def test_format_without_default_adds_no_key(table):
    assert "DOCX" not in table.targets()


def test_keep_original_format_resolves_to_sentinel(table):
    assert table.resolve("TIFF", "Image") == KEEP_ORIGINAL


def test_classify_returns_class_and_format(table):
    assert table.classify("fmt/43") == ("Image", "JPEG")
    assert table.classify("fmt/412") == ("Document", "DOCX")
    assert table.classify("fmt/999") is None


def test_set_override_rejected_during_conversion_phase(table):
    with table.conversion_phase():
        assert table.locked
        with pytest.raises(TableLockedError):
            table.set_override("JPEG", "fmt/13")
        assert table.resolve("JPEG", "Image") == "fmt/353"

    assert not table.locked
    table.set_override("JPEG", "fmt/13")
    assert table.resolve("JPEG", "Image") == "fmt/13"


def test_conversion_phase_nests(table):
    with table.conversion_phase():
        with table.conversion_phase():
            pass
        assert table.locked
    assert not table.locked


@pytest.mark.parametrize(("key", "code"), [("", "fmt/1"), ("JPEG", "")])
def test_set_override_requires_values(table, key, code):
    with pytest.raises(ValueError):
        table.set_override(key, code)


def test_resolution_is_not_cached(table):
    assert table.resolve("JPEG", "Image") == "fmt/353"
    table.set_override("JPEG", "fmt/11")
    assert table.resolve("JPEG", "Image") == "fmt/11"
    table.set_override("JPEG", "fmt/353")
    assert table.resolve("JPEG", "Image") == "fmt/353"


def _with_folders(*folders: FolderOverride) -> FormatResolutionTable:
    seeded = FormatResolutionTable()
    seeded.seed(
        [
            SettingsEntry(class_name="Image", class_default="fmt/13"),
            SettingsEntry(
                class_name="Image",
                class_default="fmt/13",
                format_name="JPEG",
                format_default="fmt/353",
                format_codes=("fmt/43",),
            ),
        ],
        folders=folders,
    )
    return seeded


def test_folder_override_wins_over_format_and_class_keys():
    table = _with_folders(
        FolderOverride("scans/2020", frozenset({"fmt/43"}), "fmt/18")
    )

    assert (
        table.resolve(
            "JPEG", "Image", format_code="fmt/43", folder="scans/2020"
        )
        == "fmt/18"
    )
    assert (
        table.resolve(
            "JPEG", "Image", format_code="fmt/43", folder="./scans/2020/"
        )
        == "fmt/18"
    )


def test_folder_override_only_applies_to_listed_codes_and_exact_folder():
    table = _with_folders(
        FolderOverride("scans", frozenset({"fmt/43"}), "fmt/18")
    )

    assert (
        table.resolve("JPEG", "Image", format_code="fmt/44", folder="scans")
        == "fmt/353"
    )
    assert (
        table.resolve(
            "JPEG", "Image", format_code="fmt/43", folder="scans/old"
        )
        == "fmt/353"
    )
    assert table.resolve("JPEG", "Image", format_code="fmt/43") == "fmt/353"


def test_root_folder_override_uses_empty_key():
    table = _with_folders(FolderOverride(".", frozenset({"fmt/43"}), "fmt/11"))

    assert (
        table.resolve("JPEG", "Image", format_code="fmt/43", folder="")
        == "fmt/11"
    )
    assert [o.folder for o in table.folder_overrides()] == ["."]


def test_known_keys_cover_classes_and_formats_without_defaults(table):
    assert table.is_known_key("Image")
    assert table.is_known_key("DOCX")
    assert not table.is_known_key("jpeg")
    assert table.suggest_key("jpeg") == "JPEG"
    assert table.suggest_key("WAV") is None
