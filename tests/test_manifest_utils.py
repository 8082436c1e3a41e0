import pytest

from ota_release_tools.config import CHANNEL_META_NAME
from ota_release_tools.exceptions import MissingFile, StructuralMismatch
from ota_release_tools.manifest_utils import (
    find_meta_data_values,
    inject_update_channel,
    read_update_settings,
    upsert_meta_data,
)

CHANNEL_ELEMENT = '<meta-data android:name="expo.modules.updates.EXPO_UPDATE_CHANNEL" android:value="{}"/>'
RUNTIME_LINE = (
    '<meta-data android:name="expo.modules.updates.EXPO_RUNTIME_VERSION" '
    'android:value="@string/expo_runtime_version"/>'
)


class TestUpsertInsert:
    def test_inserts_after_last_application_meta_data(self, manifest_text):
        result = upsert_meta_data(manifest_text, CHANNEL_META_NAME, "preview")
        expected = manifest_text.replace(
            RUNTIME_LINE, RUNTIME_LINE + "\n    " + CHANNEL_ELEMENT.format("preview")
        )
        assert result == expected

    def test_only_inserted_text_differs(self, manifest_text):
        result = upsert_meta_data(manifest_text, CHANNEL_META_NAME, "preview")
        inserted = "\n    " + CHANNEL_ELEMENT.format("preview")
        assert len(result) == len(manifest_text) + len(inserted)
        assert result.replace(inserted, "", 1) == manifest_text

    def test_nested_meta_data_is_not_an_anchor(self):
        text = (
            "<manifest>\n"
            "  <application>\n"
            '    <meta-data android:name="a" android:value="1"/>\n'
            "    <activity>\n"
            '      <meta-data android:name="nested" android:value="2"/>\n'
            "    </activity>\n"
            "  </application>\n"
            "</manifest>\n"
        )
        result = upsert_meta_data(text, "b", "x")
        assert result == text.replace(
            '<meta-data android:name="a" android:value="1"/>',
            '<meta-data android:name="a" android:value="1"/>\n    <meta-data android:name="b" android:value="x"/>',
        )

    def test_inserts_after_application_tag_without_meta_data(self):
        text = (
            "<manifest>\n"
            '  <application android:label="x">\n'
            '    <activity android:name=".Main"/>\n'
            "  </application>\n"
            "</manifest>\n"
        )
        result = upsert_meta_data(text, CHANNEL_META_NAME, "production")
        assert result == text.replace(
            '<application android:label="x">',
            '<application android:label="x">\n    ' + CHANNEL_ELEMENT.format("production"),
        )

    def test_empty_application_gets_default_indent(self):
        text = "<manifest>\n  <application>\n  </application>\n</manifest>\n"
        result = upsert_meta_data(text, "k", "v")
        assert result == (
            "<manifest>\n  <application>\n"
            '    <meta-data android:name="k" android:value="v"/>\n'
            "  </application>\n</manifest>\n"
        )

    def test_empty_application_indent_follows_application_indent(self):
        text = "<manifest>\n    <application>\n    </application>\n</manifest>\n"
        result = upsert_meta_data(text, "k", "v")
        assert '\n        <meta-data android:name="k" android:value="v"/>\n    </application>' in result

    def test_unindented_application_gets_four_spaces(self):
        text = "<manifest>\n<application>\n</application>\n</manifest>\n"
        result = upsert_meta_data(text, "k", "v")
        assert '<application>\n    <meta-data android:name="k" android:value="v"/>\n</application>' in result

    def test_keeps_crlf_line_endings(self):
        text = "<manifest>\r\n  <application>\r\n    <activity/>\r\n  </application>\r\n</manifest>\r\n"
        result = upsert_meta_data(text, "k", "v")
        assert '<application>\r\n    <meta-data android:name="k" android:value="v"/>\r\n    <activity/>' in result
        assert "\n" not in result.replace("\r\n", "")

    def test_commented_marker_is_ignored(self, manifest_text):
        comment = "<!-- " + CHANNEL_ELEMENT.format("old") + " -->"
        text = manifest_text.replace("<application", comment + "\n  <application", 1)
        result = upsert_meta_data(text, CHANNEL_META_NAME, "preview")
        assert comment in result
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ["preview"]

    def test_escapes_value(self, manifest_text):
        result = upsert_meta_data(manifest_text, CHANNEL_META_NAME, 'a&b"c')
        assert 'android:value="a&amp;b&quot;c"' in result
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ['a&b"c']


class TestUpsertUpdate:
    def test_replaces_existing_value_in_place(self, manifest_text):
        text = upsert_meta_data(manifest_text, CHANNEL_META_NAME, "A")
        result = upsert_meta_data(text, CHANNEL_META_NAME, "B")
        assert result == text.replace(CHANNEL_ELEMENT.format("A"), CHANNEL_ELEMENT.format("B"))
        assert result.count(CHANNEL_META_NAME) == 1
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ["B"]

    def test_attribute_order_and_spacing_are_preserved(self):
        text = (
            "<application>\n"
            f'    <meta-data\n        android:value="old"\n        android:name="{CHANNEL_META_NAME}" />\n'
            "</application>\n"
        )
        result = upsert_meta_data(text, CHANNEL_META_NAME, "new")
        assert result == text.replace('"old"', '"new"')

    def test_adds_value_attribute_when_missing(self):
        text = f'<application>\n    <meta-data android:name="{CHANNEL_META_NAME}"/>\n</application>\n'
        result = upsert_meta_data(text, CHANNEL_META_NAME, "beta")
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ["beta"]

    def test_single_quoted_value_is_rewritten_in_place(self):
        text = f"<application>\n    <meta-data android:name=\"{CHANNEL_META_NAME}\" android:value='old'/>\n</application>\n"
        result = upsert_meta_data(text, CHANNEL_META_NAME, "new")
        assert result == text.replace("'old'", "'new'")
        assert result.count("android:value") == 1

    def test_single_quoted_name_is_found(self):
        text = f"<application>\n    <meta-data android:name='{CHANNEL_META_NAME}' android:value='old'/>\n</application>\n"
        result = upsert_meta_data(text, CHANNEL_META_NAME, "new")
        assert result.count(CHANNEL_META_NAME) == 1
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ["new"]

    def test_single_quoted_name_without_value_gets_one(self):
        text = f"<application>\n    <meta-data android:name='{CHANNEL_META_NAME}'/>\n</application>\n"
        result = upsert_meta_data(text, CHANNEL_META_NAME, "beta")
        assert result.count(CHANNEL_META_NAME) == 1
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ["beta"]

    def test_collapses_duplicates(self, manifest_text):
        text = manifest_text.replace(
            RUNTIME_LINE,
            RUNTIME_LINE
            + "\n    " + CHANNEL_ELEMENT.format("one")
            + "\n    " + CHANNEL_ELEMENT.format("two"),
        )
        result = upsert_meta_data(text, CHANNEL_META_NAME, "three")
        assert find_meta_data_values(result, CHANNEL_META_NAME) == ["three"]
        assert result == manifest_text.replace(
            RUNTIME_LINE, RUNTIME_LINE + "\n    " + CHANNEL_ELEMENT.format("three")
        )

    def test_is_idempotent(self, manifest_text):
        once = upsert_meta_data(manifest_text, CHANNEL_META_NAME, "preview")
        twice = upsert_meta_data(once, CHANNEL_META_NAME, "preview")
        assert once == twice


class TestStructuralMismatch:
    def test_no_application_element(self):
        text = '<manifest>\n  <uses-permission android:name="x"/>\n</manifest>\n'
        with pytest.raises(StructuralMismatch):
            upsert_meta_data(text, CHANNEL_META_NAME, "preview")

    def test_self_closing_application(self):
        with pytest.raises(StructuralMismatch):
            upsert_meta_data('<manifest><application android:label="x"/></manifest>', "k", "v")

    def test_unclosed_application(self):
        with pytest.raises(StructuralMismatch):
            upsert_meta_data("<manifest><application>\n", "k", "v")


class TestInjectUpdateChannel:
    def test_inserts_then_reports_unchanged(self, tmp_path, manifest_text):
        path = tmp_path / "AndroidManifest.xml"
        path.write_text(manifest_text, encoding="utf-8")

        assert inject_update_channel(str(path), "preview") == "inserted"
        patched = path.read_bytes()
        assert inject_update_channel(str(path), "preview") == "unchanged"
        assert path.read_bytes() == patched

    def test_updates_existing_channel(self, tmp_path, manifest_text):
        path = tmp_path / "AndroidManifest.xml"
        path.write_text(upsert_meta_data(manifest_text, CHANNEL_META_NAME, "preview"), encoding="utf-8")

        assert inject_update_channel(str(path), "production") == "updated"
        assert find_meta_data_values(path.read_text(encoding="utf-8"), CHANNEL_META_NAME) == ["production"]

    def test_preserves_crlf_on_disk(self, tmp_path):
        path = tmp_path / "AndroidManifest.xml"
        path.write_bytes(b"<manifest>\r\n  <application>\r\n  </application>\r\n</manifest>\r\n")
        inject_update_channel(str(path), "preview")
        assert b"\r\r" not in path.read_bytes()
        assert path.read_bytes().count(b"\r\n") == 5

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(MissingFile):
            inject_update_channel(str(tmp_path / "AndroidManifest.xml"), "preview")

    def test_broken_manifest_is_left_untouched(self, tmp_path):
        path = tmp_path / "AndroidManifest.xml"
        path.write_text("<manifest></manifest>\n", encoding="utf-8")
        with pytest.raises(StructuralMismatch):
            inject_update_channel(str(path), "preview")
        assert path.read_text(encoding="utf-8") == "<manifest></manifest>\n"

    def test_unverifiable_patch_is_never_written(self, tmp_path, manifest_text, monkeypatch):
        from ota_release_tools import manifest_utils

        path = tmp_path / "AndroidManifest.xml"
        path.write_text(manifest_text, encoding="utf-8")
        before = path.read_bytes()
        doubled = CHANNEL_ELEMENT.format("preview") * 2
        monkeypatch.setattr(
            manifest_utils,
            "upsert_meta_data",
            lambda text, name, value: text.replace("</application>", doubled + "</application>"),
        )

        with pytest.raises(StructuralMismatch):
            inject_update_channel(str(path), "preview")
        assert path.read_bytes() == before

    def test_single_quoted_channel_is_updated(self, tmp_path, manifest_text):
        path = tmp_path / "AndroidManifest.xml"
        quoted = f"<meta-data android:name='{CHANNEL_META_NAME}' android:value='preview'/>"
        path.write_text(manifest_text.replace(RUNTIME_LINE, RUNTIME_LINE + "\n    " + quoted), encoding="utf-8")

        assert inject_update_channel(str(path), "production") == "updated"
        assert find_meta_data_values(path.read_text(encoding="utf-8"), CHANNEL_META_NAME) == ["production"]


def test_read_update_settings(manifest_text):
    text = upsert_meta_data(manifest_text, CHANNEL_META_NAME, "preview")
    text = upsert_meta_data(text, "expo.modules.updates.RUNTIME_VERSION", "1.0.0")
    settings = read_update_settings(text)
    assert settings.channel == "preview"
    assert settings.enabled == "true"
    assert settings.runtime_version == "1.0.0"


def test_read_update_settings_without_markers():
    settings = read_update_settings("<manifest><application></application></manifest>")
    assert settings.channel is None
    assert settings.enabled is None
    assert settings.runtime_version is None
