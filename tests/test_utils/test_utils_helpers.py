"""通用工具测试"""

import pytest

from ytaggable.utils import import_string, parse_file_size, to_snake_case


class TestParseFileSize:

    def test_units(self):
        assert parse_file_size("10MB") == 10 * 1024 * 1024
        assert parse_file_size("512kb") == 512 * 1024
        assert parse_file_size("1.5GB") == int(1.5 * 1024 ** 3)
        assert parse_file_size("100B") == 100
        assert parse_file_size("2048") == 2048

    def test_numeric_and_alias(self):
        assert parse_file_size(12.8) == 12
        assert parse_file_size("2K") == 2 * 1024
        assert parse_file_size("3M") == 3 * 1024 * 1024
        assert parse_file_size("1T") == 1024 ** 4

    @pytest.mark.parametrize("value", ["", "KB", "abcMB", "ten"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_file_size(value)


class TestToSnakeCase:

    @pytest.mark.parametrize("name, expected", [
        ("BlogPost", "blog_post"),
        ("APIClient", "api_client"),
        ("Tag", "tag"),
        ("TagRelation", "tag_relation"),
    ])
    def test_convert(self, name, expected):
        assert to_snake_case(name) == expected


class TestImportString:

    def test_colon_and_dot_paths(self):
        from ytaggable.taggable.slugger import default_slugger

        assert import_string("ytaggable.taggable.slugger:default_slugger") is default_slugger
        assert import_string("ytaggable.taggable.slugger.default_slugger") is default_slugger

    @pytest.mark.parametrize("path", ["", "nodots", "ytaggable.version:missing", "no_such_pkg_xyz.mod:attr"])
    def test_invalid(self, path):
        with pytest.raises(ImportError):
            import_string(path)
