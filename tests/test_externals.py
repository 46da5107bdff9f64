"""
Tests for svn:externals parsing and pegging policies.
"""

import pytest

from svntag.externals import (
    ExternalDefinition,
    parse_definition,
    parse_externals,
    pin_externals,
    pin_to_working_revision,
    render_externals,
)


class TestParseDefinition:
    """Tests for parse_definition."""

    def test_new_format(self):
        item = parse_definition("http://host/lib/trunk lib")
        assert item == ExternalDefinition(local_path="lib", url="http://host/lib/trunk")

    def test_new_format_with_revision(self):
        item = parse_definition("-r12 http://host/lib/trunk lib")
        assert item.revision == "12"
        assert item.url == "http://host/lib/trunk"
        assert item.local_path == "lib"

    def test_new_format_separate_revision(self):
        item = parse_definition("-r 12 http://host/lib/trunk lib")
        assert item.revision == "12"

    def test_new_format_with_peg(self):
        item = parse_definition("http://host/lib/trunk@34 lib")
        assert item.url == "http://host/lib/trunk"
        assert item.peg_revision == "34"

    def test_repository_relative_url(self):
        item = parse_definition("^/vendor/lib@7 third-party/lib")
        assert item.url == "^/vendor/lib"
        assert item.peg_revision == "7"
        assert item.local_path == "third-party/lib"

    def test_userinfo_is_not_a_peg(self):
        item = parse_definition("svn+ssh://builder@host/lib lib")
        assert item.url == "svn+ssh://builder@host/lib"
        assert item.peg_revision is None

    def test_old_format(self):
        item = parse_definition("third-party/lib http://host/lib/trunk")
        assert item.local_path == "third-party/lib"
        assert item.url == "http://host/lib/trunk"
        assert item.revision is None

    def test_old_format_with_revision(self):
        item = parse_definition("lib -r 21 http://host/lib/trunk")
        assert item.revision == "21"
        assert item.url == "http://host/lib/trunk"

    def test_quoted_paths(self):
        item = parse_definition('"http://host/my lib" "my lib"')
        assert item.url == "http://host/my lib"
        assert item.local_path == "my lib"

    @pytest.mark.parametrize("line", ["lib", "-r", "-r5 http://host/lib", "a b c d"])
    def test_invalid(self, line):
        with pytest.raises(ValueError):
            parse_definition(line)


class TestExternalDefinition:
    """Tests for ExternalDefinition."""

    def test_declared_revision(self):
        assert ExternalDefinition("lib", "http://host/lib", revision="5").declared_revision == 5
        assert ExternalDefinition("lib", "http://host/lib", peg_revision="8").declared_revision == 8
        assert ExternalDefinition("lib", "http://host/lib", revision="HEAD").declared_revision is None
        assert ExternalDefinition("lib", "http://host/lib").declared_revision is None

    def test_render(self):
        item = ExternalDefinition("lib", "http://host/lib", revision="5", peg_revision="5")
        assert item.render() == "-r5 http://host/lib@5 lib"

    def test_render_quotes_whitespace(self):
        item = ExternalDefinition("my lib", "http://host/lib")
        assert item.render() == 'http://host/lib "my lib"'


class TestParseExternals:
    """Tests for parse_externals and render_externals."""

    def test_keeps_comments_and_blank_lines(self):
        text = "# vendor code\n\nhttp://host/lib lib\n"
        items = parse_externals(text)

        assert items[0] == "# vendor code"
        assert items[1] == ""
        assert isinstance(items[2], ExternalDefinition)
        assert render_externals(items) == text

    def test_unparsable_line_kept(self):
        items = parse_externals("this line has too many words in it\n")
        assert items == ["this line has too many words in it"]

    def test_empty(self):
        assert parse_externals("") == []
        assert parse_externals(None) == []


class TestPinExternals:
    """Tests for pin_externals with pegging policies."""

    def test_default_policy_pins_working_revision(self):
        assert pin_to_working_revision("lib", None, 42) == (42, 42)

    def test_pins_known_working_revisions(self):
        items = parse_externals("http://host/lib lib\n-r3 http://host/tools tools\n")

        pinned = pin_externals(items, {"lib": 40, "tools": 41}, pin_to_working_revision)

        assert render_externals(pinned) == (
            "-r40 http://host/lib@40 lib\n"
            "-r41 http://host/tools@41 tools\n"
        )

    def test_unknown_working_revision_left_as_declared(self):
        items = parse_externals("-r3 http://host/lib lib\n")

        pinned = pin_externals(items, {}, pin_to_working_revision)

        assert pinned == items

    def test_custom_policy_receives_paths_and_revisions(self):
        calls = []

        def keep_declared(path, declared, working):
            calls.append((path, declared, working))
            return declared, None

        items = parse_externals("-r3 http://host/lib lib\n")
        pinned = pin_externals(items, {"lib": 9}, keep_declared, base_path="/ws/trunk")

        assert calls == [("/ws/trunk/lib", 3, 9)]
        assert pinned[0].revision == "3"
        assert pinned[0].peg_revision is None

    def test_does_not_modify_input(self):
        items = parse_externals("http://host/lib lib\n")
        pin_externals(items, {"lib": 5}, pin_to_working_revision)
        assert items[0].revision is None
