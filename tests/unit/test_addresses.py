"""
Unit tests for RFC 5322 address list parsing (parsing/addresses.py).

Tests cover:
- Lexer tokens (quoted strings, nested comments, domain literals)
- Mailboxes with and without display names
- Groups, obsolete routes and obsolete "addr (Name)" form
- Encoded-word display names
- Lenient handling of broken input
"""

import pytest

from eml_decoder.models.email_document import Address
from eml_decoder.parsing.addresses import (
    ATOM,
    COMMENT,
    DOMAIN_LITERAL,
    QUOTED,
    SPECIAL,
    parse_address,
    parse_address_list,
    remove_comments,
    tokenize,
)


class TestTokenize:
    """Tests for tokenize()."""

    @pytest.mark.unit
    def test_token_kinds(self):
        """Test each token kind once."""
        tokens = tokenize('"Doe, J." <j@[127.0.0.1]> (note)')
        assert [(t.kind, t.value) for t in tokens] == [
            (QUOTED, "Doe, J."),
            (SPECIAL, "<"),
            (ATOM, "j"),
            (SPECIAL, "@"),
            (DOMAIN_LITERAL, "[127.0.0.1]"),
            (SPECIAL, ">"),
            (COMMENT, "note"),
        ]

    @pytest.mark.unit
    def test_nested_comment_with_escapes(self):
        """Test nested comments and escaped parentheses."""
        tokens = tokenize(r"a (outer (inner) \) still) b")
        assert [(t.kind, t.value) for t in tokens] == [
            (ATOM, "a"),
            (COMMENT, "outer (inner) ) still"),
            (ATOM, "b"),
        ]

    @pytest.mark.unit
    def test_quoted_string_hides_comment_delimiters(self):
        """Test that parentheses inside quotes are not comments."""
        tokens = tokenize(r'"a (not \"comment\")" x')
        assert tokens[0].kind == QUOTED
        assert tokens[0].value == 'a (not "comment")'

    @pytest.mark.unit
    def test_space_before_flag(self):
        """Test whitespace tracking between tokens."""
        tokens = tokenize("John  Doe<x@y>")
        assert [t.space_before for t in tokens[:3]] == [False, True, False]

    @pytest.mark.unit
    def test_encoded_word_is_one_atom(self):
        """Test that an encoded-word containing specials stays one token."""
        tokens = tokenize("=?utf-8?q?Doe,_John?= <john@example.com>")
        assert tokens[0].kind == ATOM
        assert tokens[0].value == "=?utf-8?q?Doe,_John?="


class TestRemoveComments:
    """Tests for remove_comments()."""

    @pytest.mark.unit
    def test_remove_comments(self):
        """Test comment removal outside quoted strings."""
        assert remove_comments('Tue (day (nested)) "keep (this)"').split() == [
            "Tue",
            '"keep',
            '(this)"',
        ]


class TestParseAddressList:
    """Tests for parse_address_list()."""

    @pytest.mark.unit
    def test_bare_addr_spec(self):
        """Test a single bare address."""
        assert parse_address_list("sender@example.com") == [
            Address(name="", address="sender@example.com")
        ]

    @pytest.mark.unit
    def test_name_addr(self):
        """Test display name with angle address."""
        assert parse_address_list("John Doe <john@example.com>") == [
            Address(name="John Doe", address="john@example.com")
        ]

    @pytest.mark.unit
    def test_quoted_display_name_with_comma(self):
        """Test that a comma inside quotes does not split the list."""
        result = parse_address_list('"Doe, John" <john@example.com>, jane@example.com')
        assert result == [
            Address(name="Doe, John", address="john@example.com"),
            Address(name="", address="jane@example.com"),
        ]

    @pytest.mark.unit
    def test_encoded_display_name(self):
        """Test RFC 2047 display names, decoded after lexing."""
        result = parse_address_list(
            "=?utf-8?q?J=C3=B6rg_M=C3=BCller?= <joerg@example.com>, "
            "=?utf-8?q?Doe=2C_John?= <john@example.com>"
        )
        assert result == [
            Address(name="Jörg Müller", address="joerg@example.com"),
            Address(name="Doe, John", address="john@example.com"),
        ]

    @pytest.mark.unit
    def test_encoded_word_next_to_atom(self):
        """Test an encoded-word followed by a literal atom."""
        result = parse_address_list("=?ISO-8859-1?Q?Andr=E9?= Pirard <pirard@example.be>")
        assert result == [Address(name="André Pirard", address="pirard@example.be")]

    @pytest.mark.unit
    def test_group_flattened(self):
        """Test that group members are returned and the group name dropped."""
        result = parse_address_list(
            "Team: jane@example.com, Bob <bob@example.com>;, carol@example.com"
        )
        assert [a.address for a in result] == [
            "jane@example.com",
            "bob@example.com",
            "carol@example.com",
        ]

    @pytest.mark.unit
    def test_empty_group(self):
        """Test undisclosed-recipients style empty group."""
        assert parse_address_list("undisclosed-recipients:;") == []

    @pytest.mark.unit
    def test_comment_as_display_name(self):
        """Test obsolete "addr (Name)" form."""
        assert parse_address_list("bob@example.com (Bob Smith)") == [
            Address(name="Bob Smith", address="bob@example.com")
        ]

    @pytest.mark.unit
    def test_comments_skipped(self):
        """Test comments around a name-addr."""
        result = parse_address_list("(lead) John (middle) Doe <john@example.com> (trailing)")
        assert result == [Address(name="John Doe", address="john@example.com")]

    @pytest.mark.unit
    def test_obsolete_route_dropped(self):
        """Test source route removal."""
        assert parse_address_list("<@relay1.example,@relay2.example:user@example.com>") == [
            Address(name="", address="user@example.com")
        ]

    @pytest.mark.unit
    def test_quoted_local_part(self):
        """Test local parts that need quoting."""
        result = parse_address_list('"john doe"@example.com')
        assert result == [Address(name="", address='"john doe"@example.com')]

    @pytest.mark.unit
    def test_dotted_local_part(self):
        """Test that dot-atom local parts stay unquoted."""
        assert parse_address_list("first.last+tag@sub.example.com")[0].address == (
            "first.last+tag@sub.example.com"
        )

    @pytest.mark.unit
    def test_domain_literal(self):
        """Test a domain literal address."""
        assert parse_address_list("root@[192.168.0.1]")[0].address == "root@[192.168.0.1]"

    @pytest.mark.unit
    def test_empty_entries_skipped(self):
        """Test empty list members."""
        result = parse_address_list(" , a@example.com,, ,b@example.com,")
        assert [a.address for a in result] == ["a@example.com", "b@example.com"]

    @pytest.mark.unit
    def test_missing_angle_brackets(self):
        """Test display name followed by a bare address."""
        assert parse_address_list("John Doe john@example.com") == [
            Address(name="John Doe", address="john@example.com")
        ]

    @pytest.mark.unit
    def test_unterminated_angle_addr(self):
        """Test a missing closing bracket."""
        assert parse_address_list("John <john@example.com") == [
            Address(name="John", address="john@example.com")
        ]

    @pytest.mark.unit
    def test_garbage_never_raises(self):
        """Test that nonsense input yields no addresses instead of an error."""
        assert parse_address_list("<<>> ;;; ((( \"") == []
        assert parse_address_list("") == []
        assert parse_address_list("   ") == []

    @pytest.mark.unit
    def test_local_only_mailbox(self):
        """Test a lone word kept as a local mailbox."""
        assert parse_address_list("root") == [Address(name="", address="root")]


class TestParseAddress:
    """Tests for parse_address()."""

    @pytest.mark.unit
    def test_first_address(self):
        """Test that the first mailbox is returned."""
        assert parse_address("a@example.com, b@example.com") == Address(
            name="", address="a@example.com"
        )

    @pytest.mark.unit
    def test_nothing(self):
        """Test empty value."""
        assert parse_address("") is None
