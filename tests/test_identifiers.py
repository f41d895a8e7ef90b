"""Tests for groupadmin.core.identifiers."""

import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

from groupadmin.core.identifiers import (
    IdentifierKind,
    classify_identifier,
    is_email_shaped,
    is_object_id,
    is_valid_alias,
    mail_nickname_from,
    normalize_email,
    odata_quote,
    ps_quote,
    smtp_addresses,
)

OBJECT_ID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"

email_local = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=20)
email_domain = st.sampled_from(["contoso.com", "fabrikam.com", "northwind.org"])
valid_email = st.builds(lambda local, domain: f"{local}@{domain}", email_local, email_domain)


# =============================================================================
# Email and object id validation
# =============================================================================


class TestIsEmailShaped:
    """Tests for is_email_shaped."""

    @pytest.mark.parametrize(
        "value",
        [
            "alice@contoso.com",
            "Alice.Smith@Contoso.com",
            "  bob@contoso.com  ",
            "first.last+tag@mail.contoso.com",
        ],
    )
    def test_valid_addresses(self, value):
        assert is_email_shaped(value) is True

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "   ",
            None,
            "alice",
            "alice@",
            "@contoso.com",
            "Alice Smith",
            "alice@@contoso.com",
            "alice smith@contoso.com",
            "alice@corp.local",
            "alice@example.test",
        ],
    )
    def test_invalid_values(self, value):
        assert is_email_shaped(value) is False

    @given(email=valid_email)
    def test_generated_addresses_are_valid(self, email):
        assert is_email_shaped(email)

    @given(value=st.text().filter(lambda s: "@" not in s))
    def test_strings_without_at_sign_are_never_valid(self, value):
        assert not is_email_shaped(value)


class TestIsObjectId:
    """Tests for is_object_id."""

    def test_guid(self):
        assert is_object_id(OBJECT_ID) is True

    def test_uppercase_guid(self):
        assert is_object_id(OBJECT_ID.upper()) is True

    @pytest.mark.parametrize("value", ["", None, "alice@contoso.com", "group-123", "1234"])
    def test_not_guid(self, value):
        assert is_object_id(value) is False

    @given(value=st.uuids())
    def test_any_uuid(self, value):
        assert is_object_id(str(value))


# =============================================================================
# Classification
# =============================================================================


class TestClassifyIdentifier:
    """Tests for classify_identifier."""

    @pytest.mark.parametrize(
        ("value", "kind"),
        [
            (OBJECT_ID, IdentifierKind.OBJECT_ID),
            ("alice@contoso.com", IdentifierKind.EMAIL),
            (" alice@contoso.com ", IdentifierKind.EMAIL),
            ("alice", IdentifierKind.ALIAS),
            ("sales.team", IdentifierKind.ALIAS),
            ("all-staff_2024", IdentifierKind.ALIAS),
            ("Sales Team", IdentifierKind.NAME),
            ("alice@", IdentifierKind.NAME),
        ],
    )
    def test_classification(self, value, kind):
        assert classify_identifier(value) == kind


class TestIsValidAlias:
    """Tests for is_valid_alias."""

    @pytest.mark.parametrize("value", ["sales", "sales.team", "sales-team", "sales_team", "a1"])
    def test_valid(self, value):
        assert is_valid_alias(value) is True

    @pytest.mark.parametrize(
        "value", ["", None, "sales team", ".sales", "sales.", "sales..team", "a@b"]
    )
    def test_invalid(self, value):
        assert is_valid_alias(value) is False

    def test_too_long(self):
        assert is_valid_alias("a" * 64) is True
        assert is_valid_alias("a" * 65) is False


# =============================================================================
# Normalization and quoting
# =============================================================================


class TestNormalizeEmail:
    """Tests for normalize_email."""

    def test_lowercases_and_strips(self):
        assert normalize_email("  Alice@Contoso.COM ") == "alice@contoso.com"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_is_none(self, value):
        assert normalize_email(value) is None


class TestQuoting:
    """Tests for odata_quote and ps_quote."""

    def test_odata_quote_doubles_single_quotes(self):
        assert odata_quote("O'Brien") == "O''Brien"

    def test_odata_quote_leaves_plain_values(self):
        assert odata_quote("alice@contoso.com") == "alice@contoso.com"

    def test_ps_quote_doubles_single_quotes(self):
        assert ps_quote("Bob's List") == "Bob''s List"

    @given(value=st.text())
    def test_odata_quote_never_leaves_lone_quote(self, value):
        assert "'" not in odata_quote(value).replace("''", "")

    @given(value=st.text())
    def test_odata_quote_round_trips(self, value):
        assert odata_quote(value).replace("''", "'") == value


# =============================================================================
# Mail nickname generation
# =============================================================================


class TestMailNicknameFrom:
    """Tests for mail_nickname_from."""

    def test_removes_spaces_and_symbols(self):
        assert mail_nickname_from("Sales & Marketing Team!") == "SalesMarketingTeam"

    def test_keeps_allowed_punctuation(self):
        assert mail_nickname_from("ops-team_east.1") == "ops-team_east.1"

    def test_collapses_and_strips_dots(self):
        assert mail_nickname_from("..a..b..") == "a.b"

    def test_drops_non_ascii(self):
        assert mail_nickname_from("Café Team") == "CafTeam"

    def test_truncates_to_max_length(self):
        assert len(mail_nickname_from("x" * 100)) == 64

    @given(name=st.text(max_size=120))
    def test_result_is_empty_or_valid_alias(self, name):
        nickname = mail_nickname_from(name)
        assert nickname == "" or is_valid_alias(nickname)


class TestSmtpAddresses:
    """Tests for smtp_addresses."""

    def test_extracts_primary_and_secondary(self):
        proxies = [
            "SMTP:Alice@Contoso.com",
            "smtp:alice.smith@contoso.com",
            "X500:/o=ExchangeLabs/ou=Exchange",
            "SIP:alice@contoso.com",
        ]
        assert smtp_addresses(proxies) == ["alice@contoso.com", "alice.smith@contoso.com"]

    @pytest.mark.parametrize("value", [None, []])
    def test_empty(self, value):
        assert smtp_addresses(value) == []
