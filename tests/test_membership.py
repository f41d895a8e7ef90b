"""Tests for groupadmin.core.membership."""

import string

from hypothesis import given
from hypothesis import strategies as st

from groupadmin.core.membership import (
    BulkAddResult,
    is_member_identifier,
    member_key,
    plan_additions,
)

email_local = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=12)
email_domain = st.sampled_from(["contoso.com", "fabrikam.com"])
valid_email = st.builds(lambda local, domain: f"{local}@{domain}", email_local, email_domain)


class TestMemberKey:
    """Tests for member_key and is_member_identifier."""

    def test_member_key_normalizes(self):
        assert member_key("  Alice@Contoso.com ") == "alice@contoso.com"

    def test_member_key_empty(self):
        assert member_key("   ") == ""

    def test_email_is_member_identifier(self):
        assert is_member_identifier("alice@contoso.com")

    def test_object_id_is_member_identifier(self):
        assert is_member_identifier("3f2504e0-4f89-11d3-9a0c-0305e82c3301")

    def test_alias_is_not_member_identifier(self):
        assert not is_member_identifier("alice")


class TestPlanAdditions:
    """Tests for plan_additions."""

    def test_splits_new_and_existing(self):
        plan = plan_additions(
            ["alice@contoso.com", "bob@contoso.com"],
            current={"bob@contoso.com"},
        )

        assert plan.to_add == ["alice@contoso.com"]
        assert plan.already_members == ["bob@contoso.com"]

    def test_existing_match_is_case_insensitive(self):
        plan = plan_additions(["Bob@Contoso.com"], current={"bob@contoso.com"})

        assert plan.to_add == []
        assert plan.already_members == ["bob@contoso.com"]

    def test_duplicates_added_once(self):
        plan = plan_additions(
            ["alice@contoso.com", "ALICE@contoso.com", " alice@contoso.com "],
            current=set(),
        )

        assert plan.to_add == ["alice@contoso.com"]
        assert plan.duplicates == ["alice@contoso.com", "alice@contoso.com"]

    def test_invalid_rows_collected(self):
        plan = plan_additions(["not an email", "alice@contoso.com", "bob"], current=set())

        assert plan.invalid == ["not an email", "bob"]
        assert plan.to_add == ["alice@contoso.com"]

    def test_validation_can_be_disabled(self):
        plan = plan_additions(["bob"], current=set(), validate=False)

        assert plan.to_add == ["bob"]
        assert plan.invalid == []

    def test_blank_rows_ignored(self):
        plan = plan_additions(["", "   "], current=set())

        assert plan.to_add == []
        assert plan.invalid == []
        assert plan.duplicates == []

    def test_preserves_input_order(self):
        desired = ["carol@contoso.com", "alice@contoso.com", "bob@contoso.com"]

        plan = plan_additions(desired, current=set())

        assert plan.to_add == desired

    @given(desired=st.lists(valid_email, max_size=30), current=st.sets(valid_email, max_size=10))
    def test_every_row_accounted_for(self, desired, current):
        plan = plan_additions(desired, current)

        total = len(plan.to_add) + len(plan.already_members) + len(plan.duplicates)
        assert total == len(desired)
        assert plan.invalid == []

    @given(desired=st.lists(valid_email, max_size=30), current=st.sets(valid_email, max_size=10))
    def test_never_adds_existing_or_duplicates(self, desired, current):
        plan = plan_additions(desired, current)

        assert len(plan.to_add) == len(set(plan.to_add))
        assert not set(plan.to_add) & current
        assert set(plan.to_add) | set(plan.already_members) == set(desired)

    @given(desired=st.lists(valid_email, max_size=20))
    def test_replanning_after_adding_is_a_no_op(self, desired):
        first = plan_additions(desired, current=set())

        second = plan_additions(desired, current=set(first.to_add))

        assert second.to_add == []


class TestBulkAddResult:
    """Tests for BulkAddResult counters."""

    def test_skipped_counts_everything_not_attempted(self):
        result = BulkAddResult(
            added=["a@contoso.com"],
            skipped_existing=["b@contoso.com"],
            not_found=["c@contoso.com"],
            ambiguous=["d@contoso.com"],
            invalid=["e"],
        )

        assert result.skipped == 4
        assert not result.has_failures

    def test_has_failures(self):
        result = BulkAddResult(failed=["a@contoso.com"])

        assert result.has_failures
