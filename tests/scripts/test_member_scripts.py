"""Tests for the group-add-member, group-bulk-add and group-export-members scripts."""

import csv
import logging
from unittest.mock import AsyncMock, patch

import pytest

from groupadmin.core.constants import EXPORT_COLUMNS, ExitCode
from groupadmin.entra.groups import EntraGroup, GroupMember
from groupadmin.entra.users import EntraUser
from groupadmin.scripts.add_member import run_add_member
from groupadmin.scripts.bulk_add_members import run_bulk_add
from groupadmin.scripts.export_members import run_export


def _group(mail=None, mail_enabled=False, security=True):
    return EntraGroup(
        id="group-1",
        display_name="Ops Team",
        description=None,
        mail=mail,
        mail_enabled=mail_enabled,
        security_enabled=security,
        group_types=[],
    )


def _users_by_mail(users: dict[str, EntraUser]):
    """Mock user manager whose primary mail query finds the given users."""
    manager = AsyncMock()

    async def query_users(filter_expr, advanced=False):
        for mail, user in users.items():
            if filter_expr == f"mail eq '{mail}'":
                return [user]
        return []

    manager.query_users.side_effect = query_users
    manager.get_user.return_value = None
    return manager


ALICE = EntraUser(id="alice-id", display_name="Alice", email="alice@contoso.com", upn=None)
CAROL = EntraUser(id="carol-id", display_name="Carol", email="carol@contoso.com", upn=None)
BOB = GroupMember("bob-id", "Bob", "bob@contoso.com", "bob@contoso.com", "user")


@pytest.fixture
def patched(request):
    """Patch the managers and Exchange client in a script module."""
    module = request.param

    with (
        patch(f"groupadmin.scripts.{module}.EntraGroupManager") as groups_cls,
        patch(f"groupadmin.scripts.{module}.EntraUserManager") as users_cls,
        patch(f"groupadmin.scripts.{module}.ExchangeOnlineClient") as exchange_cls,
    ):
        groups = AsyncMock()
        groups.find_groups.return_value = [_group()]
        groups.search_groups.return_value = []
        groups.get_group_members.return_value = [BOB]
        groups.add_member.return_value = True
        groups_cls.return_value = groups

        users_cls.return_value = _users_by_mail(
            {"alice@contoso.com": ALICE, "carol@contoso.com": CAROL}
        )

        exchange = AsyncMock()
        exchange.add_distribution_group_member.return_value = True
        exchange_cls.return_value = exchange

        yield groups, users_cls, exchange_cls


# =============================================================================
# group-add-member
# =============================================================================


class TestRunAddMember:
    """Tests for run_add_member."""

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_adds_member(self, patched):
        groups, _, _ = patched

        code = await run_add_member("Ops Team", "alice@contoso.com")

        assert code == ExitCode.SUCCESS
        groups.add_member.assert_awaited_once_with("group-1", "alice-id")

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    @pytest.mark.parametrize("member", ["alice", "Alice Smith", "alice@", ""])
    async def test_invalid_member_rejected_before_any_remote_call(self, patched, member):
        groups, users_cls, exchange_cls = patched

        code = await run_add_member("Ops Team", member)

        assert code == ExitCode.VALIDATION
        groups.find_groups.assert_not_called()
        users_cls.assert_not_called()
        exchange_cls.assert_not_called()

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_already_member_is_success(self, patched):
        groups, _, _ = patched

        code = await run_add_member("Ops Team", "BOB@contoso.com")

        assert code == ExitCode.SUCCESS
        groups.add_member.assert_not_called()

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_member_not_found(self, patched):
        groups, _, _ = patched

        code = await run_add_member("Ops Team", "ghost@contoso.com")

        assert code == ExitCode.NOT_FOUND
        groups.add_member.assert_not_called()

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_group_not_found(self, patched):
        groups, _, _ = patched
        groups.find_groups.return_value = []

        assert await run_add_member("Missing", "alice@contoso.com") == ExitCode.NOT_FOUND

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_add_failure(self, patched):
        groups, _, _ = patched
        groups.add_member.return_value = False

        assert await run_add_member("Ops Team", "alice@contoso.com") == ExitCode.FAILURE

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_distribution_list_uses_exchange(self, patched):
        groups, _, exchange_cls = patched
        groups.find_groups.return_value = [
            _group(mail="ops@contoso.com", mail_enabled=True, security=False)
        ]

        code = await run_add_member("ops@contoso.com", "alice@contoso.com")

        assert code == ExitCode.SUCCESS
        exchange_cls.return_value.add_distribution_group_member.assert_awaited_once_with(
            "ops@contoso.com", "alice@contoso.com"
        )
        groups.add_member.assert_not_called()

    @pytest.mark.parametrize("patched", ["add_member"], indirect=True)
    async def test_dry_run(self, patched):
        groups, _, _ = patched

        code = await run_add_member("Ops Team", "alice@contoso.com", dry_run=True)

        assert code == ExitCode.SUCCESS
        groups.add_member.assert_not_called()


# =============================================================================
# group-bulk-add
# =============================================================================


class TestRunBulkAdd:
    """Tests for run_bulk_add."""

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_adds_new_members_once(self, patched, members_csv):
        groups, _, _ = patched
        path = members_csv(
            "Name,Email\n"
            "Alice,alice@contoso.com\n"
            "Alice again,ALICE@contoso.com\n"
            "Bob,bob@contoso.com\n"
            "Carol,carol@contoso.com\n"
        )

        code = await run_bulk_add("Ops Team", path)

        assert code == ExitCode.SUCCESS
        added = [c.args[1] for c in groups.add_member.await_args_list]
        assert added == ["alice-id", "carol-id"]
        groups.get_group_members.assert_awaited_once()

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_invalid_and_unknown_rows_skipped(self, patched, members_csv, caplog):
        groups, _, _ = patched
        path = members_csv("alice@contoso.com\nnot an email\nghost@contoso.com\n")

        with caplog.at_level(logging.INFO):
            code = await run_bulk_add("Ops Team", path)

        assert code == ExitCode.SUCCESS
        groups.add_member.assert_awaited_once_with("group-1", "alice-id")
        assert "Skipped: 2" in caplog.text

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_any_failed_addition_fails_run(self, patched, members_csv):
        groups, _, _ = patched
        groups.add_member.side_effect = [False, True]
        path = members_csv("alice@contoso.com\ncarol@contoso.com\n")

        code = await run_bulk_add("Ops Team", path)

        assert code == ExitCode.FAILURE
        assert groups.add_member.await_count == 2

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_missing_file(self, patched, tmp_path):
        groups, _, _ = patched

        code = await run_bulk_add("Ops Team", tmp_path / "missing.csv")

        assert code == ExitCode.VALIDATION
        groups.find_groups.assert_not_called()

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_missing_column(self, patched, members_csv):
        path = members_csv("Name,Email\nAlice,alice@contoso.com\n")

        assert await run_bulk_add("Ops Team", path, column="Mail") == ExitCode.VALIDATION

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_empty_file(self, patched, members_csv):
        path = members_csv("Email\n")

        assert await run_bulk_add("Ops Team", path) == ExitCode.VALIDATION

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_group_not_found(self, patched, members_csv):
        groups, _, _ = patched
        groups.find_groups.return_value = []
        path = members_csv("alice@contoso.com\n")

        assert await run_bulk_add("Missing", path) == ExitCode.NOT_FOUND

    @pytest.mark.parametrize("patched", ["bulk_add_members"], indirect=True)
    async def test_dry_run(self, patched, members_csv):
        groups, _, _ = patched
        path = members_csv("alice@contoso.com\n")

        code = await run_bulk_add("Ops Team", path, dry_run=True)

        assert code == ExitCode.SUCCESS
        groups.add_member.assert_not_called()


# =============================================================================
# group-export-members
# =============================================================================


@pytest.fixture
def export_groups():
    with patch("groupadmin.scripts.export_members.EntraGroupManager") as mock:
        instance = AsyncMock()
        instance.find_groups.return_value = [_group()]
        instance.get_group_members.return_value = [
            GroupMember("u2", "Zoe", "zoe@contoso.com", "zoe@contoso.com", "user"),
            BOB,
            GroupMember("g3", "Nested", None, None, "group"),
        ]
        mock.return_value = instance
        yield instance


class TestRunExport:
    """Tests for run_export."""

    async def test_writes_csv_sorted_by_name(self, export_groups, tmp_path):
        output = tmp_path / "members.csv"

        code = await run_export("Ops Team", output)

        assert code == ExitCode.SUCCESS
        with output.open(newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            rows = list(reader)
        assert reader.fieldnames == EXPORT_COLUMNS
        assert [r["DisplayName"] for r in rows] == ["Bob", "Nested", "Zoe"]
        assert rows[1]["ObjectType"] == "group"
        assert rows[1]["Email"] == ""

    async def test_prints_table(self, export_groups, capsys):
        code = await run_export("Ops Team")

        assert code == ExitCode.SUCCESS
        out = capsys.readouterr().out
        assert "Members (3)" in out
        assert "zoe@contoso.com" in out

    async def test_transitive(self, export_groups, tmp_path):
        await run_export("Ops Team", tmp_path / "members.csv", transitive=True)

        export_groups.get_group_members.assert_awaited_once_with("group-1", transitive=True)

    async def test_group_not_found(self, export_groups):
        export_groups.find_groups.return_value = []

        assert await run_export("Missing") == ExitCode.NOT_FOUND

    async def test_unwritable_output(self, export_groups, tmp_path):
        output = tmp_path / "no-such-dir" / "members.csv"

        assert await run_export("Ops Team", output) == ExitCode.FAILURE
