"""Tests for the operational CLI."""

from payroll_approvals.cli import ApprovalsCli


class TestApprovalsCli:
    """Test command dispatch against a scratch SQLite file."""

    def test_no_command_prints_help(self, capsys):
        assert ApprovalsCli().run([]) == 1
        assert "backfill-roles" in capsys.readouterr().out

    def test_init_db_then_backfill(self, tmp_path, capsys):
        url = f"sqlite+aiosqlite:///{tmp_path}/cli.db"
        cli = ApprovalsCli()

        assert cli.run(["--database-url", url, "init-db"]) == 0
        assert cli.run(["--database-url", url, "backfill-roles", "--dry-run"]) == 0

        out = capsys.readouterr().out
        assert "Schema created." in out
        assert "[DRY RUN] 0 account(s) updated." in out
