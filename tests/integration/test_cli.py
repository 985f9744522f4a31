"""Integration tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from timelinemeta import __version__, cli as cli_module
from timelinemeta.cli import cli
from timelinemeta.models.media import MediaRecord
from timelinemeta.models.result import PreviewResult, ResultStatus
from timelinemeta.models.update import ChangeSet, UpdateCandidate


class StubService:
    """Service double returning one change per record."""

    instances = []
    commit_status = ResultStatus.CHANGED

    def __init__(self):
        self.calls = []
        self.closed = False
        StubService.instances.append(self)

    @classmethod
    def from_config(cls, config, store):
        return cls()

    async def process_bulk_update(self, records, options, on_progress=None, is_preview=True):
        self.calls.append(([r.id for r in records], options, is_preview))
        if not is_preview and self.commit_status != ResultStatus.CHANGED:
            return [PreviewResult(record, status=self.commit_status) for record in records]
        results = []
        for record in records:
            change_set = ChangeSet(
                candidate=UpdateCandidate(title=record.display_name),
                description="New plot",
                source="OMDB",
            )
            results.append(
                PreviewResult(record, change_set=change_set, has_changes=True, status=ResultStatus.CHANGED)
            )
        return results

    async def close(self):
        self.closed = True


@pytest.fixture
def patched_cli(monkeypatch, make_store):
    """Replace the repository and provider wiring with in-memory doubles."""
    store = make_store([MediaRecord(id=1, display_name="Dune"), MediaRecord(id=2, display_name="Heat")])

    async def close():
        pass

    store.close = close
    StubService.instances = []
    monkeypatch.setattr(cli_module, "SenseNetContentStore", lambda config: store)
    monkeypatch.setattr(cli_module, "MediaUpdateService", StubService)
    return store


class TestCli:
    """Test CLI commands."""

    def test_version(self):
        """Should print the version."""
        result = CliRunner().invoke(cli, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_preview(self, patched_cli):
        """Should list proposed changes without applying them."""
        result = CliRunner().invoke(cli, ["preview", "1", "2", "--overwrite", "--no-covers", "--source", "tmdb"])

        assert result.exit_code == 0, result.output
        assert "Dune: description (OMDB)" in result.output
        assert "2 of 2 item(s) would be updated" in result.output
        [(ids, options, is_preview)] = StubService.instances[0].calls
        assert ids == [1, 2] and is_preview
        assert options.only_missing is False
        assert options.update_cover_images is False
        assert [p.value for p in options.preferred_sources] == ["tmdb"]
        assert StubService.instances[0].closed

    def test_apply_with_prompts(self, patched_cli):
        """Should apply only the items confirmed at the prompt."""
        result = CliRunner().invoke(cli, ["apply", "1", "2"], input="y\nn\n")

        assert result.exit_code == 0, result.output
        commits = [ids for ids, _, is_preview in StubService.instances[0].calls if not is_preview]
        assert commits == [[1]]
        assert "Updated:  1" in result.output

    def test_apply_yes(self, patched_cli):
        """Should accept default approvals with --yes."""
        result = CliRunner().invoke(cli, ["apply", "1", "2", "--yes"])

        assert result.exit_code == 0, result.output
        assert "Updated:  2" in result.output

    def test_missing_config_file(self, tmp_path):
        """Should reject a config path that does not exist."""
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "version"])

        assert result.exit_code != 0

    def test_apply_rate_limited_not_reported_as_updated(self, patched_cli, monkeypatch):
        """Should list throttled commits as skipped rather than updated."""
        monkeypatch.setattr(StubService, "commit_status", ResultStatus.RATE_LIMITED)

        result = CliRunner().invoke(cli, ["apply", "1", "--yes"])

        assert result.exit_code == 0, result.output
        assert "Updated:  0" in result.output
        assert "Skipped:  1" in result.output
        assert "Dune: rate limited, not updated" in result.output
