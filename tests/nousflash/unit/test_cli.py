"""Tests for the click CLI."""

from click.testing import CliRunner

from nousflash.cli import main


class TestCli:
    def test_help_lists_commands(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "consolidate", "init-db"):
            assert command in result.output

    def test_missing_config_file(self, tmp_path):
        result = CliRunner().invoke(main, ["--config", str(tmp_path / "missing.toml"), "run"])
        assert result.exit_code == 2

    def test_config_default_is_relative_to_working_directory(self):
        result = CliRunner().invoke(main, ["--help"])
        help_text = " ".join(result.output.split())
        assert "configs/nousflash.toml relative to the working directory" in help_text
