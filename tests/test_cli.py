"""Tests for the command-line interface."""

import json

import pytest
from pullchain import ConfigError, FilterSpec, TerminalPolicy
from pullchain.cli import build_config, create_parser, main, parse_filter, parse_header


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    """Keep CLI runs from reconfiguring the package logger."""
    monkeypatch.setattr("pullchain.cli.setup_logging", lambda **kwargs: None)


class TestParsing:
    """Tests for argument helpers."""

    def test_filter_name_only(self):
        """Test a bare filter name."""
        assert parse_filter("title") == FilterSpec(name="title")

    def test_filter_with_params(self):
        """Test JSON params after '='."""
        spec = parse_filter('select={"selector": "h2"}')
        assert spec.name == "select"
        assert spec.params == {"selector": "h2"}

    def test_filter_bad_json(self):
        """Test that invalid JSON params raise ConfigError."""
        with pytest.raises(ConfigError):
            parse_filter("select={selector}")

    def test_header(self):
        """Test header parsing keeps colons in the value."""
        assert parse_header("Referer: http://example.com") == ("Referer", "http://example.com")

    @pytest.mark.parametrize("value", ["no-colon", ": value"])
    def test_header_invalid(self, value):
        """Test malformed headers."""
        with pytest.raises(ConfigError):
            parse_header(value)


class TestBuildConfig:
    """Tests for combining config files with arguments."""

    def test_arguments(self):
        """Test a config built purely from arguments."""
        args = create_parser().parse_args(
            ["README.md", "-f", "uppercase", "-H", "User-Agent: foo", "--timeout", "5", "--continue-after-terminal"]
        )

        config = build_config(args)

        assert config.locator == "README.md"
        assert [f.name for f in config.filters] == ["uppercase"]
        assert config.options.headers == {"User-Agent": "foo"}
        assert config.options.timeout == 5.0
        assert config.terminal_policy == TerminalPolicy.CONTINUE

    def test_arguments_extend_config_file(self, tmp_path):
        """Test that command-line filters append to the file's filters."""
        path = tmp_path / "pipeline.yaml"
        path.write_text("locator: a.txt\nname: from-file\nfilters:\n  - name: strip\n")

        config = build_config(create_parser().parse_args(["--config", str(path), "b.txt", "-f", "uppercase", "-v"]))

        assert config.locator == "b.txt"
        assert config.name == "from-file"
        assert [f.name for f in config.filters] == ["strip", "uppercase"]
        assert config.log_level == "DEBUG"

    def test_no_locator(self):
        """Test that a locator or config is required."""
        with pytest.raises(ConfigError):
            build_config(create_parser().parse_args([]))


class TestMain:
    """Tests for the main entry point."""

    def test_json_output(self, tmp_path, capsys):
        """Test a successful local run printed as JSON."""
        path = tmp_path / "README.md"
        path.write_text("hello")

        code = main([str(path), "-f", "uppercase", "--json"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["state"] == "done"
        assert output["results"] == [{"type": "uppercase", "data": "HELLO"}]

    def test_rich_output(self, tmp_path, capsys):
        """Test the default rendering of results."""
        path = tmp_path / "README.md"
        path.write_text("hello")

        assert main([str(path), "-f", "uppercase"]) == 0
        assert "HELLO" in capsys.readouterr().out

    def test_missing_file(self, tmp_path):
        """Test that a failed fetch exits with 1."""
        assert main([str(tmp_path / "missing.txt"), "--json"]) == 1

    def test_no_locator(self):
        """Test that missing arguments exit with 2."""
        assert main([]) == 2

    def test_unknown_filter(self, tmp_path):
        """Test that an unknown filter is a configuration error."""
        path = tmp_path / "README.md"
        path.write_text("hello")
        assert main([str(path), "-f", "no_such_filter"]) == 2
