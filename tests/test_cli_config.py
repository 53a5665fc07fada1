"""Tests for configuration loading, argument parsing and the CLI entry point."""

import json
from unittest.mock import MagicMock, patch

import pytest

import cli_config
from args import parse_args
from constants import Constants, ExitCodes
from errors import ConfigError, PackageNotFoundError, UpstreamUnavailableError
from mcp_validate import SchemaError, validate_input
import mcp_schemas
import nuscope

_TUNED = ("REGISTRY_URL_NUGET_V3", "PACKAGES_ROOT", "REQUEST_TIMEOUT", "TOOL_TIMEOUT_SEC", "SINGLE_FLIGHT",
          "QUERY_REQUIRES_ANALYZE", "ANALYSIS_CACHE_TTL_SEC")


@pytest.fixture(autouse=True)
def restore_constants(monkeypatch):
    """Keep Constants changes local to each test."""
    for name in _TUNED:
        monkeypatch.setattr(Constants, name, getattr(Constants, name))
    for key in cli_config.TUNABLES:
        monkeypatch.delenv(f"{Constants.ENV_PREFIX}{key.upper()}", raising=False)
    # main() writes the log level here
    monkeypatch.setenv(f"{Constants.ENV_PREFIX}LOG_LEVEL", "INFO")


class TestEnvOverrides:
    """Test NUSCOPE_* environment variables."""

    def test_values_are_converted(self):
        """Test numeric and boolean conversion."""
        cli_config.apply_env_overrides({
            "NUSCOPE_TOOL_TIMEOUT_SEC": "30",
            "NUSCOPE_SINGLE_FLIGHT": "false",
            "NUSCOPE_PACKAGES_ROOT": "/tmp/pkgs",
        })
        assert Constants.TOOL_TIMEOUT_SEC == 30.0
        assert Constants.SINGLE_FLIGHT is False
        assert Constants.PACKAGES_ROOT == "/tmp/pkgs"

    def test_invalid_value_is_logged_and_skipped(self):
        """Test a bad value keeps the default."""
        before = Constants.REQUEST_TIMEOUT
        with patch("cli_config.logger") as mock_logger:
            cli_config.apply_env_overrides({"NUSCOPE_REQUEST_TIMEOUT": "soon"})
        assert Constants.REQUEST_TIMEOUT == before
        mock_logger.warning.assert_called_once()


class TestConfigFile:
    """Test YAML and JSON config files."""

    def test_yaml_section(self, tmp_path):
        """Test the nuscope section of a YAML file."""
        path = tmp_path / "nuscope.yml"
        path.write_text("nuscope:\n  request_timeout: 5\n  query-requires-analyze: yes\n", encoding="utf-8")
        config = cli_config.load_config_file(str(path))
        cli_config.apply_config_file(config, str(path))
        assert Constants.REQUEST_TIMEOUT == 5.0
        assert Constants.QUERY_REQUIRES_ANALYZE is True

    def test_json_file(self, tmp_path):
        """Test a top-level JSON mapping."""
        path = tmp_path / "nuscope.json"
        path.write_text(json.dumps({"analysis_cache_ttl_sec": 60}), encoding="utf-8")
        cli_config.apply_config_file(cli_config.load_config_file(str(path)))
        assert Constants.ANALYSIS_CACHE_TTL_SEC == 60

    def test_unknown_keys_warn(self, tmp_path):
        """Test unknown keys are ignored with a warning."""
        with patch("cli_config.logger") as mock_logger:
            cli_config.apply_config_file({"colour": "blue"})
        mock_logger.warning.assert_called_once()

    @pytest.mark.parametrize("content", ["- a\n- b\n", "nuscope: [1, 2]\n", "key: [unclosed\n"])
    def test_malformed_files(self, tmp_path, content):
        """Test non-mapping and unparsable files raise ConfigError."""
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError):
            cli_config.load_config_file(str(path))

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError):
            cli_config.load_config_file(str(tmp_path / "nope.yaml"))

    def test_invalid_value_in_file(self):
        """Test conversion errors in a config file are fatal."""
        with pytest.raises(ConfigError):
            cli_config.apply_config_file({"single_flight": "maybe"})

    def test_cli_flags_win(self, tmp_path, monkeypatch):
        """Test precedence: env < file < CLI flags."""
        path = tmp_path / "nuscope.yaml"
        path.write_text("source: https://file.example/v3/index.json\npackages_root: /from/file\n", encoding="utf-8")
        monkeypatch.setenv("NUSCOPE_SOURCE", "https://env.example/v3/index.json")
        args = parse_args(["--config", str(path), "--packages-root", "/from/cli", "details", "Pkg"])
        cli_config.apply_config_overrides(args)
        assert Constants.REGISTRY_URL_NUGET_V3 == "https://file.example/v3/index.json"
        assert Constants.PACKAGES_ROOT == "/from/cli"

    def test_build_tools_uses_constants(self, monkeypatch):
        """Test the wiring picks up overridden values."""
        monkeypatch.setattr(Constants, "PACKAGES_ROOT", "/custom/root")
        monkeypatch.setattr(Constants, "SINGLE_FLIGHT", False)
        tools = cli_config.build_tools()
        assert tools.registry.packages_root == "/custom/root"
        assert tools.service.packages_root == "/custom/root"
        assert tools.service.single_flight is False


class TestArgs:
    """Test argument parsing."""

    def test_members_command(self):
        """Test the members subcommand options."""
        args = parse_args(["--loglevel", "DEBUG", "members", "Newtonsoft.Json", "-t", "JsonConvert",
                           "-f", "netstandard2.0", "--inherited", "--no-comments", "-k", "method"])
        assert args.COMMAND == "members"
        assert args.LOG_LEVEL == "DEBUG"
        assert args.TYPE_NAME == "JsonConvert"
        assert args.FRAMEWORK == "netstandard2.0"
        assert args.INHERITED is True
        assert args.COMMENT is False
        assert args.PUBLIC_ONLY is True
        assert args.MEMBER_KIND == "method"

    def test_types_defaults(self):
        """Test types subcommand defaults."""
        args = parse_args(["types", "Newtonsoft.Json"])
        assert (args.PATTERN, args.TYPE_KIND, args.MAX_RESULTS) == ("*", "*", Constants.TYPE_SEARCH_MAX_RESULTS)

    def test_mcp_command(self):
        """Test streamable HTTP options."""
        args = parse_args(["mcp", "--host", "127.0.0.1", "--port", "8765"])
        assert (args.MCP_HOST, args.MCP_PORT) == ("127.0.0.1", 8765)

    def test_command_is_required(self):
        """Test running without a subcommand fails."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestMain:
    """Test the CLI entry point exit codes."""

    def _run(self, argv, tools):
        with patch("nuscope.build_tools", return_value=tools), \
                patch("nuscope.apply_config_overrides"), \
                patch("nuscope.configure_logging"):
            with pytest.raises(SystemExit) as exc:
                nuscope.main(argv)
        return exc.value.code

    def test_success_prints_report(self, capsys):
        """Test the report goes to stdout."""
        tools = MagicMock()
        with patch("nuscope.run_command", return_value="Found 1 packages"):
            code = self._run(["search", "json"], tools)
        assert code == ExitCodes.SUCCESS.value
        assert "Found 1 packages" in capsys.readouterr().out

    def test_tool_error_exit_code(self):
        """Test expected failures map to TOOL_ERROR."""
        with patch("nuscope.run_command", side_effect=PackageNotFoundError("Nope")):
            assert self._run(["details", "Nope"], MagicMock()) == ExitCodes.TOOL_ERROR.value

    def test_connection_error_exit_code(self):
        """Test upstream failures map to CONNECTION_ERROR."""
        with patch("nuscope.run_command", side_effect=UpstreamUnavailableError("down")):
            assert self._run(["details", "Pkg"], MagicMock()) == ExitCodes.CONNECTION_ERROR.value

    def test_config_error_exit_code(self):
        """Test a broken config file maps to FILE_ERROR."""
        with patch("nuscope.apply_config_overrides", side_effect=ConfigError("bad")), \
                patch("nuscope.configure_logging"):
            with pytest.raises(SystemExit) as exc:
                nuscope.main(["details", "Pkg"])
        assert exc.value.code == ExitCodes.FILE_ERROR.value

    def test_query_commands_analyze_first(self):
        """Test members warms the cache before querying."""
        tools = MagicMock()
        args = parse_args(["members", "Pkg", "-t", "Widget", "-v", "1.0.0"])
        with patch("nuscope.NuscopeTools") as mock_cls:
            mock_cls.type_members.__wrapped__ = MagicMock(return_value="Members:")
            assert nuscope.run_command(args, tools) == "Members:"
        tools.service.resolve_and_analyze.assert_called_once_with(
            "Pkg", None, "1.0.0", None, Constants.QUERY_ASSEMBLY_EXTENSIONS)


class TestSchemaValidation:
    """Test JSON Schema validation of tool inputs."""

    def test_valid_input_passes(self):
        """Test optional values may be None."""
        validate_input(mcp_schemas.TYPE_MEMBERS_INPUT, {"packageId": "Pkg", "typeName": "T", "version": None})

    def test_first_error_is_reported(self):
        """Test the error names the offending field."""
        with pytest.raises(SchemaError) as exc:
            validate_input(mcp_schemas.SEARCH_TYPES_INPUT, {"packageId": "Pkg", "maxResults": -1})
        assert str(exc.value).startswith("Invalid input at 'maxResults'")

    def test_required_field(self):
        """Test a missing required field."""
        with pytest.raises(SchemaError):
            validate_input(mcp_schemas.TYPE_MEMBERS_INPUT, {"packageId": "Pkg"})
