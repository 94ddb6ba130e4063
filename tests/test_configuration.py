"""Tests for layered configuration loading"""

import pytest

from studymate.core.configuration import (
    ConfigurationLoader,
    HostEnvironment,
    load_configuration,
    parse_command_line,
    resolve_content_root,
    resolve_environment,
)
from studymate.core.errors import ConfigurationError


class TestLoadConfiguration:
    """Test source precedence and document handling"""

    def test_environment_variable_overrides_primary_document(self, tmp_path, write_settings):
        """Env var ConnectionStrings__DefaultConnection wins over the primary document"""
        write_settings({"ConnectionStrings": {"DefaultConnection": "server=a"}})

        configuration = load_configuration(
            tmp_path,
            HostEnvironment.PRODUCTION,
            environ={"ConnectionStrings__DefaultConnection": "server=b"},
        )

        assert configuration.get_connection_string("DefaultConnection") == "server=b"

    def test_precedence_across_all_sources(self, tmp_path, write_settings):
        """primary < overlay < environment < command line"""
        write_settings({"Values": {"A": "primary", "B": "primary", "C": "primary", "D": "primary"}})
        write_settings({"Values": {"B": "overlay", "C": "overlay", "D": "overlay"}}, name="appsettings.Staging.json")

        configuration = load_configuration(
            tmp_path,
            HostEnvironment.STAGING,
            environ={"Values__C": "environment", "Values__D": "environment"},
            args=["--Values:D=command-line"],
        )

        assert configuration.get("Values:A") == "primary"
        assert configuration.get("Values:B") == "overlay"
        assert configuration.get("Values:C") == "environment"
        assert configuration.get("Values:D") == "command-line"

    def test_overlay_for_other_environment_is_ignored(self, tmp_path, write_settings):
        write_settings({"Logging": {"Level": "Warning"}})
        write_settings({"Logging": {"Level": "Debug"}}, name="appsettings.Development.json")

        configuration = load_configuration(tmp_path, HostEnvironment.PRODUCTION, environ={})

        assert configuration.get("Logging:Level") == "Warning"

    def test_missing_overlay_is_skipped(self, tmp_path, write_settings):
        write_settings({"Key": "value"})

        configuration = load_configuration(tmp_path, HostEnvironment.DEVELOPMENT, environ={})

        assert configuration.get("Key") == "value"

    def test_missing_primary_document_fails(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Required configuration file not found"):
            load_configuration(tmp_path, HostEnvironment.PRODUCTION, environ={})

    def test_malformed_json_fails(self, tmp_path):
        directory = tmp_path / "appsettings"
        directory.mkdir()
        (directory / "appsettings.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Malformed JSON"):
            load_configuration(tmp_path, HostEnvironment.PRODUCTION, environ={})

    def test_non_object_document_fails(self, tmp_path):
        directory = tmp_path / "appsettings"
        directory.mkdir()
        (directory / "appsettings.json").write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="must contain a JSON object"):
            load_configuration(tmp_path, HostEnvironment.PRODUCTION, environ={})


class TestConfiguration:
    """Test the read-only configuration surface"""

    def test_json_values_are_flattened(self, tmp_path, write_settings):
        write_settings({"Hosts": ["a", "b"], "Flag": True, "Port": 5000, "Empty": None})

        configuration = ConfigurationLoader(tmp_path).add_json_file("appsettings/appsettings.json").build()

        assert configuration.get("Hosts:0") == "a"
        assert configuration.get("Hosts:1") == "b"
        assert configuration.get("Flag") == "true"
        assert configuration.get("Port") == "5000"
        assert configuration.get("Empty") is None
        assert configuration.get("Empty", "fallback") == "fallback"

    def test_lookup_is_case_insensitive(self):
        configuration = ConfigurationLoader(".").add_environment_variables({"Server__Port": "8080"}).build()

        assert configuration.get("server:port") == "8080"
        assert configuration["SERVER:PORT"] == "8080"

    def test_later_source_wins_regardless_of_case(self):
        configuration = (
            ConfigurationLoader(".")
            .add_environment_variables({"Server__Port": "1"})
            .add_environment_variables({"SERVER__PORT": "2"})
            .build()
        )

        assert configuration.get("Server:Port") == "2"
        assert len(configuration) == 1

    def test_get_section(self):
        configuration = (
            ConfigurationLoader(".")
            .add_environment_variables(
                {
                    "ConnectionStrings__DefaultConnection": "server=a",
                    "ConnectionStrings__Reporting": "server=r",
                    "Other": "x",
                }
            )
            .build()
        )

        section = configuration.get_section("connectionstrings")

        assert sorted(section) == ["DefaultConnection", "Reporting"]
        assert section.get("reporting") == "server=r"
        assert section.path == "connectionstrings"
        assert not configuration.get_section("Missing")

    def test_connection_string_prefixed_variables(self):
        configuration = (
            ConfigurationLoader(".")
            .add_environment_variables({"MYSQLCONNSTR_Reporting": "server=r", "CUSTOMCONNSTR_Cache": "server=c"})
            .build()
        )

        assert configuration.get_connection_string("Reporting") == "server=r"
        assert configuration.get_connection_string("Cache") == "server=c"

    def test_configuration_is_read_only(self):
        configuration = ConfigurationLoader(".").add_environment_variables({"Key": "value"}).build()

        with pytest.raises(TypeError):
            configuration["Key"] = "other"  # type: ignore[index]

    def test_missing_key_raises_key_error(self):
        configuration = ConfigurationLoader(".").build()

        with pytest.raises(KeyError):
            configuration["Missing"]


class TestCommandLine:
    """Test command-line argument parsing"""

    def test_supported_forms(self):
        entries = parse_command_line(["--A=1", "--B", "2", "/C=3", "D=4", "--Section__Key=5"])

        assert entries == [("A", "1"), ("B", "2"), ("C", "3"), ("D", "4"), ("Section:Key", "5")]

    def test_value_may_contain_equals(self):
        assert parse_command_line(["--ConnectionStrings:DefaultConnection=server=a"]) == [
            ("ConnectionStrings:DefaultConnection", "server=a")
        ]

    def test_bare_argument_fails(self):
        with pytest.raises(ConfigurationError, match="Unrecognized"):
            parse_command_line(["serve"])

    def test_missing_value_fails(self):
        with pytest.raises(ConfigurationError, match="missing a value"):
            parse_command_line(["--Port"])


class TestHostEnvironment:
    """Test environment resolution"""

    def test_parse_is_case_insensitive(self):
        assert HostEnvironment.parse("development") is HostEnvironment.DEVELOPMENT
        assert HostEnvironment.parse(" STAGING ") is HostEnvironment.STAGING

    def test_parse_unknown_fails(self):
        with pytest.raises(ConfigurationError, match="Unknown environment"):
            HostEnvironment.parse("Qa")

    def test_default_is_production(self):
        environment = resolve_environment(environ={})

        assert environment is HostEnvironment.PRODUCTION
        assert environment.is_production
        assert not environment.is_development

    def test_environment_variable(self):
        assert resolve_environment(environ={"STUDYMATE_ENVIRONMENT": "Development"}).is_development

    def test_command_line_wins_over_environment_variable(self):
        environment = resolve_environment(
            environ={"STUDYMATE_ENVIRONMENT": "Development"},
            args=["--environment", "Staging"],
        )

        assert environment is HostEnvironment.STAGING

    def test_content_root(self, tmp_path):
        assert resolve_content_root(environ={}, args=[f"--contentRoot={tmp_path}"]) == tmp_path
        assert resolve_content_root(environ={"STUDYMATE_CONTENTROOT": str(tmp_path)}) == tmp_path
