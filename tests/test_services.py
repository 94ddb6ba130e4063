"""Tests for service composition"""

import pytest
from fastapi import FastAPI

from studymate.api.controllers import ControllerRegistry
from studymate.api.docs import EndpointMetadataProvider, SchemaGenerator
from studymate.bootstrap import compose_services
from studymate.core.config import AppSettings, load_settings
from studymate.core.configuration import Configuration, ConfigurationLoader
from studymate.core.container import ServiceCollection
from studymate.core.errors import ConfigurationError, ContainerBuildError, VersionParseError
from studymate.db import DatabaseContextFactory, ServerType
from studymate.middleware.authorization import AuthorizationOptions


def configuration_from(environ: dict[str, str]) -> Configuration:
    return ConfigurationLoader(".").add_environment_variables(environ).build()


def compose(environ: dict[str, str], **kwargs) -> ServiceCollection:
    configuration = configuration_from(environ)
    return compose_services(configuration, load_settings(configuration), **kwargs)


class TestComposeServices:
    """Test compose_services registrations and failures"""

    def test_registers_all_capabilities(self):
        services = compose({"ConnectionStrings__DefaultConnection": "Server=db"})

        for key in (
            Configuration,
            AppSettings,
            ControllerRegistry,
            AuthorizationOptions,
            EndpointMetadataProvider,
            SchemaGenerator,
            DatabaseContextFactory,
        ):
            assert key in services
        assert not services.is_built

    def test_environment_connection_string_is_used(self, tmp_path, write_settings):
        """Primary document says server=a, the environment says server=b"""
        write_settings({"ConnectionStrings": {"DefaultConnection": "server=a"}})
        configuration = (
            ConfigurationLoader(tmp_path)
            .add_json_file("appsettings/appsettings.json")
            .add_environment_variables({"ConnectionStrings__DefaultConnection": "server=b"})
            .build()
        )
        services = compose_services(configuration, load_settings(configuration))
        services.add_instance(FastAPI, FastAPI())

        factory = services.build().get(DatabaseContextFactory)

        assert factory.url.host == "b"
        assert factory.url.drivername == "mysql+aiomysql"
        assert factory.server_version.server_type is ServerType.MYSQL

    def test_no_database_connection_is_made(self):
        services = compose({"ConnectionStrings__DefaultConnection": "Server=unreachable.invalid"})
        services.add_instance(FastAPI, FastAPI())

        factory = services.build().get(DatabaseContextFactory)

        assert not factory.is_initialized

    @pytest.mark.parametrize("environ", [{}, {"ConnectionStrings__DefaultConnection": ""}, {"ConnectionStrings__DefaultConnection": "  "}])
    def test_missing_or_empty_connection_string_fails(self, environ):
        services = ServiceCollection()

        with pytest.raises(ConfigurationError, match="'DefaultConnection' is missing or empty"):
            compose(environ, services=services)
        assert DatabaseContextFactory not in services

    def test_connection_name_is_configurable(self):
        services = compose(
            {
                "Database__ConnectionName": "Reporting",
                "ConnectionStrings__Reporting": "Server=reports",
            }
        )
        services.add_instance(FastAPI, FastAPI())

        assert services.build().get(DatabaseContextFactory).url.host == "reports"

    def test_malformed_connection_string_fails(self):
        with pytest.raises(ConfigurationError, match="does not specify a server"):
            compose({"ConnectionStrings__DefaultConnection": "Database=studymate"})

    def test_unparsable_server_version_fails(self):
        with pytest.raises(VersionParseError):
            compose({"ConnectionStrings__DefaultConnection": "Server=db"}, server_version="eight")

    def test_mariadb_server_version_selects_driver(self):
        services = compose({"ConnectionStrings__DefaultConnection": "Server=db"}, server_version="10.11.2-mariadb")
        services.add_instance(FastAPI, FastAPI())

        assert services.build().get(DatabaseContextFactory).url.drivername == "mariadb+aiomysql"

    def test_second_invocation_fails(self):
        environ = {"ConnectionStrings__DefaultConnection": "Server=db"}
        services = compose(environ)

        with pytest.raises(ContainerBuildError, match="already registered"):
            compose(environ, services=services)

    def test_build_requires_application(self):
        services = compose({"ConnectionStrings__DefaultConnection": "Server=db"})

        with pytest.raises(ContainerBuildError, match="EndpointMetadataProvider -> FastAPI"):
            services.build()

    def test_policies_are_registered(self):
        services = compose(
            {"ConnectionStrings__DefaultConnection": "Server=db"},
            policies={"admin": lambda user: True},
        )
        services.add_instance(FastAPI, FastAPI())

        options = services.build().get(AuthorizationOptions)

        assert options.has_policy("admin")
        assert not options.has_policy("owner")
