"""Database configuration loader with connection-string and profile support."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from psycopg2 import ProgrammingError
from psycopg2.extensions import make_dsn, parse_dsn

DEFAULT_MUTATION_LIMIT = 1000

_URI_CREDENTIALS_RE = re.compile(r'(postgres(?:ql)?://[^:/@\s]*:)([^@\s]*)(@)', re.IGNORECASE)
_PASSWORD_RE = re.compile(r"""(password\s*=\s*)('(?:[^'\\]|\\.)*'|[^\s&]*)""", re.IGNORECASE)

# libpq sslmode values asyncpg understands as its ``ssl`` argument
_SSL_MODES = {'disable', 'allow', 'prefer', 'require', 'verify-ca', 'verify-full'}


def redact_secrets(text: Any) -> str:
    """Mask passwords in any text that may echo connection configuration."""
    text = str(text)
    text = _URI_CREDENTIALS_RE.sub(r'\1***\3', text)
    return _PASSWORD_RE.sub(r'\1***', text)


def redact_connection_string(conn_str: str) -> str:
    """Sanitize connection string for logging (hide password)."""
    return redact_secrets(conn_str)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid {name} value: {raw}")


class DatabaseProfile:
    """A named connection profile from the YAML configuration file."""

    def __init__(self, name: str, config: Dict[str, Any]):
        self.name = name
        self.config = config or {}
        self.enabled = self.config.get('enabled', True)
        self.uri = self.config.get('uri') or self.config.get('connection_string', '')
        self.description = self.config.get('description', '')
        self.connection_options = self.config.get('connection_options', {}) or {}


class DatabaseConfig:
    """Connection settings for the PostgreSQL endpoint.

    The connection string is resolved in priority order: explicit argument,
    ``POSTGRES_CONNECTION_STRING``, ``DATABASE_URI``, a YAML profile, then the
    individual ``DB_*`` environment variables.
    """

    def __init__(self, connection_string: Optional[str] = None, profile_name: Optional[str] = None):
        load_dotenv()

        self.profile: Optional[DatabaseProfile] = None
        self.source = 'argument'
        self.connection_string = connection_string or self._resolve_connection_string(profile_name)

        try:
            self.params = parse_dsn(self.connection_string)
        except ProgrammingError:
            raise ValueError(
                f"Invalid connection string: {redact_connection_string(self.connection_string)}"
            ) from None

        options = self.profile.connection_options if self.profile else {}
        self.connect_timeout = int(options.get('connect_timeout', _env_int('DB_CONNECT_TIMEOUT', 10)))
        self.query_timeout = int(options.get('query_timeout', _env_int('DB_QUERY_TIMEOUT', 30)))
        self.pool_min_size = int(options.get('pool_min_size', _env_int('DB_POOL_MIN_SIZE', 1)))
        self.pool_max_size = int(options.get('pool_max_size', _env_int('DB_POOL_MAX_SIZE', 5)))
        self.mutation_limit = _env_int('PG_MCP_MUTATION_LIMIT', DEFAULT_MUTATION_LIMIT)

        self.validate()

    def _resolve_connection_string(self, profile_name: Optional[str]) -> str:
        for env_name in ('POSTGRES_CONNECTION_STRING', 'DATABASE_URI'):
            if os.getenv(env_name):
                self.source = env_name
                return os.getenv(env_name)

        profile = self._load_profile(profile_name or os.getenv('DATABASE_PROFILE'))
        if profile:
            self.profile = profile
            self.source = f"profile:{profile.name}"
            return profile.uri

        self.source = 'environment'
        settings = {
            'host': os.getenv('DB_HOST', 'localhost'),
            'port': _env_int('DB_PORT', 5432),
            'dbname': os.getenv('DB_DATABASE', 'postgres'),
            'user': os.getenv('DB_USER', 'postgres'),
        }
        if os.getenv('DB_PASSWORD'):
            settings['password'] = os.getenv('DB_PASSWORD')
        return make_dsn(**settings)

    def _load_profile(self, profile_name: Optional[str]) -> Optional[DatabaseProfile]:
        """Load a profile from the YAML file named by DATABASES_CONFIG."""
        config_path = os.getenv('DATABASES_CONFIG', 'config/databases.yaml')
        possible_paths = [
            Path(config_path),
            Path(__file__).parent.parent.parent / 'config' / 'databases.yaml'
        ]

        for path in possible_paths:
            try:
                with open(path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except FileNotFoundError:
                continue
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid database configuration file {path}: {e}")

            databases = config_data.get('databases', {}) or {}
            name = profile_name or config_data.get('default_profile')
            if not name:
                return None
            if name not in databases:
                raise ValueError(f"Database profile '{name}' not found in configuration")
            profile = DatabaseProfile(name, databases[name])
            if not profile.enabled:
                raise ValueError(f"Database profile '{name}' is disabled")
            if not profile.uri:
                raise ValueError(f"Database profile '{name}' has no uri")
            return profile

        if profile_name:
            raise ValueError(f"Database profile '{profile_name}' requested but no configuration file found")
        return None

    @property
    def host(self) -> str:
        return self.params.get('host') or 'localhost'

    @property
    def port(self) -> int:
        return int(self.params.get('port') or 5432)

    @property
    def user(self) -> str:
        return self.params.get('user') or os.getenv('PGUSER') or 'postgres'

    @property
    def database(self) -> str:
        return self.params.get('dbname') or self.user

    @property
    def password(self) -> Optional[str]:
        return self.params.get('password')

    def validate(self):
        """Validate numeric settings."""
        try:
            port = self.port
        except ValueError:
            raise ValueError(f"Invalid port value: {self.params.get('port')}")
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port value: {port}")
        if self.pool_min_size < 0 or self.pool_max_size < 1 or self.pool_min_size > self.pool_max_size:
            raise ValueError(
                f"Invalid pool size: min={self.pool_min_size}, max={self.pool_max_size}"
            )
        if self.mutation_limit < 0:
            raise ValueError(f"Invalid PG_MCP_MUTATION_LIMIT value: {self.mutation_limit}")

    def to_pool_kwargs(self) -> Dict[str, Any]:
        """Arguments for ``asyncpg.create_pool``."""
        kwargs = {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'database': self.database,
            'min_size': self.pool_min_size,
            'max_size': self.pool_max_size,
            'timeout': self.connect_timeout,
            'command_timeout': self.query_timeout,
            'server_settings': {'application_name': 'pg-mcp-server'},
        }
        if self.password:
            kwargs['password'] = self.password
        sslmode = self.params.get('sslmode')
        if sslmode in _SSL_MODES:
            kwargs['ssl'] = sslmode
        return kwargs

    def describe(self) -> Dict[str, Any]:
        """Connection details that are safe to echo back to callers."""
        return {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'source': self.source,
            'connection_string': redact_connection_string(self.connection_string)
        }
