"""Configuration management for the GitHub organization migration tool."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
import yaml
from dotenv import load_dotenv


PACKAGE_TYPES = ('npm', 'container', 'maven', 'gradle', 'nuget', 'rubygems')
IDP_GROUP_SUFFIX = '_IDP_GROUP'


class ConfigurationError(Exception):
    """Required configuration is missing or invalid."""

    pass


class GitHubInstanceConfig(BaseModel):
    """Configuration for one side (source or target) of the migration."""

    org: str = Field(..., description='Organization login')
    token: str = Field(..., description='Personal access token scoped to the org')
    api_url: str = Field(default='https://api.github.com', description='REST API base URL')
    graphql_url: Optional[str] = Field(
        default=None, description='GraphQL endpoint (derived from api_url if unset)'
    )
    server_url: str = Field(default='https://github.com', description='Git server URL')
    npm_registry_url: str = Field(
        default='https://npm.pkg.github.com', description='npm registry URL'
    )
    maven_registry_url: str = Field(
        default='https://maven.pkg.github.com', description='Maven registry URL'
    )
    container_registry: str = Field(default='ghcr.io', description='Container registry host')
    proxy: Optional[str] = Field(default=None, description='HTTPS proxy URL')
    timeout: int = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=10.0, description='API requests per second limit'
    )
    max_retry_wait: float = Field(
        default=900.0, description='Longest wait honoured before a rate-limit retry'
    )

    @field_validator('api_url', 'server_url', 'npm_registry_url', 'maven_registry_url')
    @classmethod
    def validate_url(cls, v):
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('org', 'token')
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('must not be empty')
        return v.strip()

    @field_validator('rate_limit_per_second', 'timeout')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('must be positive')
        return v

    @model_validator(mode='after')
    def derive_graphql_url(self):
        """GitHub.com serves GraphQL at /graphql, GHES at /api/graphql."""
        if not self.graphql_url:
            if self.api_url.endswith('/api/v3'):
                self.graphql_url = self.api_url[: -len('/v3')] + '/graphql'
            else:
                self.graphql_url = self.api_url + '/graphql'
        return self


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    dry_run: bool = Field(default=True, description='Perform dry run without changes')
    package_type: Optional[str] = Field(default=None, description='Package ecosystem')
    concurrency: int = Field(default=5, description='Download/upload batch size')

    staging_dir: str = Field(default='packages', description='Package staging directory')
    secrets_file: str = Field(
        default='secrets_to_migrate.csv', description='Secrets to migrate (CSV)'
    )
    secrets_report_file: str = Field(
        default='secrets_check_results.csv', description='Dry-run secrets discovery CSV'
    )
    username_mapping_file: Optional[str] = Field(
        default=None, description='Source to target username mapping CSV'
    )

    lfs_max_depth: int = Field(default=1, description='Directory depth searched for LFS')
    lfs_max_attempts: int = Field(default=10, description='Attempts per LFS content probe')
    lfs_retry_delay: float = Field(default=1.0, description='Delay between LFS probes')

    idp_groups: Dict[str, str] = Field(
        default_factory=dict, description='Team name to IdP group name'
    )
    idp_group_default: Optional[str] = Field(
        default=None, description='IdP group applied to teams without a mapping'
    )

    tool_timeout: int = Field(default=3600, description='External tool timeout in seconds')

    @field_validator('package_type')
    @classmethod
    def validate_package_type(cls, v):
        if v is not None and v not in PACKAGE_TYPES:
            raise ValueError(f'Package type must be one of: {list(PACKAGE_TYPES)}')
        return v

    @field_validator('concurrency', 'lfs_max_attempts', 'tool_timeout')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('must be positive')
        return v

    @field_validator('idp_groups')
    @classmethod
    def normalize_idp_keys(cls, v):
        return {team_env_key(name): group for name, group in v.items()}

    def idp_group_for(self, team_name: str) -> Optional[str]:
        """Look up the IdP group configured for a team."""
        return self.idp_groups.get(team_env_key(team_name), self.idp_group_default)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default='logs/migration.log', description='Log file path')
    format: Optional[str] = Field(default=None, description='Console log format')

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration object, built once at startup and passed around."""

    model_config = ConfigDict(extra='forbid')

    source: GitHubInstanceConfig = Field(..., description='Source organization')
    target: GitHubInstanceConfig = Field(..., description='Target organization')
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    @classmethod
    def build(
        cls, data: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None
    ) -> 'Config':
        """Validate raw configuration data merged with overrides.

        Raises:
            ConfigurationError: If required values are missing or invalid
        """
        merged = _deep_merge(
            cls._remove_none_values(data or {}),
            cls._remove_none_values(overrides or {}),
        )
        try:
            return cls(**merged)
        except ValidationError as e:
            problems = []
            for error in e.errors():
                location = '.'.join(str(part) for part in error['loc'])
                problems.append(f'{location}: {error["msg"]}')
            raise ConfigurationError(
                'Invalid or missing configuration: ' + '; '.join(problems)
            ) from e

    @classmethod
    def from_file(
        cls, config_path: str, overrides: Optional[Dict[str, Any]] = None
    ) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise ConfigurationError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls.build(config_data, overrides)

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> 'Config':
        """Load configuration from environment variables (and ``.env``)."""
        load_dotenv()
        return cls.build(cls.env_data(os.environ), overrides)

    @staticmethod
    def env_data(environ) -> Dict[str, Any]:
        """Map environment variables onto the configuration layout."""
        proxy = environ.get('HTTPS_PROXY') or environ.get('https_proxy')
        idp_groups, idp_default = _idp_groups_from_env(environ)

        config_data = {
            'source': {
                'org': environ.get('SOURCE_ORG'),
                'token': environ.get('SOURCE_TOKEN'),
                'api_url': environ.get('SOURCE_API_URL'),
                'server_url': environ.get('SOURCE_SERVER_URL'),
                'proxy': proxy,
            },
            'target': {
                'org': environ.get('TARGET_ORG'),
                'token': environ.get('TARGET_TOKEN'),
                'api_url': environ.get('TARGET_API_URL'),
                'server_url': environ.get('TARGET_SERVER_URL'),
                'proxy': proxy,
            },
            'migration': {
                'concurrency': environ.get('MAX_CONCURRENCY'),
                'lfs_max_depth': environ.get('MAX_DEPTH'),
                'idp_groups': idp_groups,
                'idp_group_default': idp_default,
            },
            'logging': {
                'level': environ.get('LOG_LEVEL'),
                'file': environ.get('LOG_FILE'),
            },
        }

        return config_data

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'source': {
                'org': 'source-org',
                'token': 'your-source-personal-access-token',
                'api_url': 'https://api.github.com',
                'timeout': 30,
            },
            'target': {
                'org': 'target-org',
                'token': 'your-target-personal-access-token',
                'api_url': 'https://api.github.com',
                'timeout': 30,
            },
            'migration': {
                'dry_run': True,
                'concurrency': 5,
                'staging_dir': 'packages',
                'secrets_file': 'secrets_to_migrate.csv',
                'username_mapping_file': None,
                'lfs_max_depth': 1,
                'idp_groups': {},
            },
            'logging': {
                'level': 'INFO',
                'file': 'logs/migration.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )


def team_env_key(team_name: str) -> str:
    """Normalize a team name the way IdP group environment entries are keyed."""
    return team_name.strip().upper().replace(' ', '_')


def _idp_groups_from_env(environ):
    groups = {}
    for key, value in environ.items():
        if key.endswith(IDP_GROUP_SUFFIX) and value:
            groups[key[: -len(IDP_GROUP_SUFFIX)]] = value

    default = None
    override = environ.get('IDP_GROUP_OVERRIDE')
    if override:
        values = [v.strip() for v in override.split(',') if v.strip()]
        if len(values) == 1 and '=' not in values[0]:
            default = values[0]
        else:
            for pair in values:
                team, _, group = pair.partition('=')
                if team and group:
                    groups[team_env_key(team)] = group.strip()

    return groups, default


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
