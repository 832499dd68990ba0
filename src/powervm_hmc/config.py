"""Configuration and setup of HMC connections."""

import json
import logging
import os
import pathlib
import sys
from typing import TextIO

import prometheus_client.core
import pydantic
import structlog

from .hmcrestapi import DEFAULT_TIMEOUT, Connection
from .metrics import HmcClientCollector

CONFIG_ENV_VAR = "HMC_CLIENT_CONFIG_PATH"
logger = structlog.get_logger(__name__)


class ClientConfig(pydantic.BaseModel):
    """Configuration of an HMC connection."""

    host: str = pydantic.Field(description="Host name of the HMC")
    username: str = pydantic.Field("hscroot", description="HMC user name")
    password: pydantic.SecretStr | None = pydantic.Field(
        None,
        description="HMC user password",
    )
    password_file: str | None = pydantic.Field(
        None,
        description="Path to file containing the HMC user password",
    )
    port: int = pydantic.Field(12443, description="REST API port", gt=0, lt=65536)
    validate_ssl: bool = pydantic.Field(True, description="Verify TLS certificates")
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    retries: int = pydantic.Field(0, description="Connect retries", ge=0)
    job_timeout: float = pydantic.Field(
        120.0,
        description="Seconds to wait for synchronous jobs",
        gt=0,
    )
    job_poll_interval: float = pydantic.Field(
        0.0,
        description="Seconds between job status polls (0 means auto)",
        ge=0,
    )
    modify_attempts: int = pydantic.Field(
        5,
        description="Attempts of ETag-guarded updates",
        ge=1,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.model_validator(mode="after")
    def check_password_source(self) -> "ClientConfig":
        if (self.password is None) == (self.password_file is None):
            msg = "exactly one of password and password_file must be set"
            raise ValueError(msg)
        return self

    def resolve_password(self) -> str:
        """Return the password, reading password_file if needed.

        Raises:
            FileNotFoundError: If password_file does not exist.
        """
        if self.password is not None:
            return self.password.get_secret_value()
        path = pathlib.Path(self.password_file)
        if not path.exists():
            msg = f"Password file not found: {self.password_file}"
            raise FileNotFoundError(msg)
        return path.read_text().strip()


def configure_logging(log_level_name: str, stream: TextIO | None = None) -> None:
    """Configure structlog for logfmt output.

    Args:
        log_level_name: Name of the minimum level (e.g., "DEBUG").
        stream: Where log lines go. Defaults to stderr so that the output of
            a host application on stdout stays clean.
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg", "host"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str | pathlib.Path) -> ClientConfig:
    """Load an HMC client configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a JSON object.
        pydantic.ValidationError: If a setting is missing or invalid.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"HMC client configuration not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            msg = f"HMC client configuration {path} is not valid JSON: {e}"
            raise ValueError(msg) from e
    if not isinstance(data, dict):
        msg = f"HMC client configuration {path} must be a JSON object"
        raise ValueError(msg)

    config = ClientConfig(**data)
    logger.debug("Loaded HMC client configuration", path=str(path), host=config.host)
    return config


def create_connection(config: ClientConfig) -> Connection:
    """Construct a connection from validated config. Does not log on."""
    conn = Connection(
        host=config.host,
        password=config.resolve_password(),
        username=config.username,
        port=config.port,
        validate_ssl=config.validate_ssl,
        timeout=config.timeout,
        retries=config.retries,
        job_timeout=config.job_timeout,
        job_poll_interval=config.job_poll_interval,
        modify_attempts=config.modify_attempts,
    )
    logger.info("Created HMC connection", host=conn.hostname, username=config.username)
    return conn


def create_registry(conn: Connection) -> prometheus_client.core.CollectorRegistry:
    """Create a Prometheus registry exporting the statistics of a connection.

    A custom registry is created; the global one is left untouched.
    """
    registry = prometheus_client.core.CollectorRegistry()
    registry.register(HmcClientCollector(conn.stats, conn.hostname))
    return registry


def connection_from_env(config_path: str | None = None) -> Connection:
    """Create a connection using a config path or the environment default."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "/config.json")
    config = load_config(resolved_path)
    configure_logging(config.log_level)
    return create_connection(config)
