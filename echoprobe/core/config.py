"""
Configuration management for EchoProbe.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional

import toml

from .timing import HEADER_SIZE

DEFAULT_PORT = 9000
DEFAULT_INTERVAL = 30.0
DEFAULT_TIMEOUT = 2.0
DEFAULT_PAYLOAD_SIZE = 10
DEFAULT_BUFFER_SIZE = 2048
DEFAULT_POLL_INTERVAL = 0.5

PROTOCOLS = ("udp", "tcp")


@dataclass
class ReflectorConfig:
    """Reflector configuration settings."""
    protocol: str = "udp"
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    buffer_size: int = DEFAULT_BUFFER_SIZE
    poll_interval: float = DEFAULT_POLL_INTERVAL


@dataclass
class ProbeWorkerConfig:
    """Probe worker configuration settings.

    Zero or ``None`` fields are treated as unset and are filled in by
    :meth:`with_defaults`. A worker expects a fully populated config.
    """
    target: str = ""
    port: int = 0
    interval: float = 0
    timeout: float = 0
    payload_size: int = 0
    protocol: str = ""

    def with_defaults(self, defaults: Optional['ProbeWorkerConfig'] = None) -> 'ProbeWorkerConfig':
        """Return a copy with every unset field replaced by its default."""
        base = defaults or ProbeWorkerConfig(
            port=DEFAULT_PORT,
            interval=DEFAULT_INTERVAL,
            timeout=DEFAULT_TIMEOUT,
            payload_size=DEFAULT_PAYLOAD_SIZE,
            protocol="udp",
        )
        return replace(
            self,
            port=self.port or base.port,
            interval=self.interval or base.interval,
            timeout=self.timeout or base.timeout,
            payload_size=self.payload_size or base.payload_size,
            protocol=self.protocol or base.protocol,
        )


@dataclass
class ReflectorSection:
    """Settings shared by the reflectors started with the agent."""
    host: str
    port: int
    protocols: List[str]
    buffer_size: int
    poll_interval: float

    def for_protocol(self, protocol: str) -> ReflectorConfig:
        return ReflectorConfig(
            protocol=protocol,
            port=self.port,
            host=self.host,
            buffer_size=self.buffer_size,
            poll_interval=self.poll_interval,
        )


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "INFO"
    file: str = ""
    max_size: int = 10
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration class."""
    reflector: ReflectorSection
    worker: ProbeWorkerConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> 'Config':
        """Build the built-in configuration without reading a file."""
        return cls(
            reflector=ReflectorSection(
                host="0.0.0.0",
                port=DEFAULT_PORT,
                protocols=list(PROTOCOLS),
                buffer_size=DEFAULT_BUFFER_SIZE,
                poll_interval=DEFAULT_POLL_INTERVAL,
            ),
            worker=ProbeWorkerConfig().with_defaults(),
            logging=LoggingConfig(),
        )

    @classmethod
    def from_file(cls, config_path: Path) -> 'Config':
        """Load configuration from TOML file."""
        try:
            config_data = toml.load(config_path)
        except Exception as e:
            raise ValueError(f"Failed to load configuration: {e}")
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: dict) -> 'Config':
        """Build configuration from an already parsed mapping."""
        try:
            reflector = ReflectorSection(
                host=config_data['reflector']['host'],
                port=config_data['reflector']['port'],
                protocols=list(config_data['reflector']['protocols']),
                buffer_size=config_data['reflector'].get('buffer_size', DEFAULT_BUFFER_SIZE),
                poll_interval=config_data['reflector'].get('poll_interval', DEFAULT_POLL_INTERVAL),
            )

            worker = ProbeWorkerConfig(
                port=config_data['worker']['port'],
                interval=config_data['worker']['interval'],
                timeout=config_data['worker']['timeout'],
                payload_size=config_data['worker']['payload_size'],
                protocol=config_data['worker'].get('protocol', 'udp'),
            ).with_defaults()

            logging_config = LoggingConfig(
                level=config_data['logging']['level'],
                file=config_data['logging']['file'],
                max_size=config_data['logging']['max_size'],
                backup_count=config_data['logging']['backup_count'],
            )

        except KeyError as e:
            raise ValueError(f"Missing required configuration key: {e}")

        return cls(reflector=reflector, worker=worker, logging=logging_config)

    def validate(self) -> bool:
        """Validate configuration values."""
        if not 0 <= self.reflector.port <= 65535:
            raise ValueError(f"Reflector port {self.reflector.port} out of range")

        for protocol in self.reflector.protocols:
            if protocol not in PROTOCOLS:
                raise ValueError(f"Unknown reflector protocol: {protocol}")

        if self.reflector.buffer_size <= 0:
            raise ValueError("Reflector buffer size must be positive")

        if self.reflector.poll_interval <= 0:
            raise ValueError("Reflector poll interval must be positive")

        validate_worker_config(self.worker)
        return True


def validate_worker_config(config: ProbeWorkerConfig) -> None:
    """Raise ``ValueError`` if a populated worker config is unusable."""
    if not 0 < config.port <= 65535:
        raise ValueError(f"Worker port {config.port} out of range")

    if config.interval <= 0 or config.timeout <= 0:
        raise ValueError("Worker interval and timeout must be positive")

    if config.payload_size < HEADER_SIZE:
        raise ValueError(
            f"Payload size {config.payload_size} is smaller than the "
            f"{HEADER_SIZE}-byte timestamp header"
        )

    if config.protocol not in PROTOCOLS:
        raise ValueError(f"Unknown worker protocol: {config.protocol}")
