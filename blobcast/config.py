"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import json

from dotenv import load_dotenv

# Identifiers of the file transfer service and its characteristic
SERVICE_UUID = '12345678-1234-5678-1234-56789abcdef0'
CHARACTERISTIC_UUID = '12345678-1234-5678-1234-56789abcdef1'


@dataclass
class Config:
    """
    Peripheral Configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (BLOBCAST_*)
    2. Config file (config.json)
    3. Default values
    """
    # Served blob
    file_path: Path = field(default_factory=lambda: Path('./files/blob.bin'))

    # Network (TCP peripheral emulation)
    host: str = '0.0.0.0'
    port: int = 8470

    # Transfer
    max_payload_size: int = 20  # default ATT MTU (23) minus 3 bytes of header

    # Timeouts (seconds)
    transfer_timeout: float = 30.0

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        file_path = os.getenv('BLOBCAST_FILE')
        if file_path:
            config.file_path = Path(file_path)

        # Network
        config.host = os.getenv('BLOBCAST_HOST', config.host)
        config.port = int(os.getenv('BLOBCAST_PORT', config.port))

        # Transfer
        config.max_payload_size = int(os.getenv('BLOBCAST_MTU', config.max_payload_size))
        config.transfer_timeout = float(
            os.getenv('BLOBCAST_TRANSFER_TIMEOUT', config.transfer_timeout)
        )

        # Logging
        config.log_level = os.getenv('BLOBCAST_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        if 'file_path' in data:
            config.file_path = Path(data['file_path'])

        # Network
        config.host = data.get('host', config.host)
        config.port = data.get('port', config.port)

        # Transfer
        config.max_payload_size = data.get('max_payload_size', config.max_payload_size)
        config.transfer_timeout = data.get('transfer_timeout', config.transfer_timeout)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'file_path': str(self.file_path),
            'host': self.host,
            'port': self.port,
            'max_payload_size': self.max_payload_size,
            'transfer_timeout': self.transfer_timeout,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = Config()

    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for key in ['file_path', 'host', 'port', 'max_payload_size',
                'transfer_timeout', 'log_level']:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "file_path": "./files/music.mp3",
  "host": "0.0.0.0",
  "port": 8470,
  "max_payload_size": 20,
  "transfer_timeout": 30.0,
  "log_level": "INFO"
}
"""
