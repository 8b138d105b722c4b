# src/gpukube/core/config.py

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from gpukube.utils.duration_utils import parse_duration, parse_optional_duration

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

# Directory where a ConfigMap may be mounted, one file per key.
CONFIG_DIR = "/etc/gpukube/config"


class Config:
    """
    Handles the application's configuration by loading values from mounted
    config files or environment variables.
    """

    def __init__(self):
        # --- Logging variables ---
        self.LOG_LEVEL = self._get_setting("LOG_LEVEL", "INFO")

        # --- Collection variables ---
        self.COLLECTION_INTERVAL_MS = int(self._get_setting("COLLECTION_INTERVAL_MS", "30000"))
        self.METRICS_RESET_INTERVAL = self._get_setting("METRICS_RESET_INTERVAL", "1m")
        self.DUTY_CYCLE_WINDOW = self._get_setting("DUTY_CYCLE_WINDOW", "10s")
        # Unset means device queries are never cut short.
        self.DEVICE_QUERY_TIMEOUT = self._get_setting("DEVICE_QUERY_TIMEOUT")

        # --- Exposition variables ---
        self.METRICS_HOST = self._get_setting("METRICS_HOST", "0.0.0.0")
        self.METRICS_PORT = int(self._get_setting("METRICS_PORT", "2112"))
        self.METRICS_PATH = self._get_setting("METRICS_PATH", "/metrics")

        # --- Kubernetes variables ---
        self.NODE_NAME = self._get_setting("NODE_NAME")
        self.GPU_RESOURCE_NAME = self._get_setting("GPU_RESOURCE_NAME", "nvidia.com/gpu")

    @staticmethod
    def _get_setting(key: str, default: str = None) -> Optional[str]:
        """
        Retrieves a setting from a file (mounted ConfigMap) or falls back to environment variable.

        Raises:
            PermissionError: If the config file exists but cannot be read due to permissions.
            IOError: If the config file exists but cannot be read due to I/O errors.
        """
        config_file = f"{CONFIG_DIR}/{key}"
        if os.path.exists(config_file):
            try:
                with open(config_file, "r") as f:
                    value = f.read().strip()
                    logging.getLogger(__name__).debug(f"Loaded setting '{key}' from {config_file}")
                    return value
            except PermissionError as e:
                raise PermissionError(
                    f"Config file '{config_file}' exists but cannot be read due to permission denied. "
                    f"Please check file permissions or run with appropriate privileges."
                ) from e
            except (IOError, OSError) as e:
                raise IOError(
                    f"Config file '{config_file}' exists but cannot be read: {e}. "
                    f"Please check the file integrity and system resources."
                ) from e
        return os.getenv(key, default)

    @property
    def reset_interval_seconds(self) -> float:
        return parse_duration(self.METRICS_RESET_INTERVAL)

    @property
    def duty_cycle_window_seconds(self) -> float:
        return parse_duration(self.DUTY_CYCLE_WINDOW)

    @property
    def device_query_timeout_seconds(self) -> Optional[float]:
        return parse_optional_duration(self.DEVICE_QUERY_TIMEOUT)

    def validate_instance(self):
        if self.COLLECTION_INTERVAL_MS <= 0:
            raise ValueError("COLLECTION_INTERVAL_MS must be a positive number of milliseconds.")
        if not 0 < self.METRICS_PORT < 65536:
            raise ValueError("METRICS_PORT must be between 1 and 65535.")
        if not self.METRICS_PATH.startswith("/"):
            raise ValueError("METRICS_PATH must start with '/'.")
        # parse_duration raises ValueError on malformed durations.
        parse_duration(self.METRICS_RESET_INTERVAL)
        parse_duration(self.DUTY_CYCLE_WINDOW)
        parse_optional_duration(self.DEVICE_QUERY_TIMEOUT)
        if not self.NODE_NAME:
            logging.warning("NODE_NAME is not set; pods from every node will be considered.")


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
