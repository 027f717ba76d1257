import os
import tomllib
from dataclasses import dataclass, replace

from ghproxy.guard import DEFAULT_ALLOWED_HOSTS

LOG_LEVELS = ("debug", "info", "warn", "error", "none")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 8080
    # MB; larger declared downloads are refused with 413
    size_limit_mb: int = 2048
    log_file: str = "./logs/ghproxy.log"
    max_log_size_mb: int = 5
    log_level: str = "info"
    # seconds; None waits on the upstream indefinitely
    upstream_timeout: int | None = None
    allowed_hosts: frozenset = DEFAULT_ALLOWED_HOSTS

    @property
    def size_limit_bytes(self):
        return self.size_limit_mb * 1024 * 1024


def _int(name, value):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if number < 0:
        raise ConfigError(f"{name} must not be negative, got {number}")
    return number


def _level(value):
    level = str(value).lower()
    if level not in LOG_LEVELS:
        raise ConfigError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
    return level


def _from_toml(data):
    server = data.get("server", {})
    log = data.get("log", {})
    values = {}
    if "host" in server:
        values["host"] = str(server["host"])
    if "port" in server:
        values["port"] = _int("server.port", server["port"])
    if "sizeLimit" in server:
        values["size_limit_mb"] = _int("server.sizeLimit", server["sizeLimit"])
    if "timeout" in server:
        values["upstream_timeout"] = _int("server.timeout", server["timeout"]) or None
    if "logFilePath" in log:
        values["log_file"] = str(log["logFilePath"])
    if "maxLogSize" in log:
        values["max_log_size_mb"] = _int("log.maxLogSize", log["maxLogSize"])
    if "level" in log:
        values["log_level"] = _level(log["level"])
    return values


def _from_env(environ):
    values = {}
    if environ.get("GHPROXY_HOST"):
        values["host"] = environ["GHPROXY_HOST"]
    if environ.get("GHPROXY_PORT"):
        values["port"] = _int("GHPROXY_PORT", environ["GHPROXY_PORT"])
    if environ.get("GHPROXY_SIZE_LIMIT"):
        values["size_limit_mb"] = _int("GHPROXY_SIZE_LIMIT", environ["GHPROXY_SIZE_LIMIT"])
    if environ.get("GHPROXY_LOG_LEVEL"):
        values["log_level"] = _level(environ["GHPROXY_LOG_LEVEL"])
    return values


def load_config(path="config.toml", environ=None):
    """Build the read-only configuration from a TOML file and the environment.

    A missing file is not an error: defaults apply. Environment variables
    take precedence over the file.
    """
    environ = os.environ if environ is None else environ
    config = Config()
    if path and os.path.exists(path):
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid config file {path}: {e}")
        config = replace(config, **_from_toml(data))
    return replace(config, **_from_env(environ))
