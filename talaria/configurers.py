"""Configuration sources: built-in defaults, environment variables and remote documents."""

from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import fields
from datetime import timedelta
from typing import Any, Callable, Mapping

from talaria.config import (
    GRPC,
    OPTIONAL_SCALAR,
    OPTIONAL_STRUCT,
    SCALAR,
    STRUCT,
    BadgerDefault,
    Config,
    Presto,
    StatsD,
)

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+", re.ASCII)
_INT64_LIMIT = 1 << 63


class StaticConfigurer:
    """Resets the configuration and fills in the built-in defaults."""

    def configure(self, config: Config) -> None:
        """Reset every field, then set the default application name, ports and StatsD agent."""
        fresh = Config()
        for f in fields(config):
            setattr(config, f.name, getattr(fresh, f.name))

        config.app_name = "talaria"
        config.readers.presto = Presto(port=8042)
        config.writers.grpc = GRPC(port=8080)
        config.tables = {}
        config.statsd = StatsD(host="localhost", port=8125)


def _wrap(value: int, bits: int) -> int:
    mask = (1 << bits) - 1
    value &= mask
    return value - (1 << bits) if value >> (bits - 1) else value


def _convert(raw: str, meta: Mapping[str, Any]) -> Any:
    """Convert an environment value to the field's type; raise ValueError if it cannot."""
    target = meta["target"]
    if target is str:
        return raw
    if target is BadgerDefault:
        try:
            return BadgerDefault(raw)
        except ValueError:
            return raw
    if target is bool:
        return raw.upper() == "TRUE"
    if target in (int, timedelta):
        if meta.get("unsigned"):
            raise ValueError("env: unsupported type")
        if not _INTEGER.fullmatch(raw):
            raise ValueError("env: unable to convert the type")
        value = int(raw)
        if not -_INT64_LIMIT <= value < _INT64_LIMIT:
            raise ValueError("env: unable to convert the type")
        if target is timedelta:
            return timedelta(microseconds=value / 1000)
        bits = meta.get("bits")
        return _wrap(value, bits) if bits and bits < 64 else value
    if target is float:
        try:
            return float(raw)
        except ValueError:
            raise ValueError("env: unable to convert the type") from None
    raise ValueError("env: unsupported type")


def _has_prefix(environ: Mapping[str, str], prefix: str) -> bool:
    return any(f"{name}={value}".startswith(prefix) for name, value in environ.items())


def _populate(obj: Any, prefix: str, environ: Mapping[str, str]) -> None:
    for f in fields(obj):
        name = f.metadata.get("env")
        if name is None:
            continue
        kind = f.metadata["kind"]
        path = f"{prefix}_{name}"
        current = getattr(obj, f.name)

        if kind == STRUCT:
            _populate(current, path, environ)
        elif kind == OPTIONAL_STRUCT:
            if current is not None:
                _populate(current, path, environ)
            elif _has_prefix(environ, path):
                created = f.metadata["target"]()
                _populate(created, path, environ)
                setattr(obj, f.name, created)
        elif kind in (SCALAR, OPTIONAL_SCALAR):
            raw = environ.get(path)
            if raw is None:
                continue
            try:
                setattr(obj, f.name, _convert(raw, f.metadata))
            except ValueError:
                continue
        # Lists and maps cannot be set from individual variables.


class EnvConfigurer:
    """Reads the configuration from environment variables under a key.

    If the variable named by the key itself is set, it holds a whole YAML document.
    Otherwise each field is read from KEY_SECTION_FIELD, e.g. TALARIA_READERS_PRESTO_PORT.
    """

    def __init__(self, key: str, environ: Mapping[str, str] | None = None) -> None:
        self.key = key
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        """The environment consulted, os.environ unless another mapping was given."""
        return os.environ if self._environ is None else self._environ

    def configure(self, config: Config) -> None:
        """Apply the environment on top of the configuration."""
        environ = self.environ
        document = environ.get(self.key)
        if document is not None:
            config.merge(document)
            return
        _populate(config, self.key, environ)

    def __repr__(self) -> str:
        return f"EnvConfigurer({self.key!r})"


class RemoteConfigurer:
    """Downloads a YAML document from the configuration URI and applies it."""

    def __init__(
        self,
        download: Callable[[str], bytes | str],
        log: logging.Logger | None = None,
    ) -> None:
        self._download = download
        self.log = log or logger
        self._lock = threading.Lock()

    def configure(self, config: Config) -> None:
        """Apply the document found at config.uri; a failed download is logged and skipped."""
        with self._lock:
            if not config.uri:
                return
            try:
                document = self._download(config.uri)
            except Exception as exc:
                self.log.warning("error in downloading config from %s: %s", config.uri, exc)
                return
            config.merge(document)

    def __repr__(self) -> str:
        return "RemoteConfigurer()"