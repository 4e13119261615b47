"""Configuration model of the server and a store that reloads it periodically."""

from __future__ import annotations

import enum
import logging
import re
import threading
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from datetime import timedelta
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

import yaml

from talaria.typeof import Type

logger = logging.getLogger(__name__)

# Field kinds recorded in dataclass field metadata under "kind".
SCALAR = "scalar"
OPTIONAL_SCALAR = "optional_scalar"
STRUCT = "struct"
OPTIONAL_STRUCT = "optional_struct"
LIST = "list"
MAP = "map"

# Document and environment names of the S3 credential fields.
_ACCESS_YAML = "accessKey"
_ACCESS_ENV = "ACCESSKEY"
_PRIVATE_YAML = "secretKey"
_PRIVATE_ENV = "SECRETKEY"


class ConfigError(ValueError):
    """Raised when a configuration document cannot be applied."""


class BadgerDefault(str, enum.Enum):
    """Preset tuning of the underlying key-value store."""

    STORAGE = "storage"
    INGESTION = "ingestion"
    DEFAULT = "default"

    def __str__(self) -> str:
        return self.value


def _spec(
    key: str,
    kind: str,
    target: Any,
    env: str | None = None,
    *,
    bits: int | None = None,
    unsigned: bool = False,
    default: Any = MISSING,
    factory: Any = MISSING,
) -> Any:
    metadata = {
        "key": key,
        "kind": kind,
        "target": target,
        "env": env,
        "bits": bits,
        "unsigned": unsigned,
    }
    return field(default=default, default_factory=factory, metadata=metadata)


# --------------------------------------------------------------------------------------------------


@dataclass
class K8s:
    """Kubernetes probe settings."""

    probe_port: int = _spec("probePort", SCALAR, int, "PROBEPORT", bits=32, default=0)


@dataclass
class Badger:
    """Tuning of the key-value store; unset values keep the store's defaults."""

    sync_writes: bool | None = _spec("syncWrites", OPTIONAL_SCALAR, bool, "SYNCWRITES", default=None)
    value_log_max_entries: int | None = _spec(
        "valueLogMaxEntries", OPTIONAL_SCALAR, int, "VALUELOGMAXENTRIES",
        bits=32, unsigned=True, default=None,
    )
    max_table_size: int | None = _spec(
        "maxTableSize", OPTIONAL_SCALAR, int, "MAXTABLESIZE", bits=64, default=None
    )
    level_one_size: int | None = _spec(
        "levelOneSize", OPTIONAL_SCALAR, int, "LEVELONESIZE", bits=64, default=None
    )
    level_size_multiplier: int | None = _spec(
        "levelSizeMultiplier", OPTIONAL_SCALAR, int, "LEVELSIZEMULTIPLIER", bits=64, default=None
    )
    max_levels: int | None = _spec("maxLevels", OPTIONAL_SCALAR, int, "MAXLEVELS", bits=64, default=None)
    default: BadgerDefault | str = _spec("default", SCALAR, BadgerDefault, "DEFAULT", default="")


@dataclass
class Storage:
    """Location and tuning of the local storage."""

    badger: Badger = _spec("badger", STRUCT, Badger, factory=Badger)
    directory: str = _spec("dir", SCALAR, str, "DIR", default="")


@dataclass
class Presto:
    """Presto reader settings."""

    port: int = _spec("port", SCALAR, int, "PORT", bits=32, default=0)
    schema: str = _spec("schema", SCALAR, str, "SCHEMA", default="")


@dataclass
class Readers:
    """Ways to read the data."""

    presto: Presto | None = _spec("presto", OPTIONAL_STRUCT, Presto, "PRESTO", default=None)


@dataclass
class GRPC:
    """gRPC ingress settings."""

    port: int = _spec("port", SCALAR, int, "PORT", bits=32, default=0)


@dataclass
class S3SQS:
    """S3 notifications delivered through SQS."""

    region: str = _spec("region", SCALAR, str, "REGION", default="")
    queue: str = _spec("queue", SCALAR, str, "QUEUE", default="")
    wait_timeout: int = _spec("waitTimeout", SCALAR, int, "WAITTIMEOUT", bits=64, default=0)
    visibility_timeout: int = _spec(
        "visibilityTimeout", SCALAR, int, "VISIBILITYTIMEOUT", bits=64, default=0
    )
    retries: int = _spec("retries", SCALAR, int, "RETRIES", bits=64, default=0)


@dataclass
class Writers:
    """Sources that write data."""

    grpc: GRPC | None = _spec("grpc", OPTIONAL_STRUCT, GRPC, "GRPC", default=None)
    s3sqs: S3SQS | None = _spec("s3sqs", OPTIONAL_STRUCT, S3SQS, "S3SQS", default=None)


@dataclass
class StatsD:
    """StatsD agent location."""

    host: str = _spec("host", SCALAR, str, "HOST", default="")
    port: int = _spec("port", SCALAR, int, "PORT", bits=64, default=0)


@dataclass
class ComputedSpec:
    """A computed column definition."""

    name: str = _spec("name", SCALAR, str, default="")
    type: Type = _spec("type", SCALAR, Type, default=Type.UNSUPPORTED)
    func: str = _spec("func", SCALAR, str, default="")


@dataclass
class S3Sink:
    """Sink for S3 and compatible stores."""

    region: str = _spec("region", SCALAR, str, "REGION", default="")
    bucket: str = _spec("bucket", SCALAR, str, "BUCKET", default="")
    prefix: str = _spec("prefix", SCALAR, str, "PREFIX", default="")
    endpoint: str = _spec("endpoint", SCALAR, str, "ENDPOINT", default="")
    sse: str = _spec("sse", SCALAR, str, "SSE", default="")
    access_key: str = _spec(_ACCESS_YAML, SCALAR, str, _ACCESS_ENV, factory=str)
    secret_key: str = _spec(_PRIVATE_YAML, SCALAR, str, _PRIVATE_ENV, factory=str)
    concurrency: int = _spec("concurrency", SCALAR, int, "CONCURRENCY", bits=64, default=0)


@dataclass
class AzureSink:
    """Sink for Azure blob storage."""

    container: str = _spec("container", SCALAR, str, "CONTAINER", default="")
    prefix: str = _spec("prefix", SCALAR, str, "PREFIX", default="")
    parallelism: int = _spec(
        "parallelism", SCALAR, int, "PARALLELISM", bits=16, unsigned=True, default=0
    )
    block_size: int = _spec("blockSize", SCALAR, int, "BLOCKSIZE", bits=64, default=0)
    blob_service_url: str = _spec("blobServiceURL", SCALAR, str, "BLOBSERVICEURL", default="")
    storage_accounts: list[str] = _spec(
        "storageAccounts", LIST, str, "STORAGEACCOUNTS", factory=list
    )
    storage_account_weights: list[int] = _spec(
        "storageAccountWeights", LIST, int, "STORAGEACCOUNTWEIGHTS",
        bits=64, unsigned=True, factory=list,
    )


@dataclass
class BigQuerySink:
    """Sink for a BigQuery table."""

    project: str = _spec("project", SCALAR, str, "PROJECT", default="")
    dataset: str = _spec("dataset", SCALAR, str, "DATASET", default="")
    table: str = _spec("table", SCALAR, str, "TABLE", default="")


@dataclass
class GCSSink:
    """Sink for Google Cloud Storage."""

    bucket: str = _spec("bucket", SCALAR, str, "BUCKET", default="")
    prefix: str = _spec("prefix", SCALAR, str, "PREFIX", default="")


@dataclass
class FileSink:
    """Sink for the local file system."""

    directory: str = _spec("dir", SCALAR, str, "DIR", default="")


@dataclass
class PubSubSink:
    """Stream to Google Pub/Sub."""

    project: str = _spec("project", SCALAR, str, "PROJECT", default="")
    topic: str = _spec("topic", SCALAR, str, "TOPIC", default="")
    filter: str = _spec("filter", SCALAR, str, "FILTER", default="")
    encoder: str = _spec("encoder", SCALAR, str, "ENCODER", default="")


@dataclass
class TalariaSink:
    """Sink for another server instance."""

    endpoint: str = _spec("endpoint", SCALAR, str, "ENDPOINT", default="")
    circuit_timeout: timedelta | None = _spec(
        "timeout", OPTIONAL_SCALAR, timedelta, "TIMEOUT", default=None
    )
    max_concurrent: int | None = _spec(
        "concurrency", OPTIONAL_SCALAR, int, "CONCURRENCY", bits=64, default=None
    )
    error_percent_threshold: int | None = _spec(
        "errorThreshold", OPTIONAL_SCALAR, int, "ERROR_THRESHOLD", bits=64, default=None
    )


@dataclass
class Sinks:
    """A set of writer sinks; each one is optional."""

    s3: S3Sink | None = _spec("s3", OPTIONAL_STRUCT, S3Sink, default=None)
    azure: AzureSink | None = _spec("azure", OPTIONAL_STRUCT, AzureSink, default=None)
    bigquery: BigQuerySink | None = _spec("bigquery", OPTIONAL_STRUCT, BigQuerySink, default=None)
    gcs: GCSSink | None = _spec("gcs", OPTIONAL_STRUCT, GCSSink, default=None)
    file: FileSink | None = _spec("file", OPTIONAL_STRUCT, FileSink, default=None)
    talaria: TalariaSink | None = _spec("talaria", OPTIONAL_STRUCT, TalariaSink, default=None)
    pubsub: PubSubSink | None = _spec("pubsub", OPTIONAL_STRUCT, PubSubSink, default=None)


@dataclass
class Compaction(Sinks):
    """Compaction settings; the sinks are given inline beside them."""

    encoder: str = _spec("encoder", SCALAR, str, default="")
    name_func: str = _spec("nameFunc", SCALAR, str, "NAMEFUNC", default="")
    interval: int = _spec("interval", SCALAR, int, "INTERVAL", bits=64, default=0)


@dataclass
class Table:
    """Settings of a time-series table."""

    ttl: int = _spec("ttl", SCALAR, int, "TTL", bits=64, default=0)
    hash_by: str = _spec("hashBy", SCALAR, str, "HASHBY", default="")
    sort_by: str = _spec("sortBy", SCALAR, str, "SORTBY", default="")
    schema: str = _spec("schema", SCALAR, str, "SCHEMA", default="")
    compact: Compaction | None = _spec("compact", OPTIONAL_STRUCT, Compaction, "COMPACT", default=None)
    streams: list[Sinks] = _spec("streams", LIST, Sinks, "STREAMS", factory=list)


@dataclass
class Config:
    """The whole server configuration."""

    uri: str = _spec("uri", SCALAR, str, "URI", default="")
    env: str = _spec("env", SCALAR, str, "ENV", default="")
    app_name: str = _spec("appName", SCALAR, str, "APPNAME", default="")
    domain: str = _spec("domain", SCALAR, str, "DOMAIN", default="")
    readers: Readers = _spec("readers", STRUCT, Readers, "READERS", factory=Readers)
    writers: Writers = _spec("writers", STRUCT, Writers, "WRITERS", factory=Writers)
    storage: Storage = _spec("storage", STRUCT, Storage, "STORAGE", factory=Storage)
    tables: dict[str, Table] = _spec("tables", MAP, Table, factory=dict)
    statsd: StatsD | None = _spec("statsd", OPTIONAL_STRUCT, StatsD, "STATSD", default=None)
    computed: list[ComputedSpec] = _spec("computed", LIST, ComputedSpec, "COMPUTED", factory=list)
    k8s: K8s | None = _spec("k8s", OPTIONAL_STRUCT, K8s, "K8S", default=None)

    def merge(self, data: Mapping[str, Any] | str | bytes | None) -> None:
        """Apply a YAML document or a decoded mapping on top of this configuration.

        Keys that are present overwrite, nested sections are merged, table entries and
        lists are replaced, and unknown keys are ignored.
        """
        if isinstance(data, (str, bytes, bytearray)):
            try:
                data = yaml.safe_load(data)
            except yaml.YAMLError as exc:
                raise ConfigError(f"config: invalid yaml: {exc}") from exc
        if data is None:
            return
        if not isinstance(data, Mapping):
            raise ConfigError(f"config: expected a mapping, got {type(data).__name__}")
        _merge_into(self, data, "")


# --------------------------------------------------------------------------------------------------

_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_DURATION_PART = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration(text: str) -> timedelta:
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total_ns = 0.0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if not match or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        total_ns += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return timedelta(microseconds=sign * total_ns / 1000)


def _where(path: str) -> str:
    return path or "<root>"


def _decode_int(raw: Any, meta: Mapping[str, Any], path: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigError(f"config: {_where(path)}: cannot use {raw!r} as an integer")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ConfigError(f"config: {_where(path)}: {raw!r} is not a whole number")
        raw = int(raw)
    bits = meta.get("bits")
    if meta.get("unsigned"):
        if raw < 0 or (bits and raw >= 1 << bits):
            raise ConfigError(f"config: {_where(path)}: {raw} is out of range")
    elif bits and not -(1 << (bits - 1)) <= raw < 1 << (bits - 1):
        raise ConfigError(f"config: {_where(path)}: {raw} is out of range")
    return raw


def _decode_scalar(raw: Any, meta: Mapping[str, Any], path: str) -> Any:
    target = meta["target"]
    if isinstance(raw, (Mapping, list)):
        raise ConfigError(f"config: {_where(path)}: expected a scalar value")
    if target is int:
        return _decode_int(raw, meta, path)
    if target is bool:
        if not isinstance(raw, bool):
            raise ConfigError(f"config: {_where(path)}: cannot use {raw!r} as a boolean")
        return raw
    text = ("true" if raw else "false") if isinstance(raw, bool) else str(raw)
    if target is str:
        return text
    if target is Type:
        return Type.from_text(text)
    if target is BadgerDefault:
        try:
            return BadgerDefault(text)
        except ValueError:
            return text
    if target is timedelta:
        if isinstance(raw, int) and not isinstance(raw, bool):
            return timedelta(microseconds=raw / 1000)
        try:
            return _parse_duration(text)
        except ValueError as exc:
            raise ConfigError(f"config: {_where(path)}: {exc}") from exc
    raise ConfigError(f"config: {_where(path)}: unsupported target {target!r}")


def _decode_struct(current: Any, raw: Any, cls: type, path: str) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise ConfigError(f"config: {_where(path)}: expected a mapping")
    target = current if current is not None else cls()
    _merge_into(target, raw, path)
    return target


def _default_of(f: Any) -> Any:
    if f.default is not MISSING:
        return f.default
    return f.default_factory()


def _decode_field(current: Any, raw: Any, f: Any, path: str) -> Any:
    meta = f.metadata
    kind, target = meta["kind"], meta["target"]
    if raw is None:
        return _default_of(f)
    if kind in (SCALAR, OPTIONAL_SCALAR):
        return _decode_scalar(raw, meta, path)
    if kind in (STRUCT, OPTIONAL_STRUCT):
        return _decode_struct(current, raw, target, path)
    if kind == LIST:
        if not isinstance(raw, list):
            raise ConfigError(f"config: {_where(path)}: expected a list")
        if is_dataclass(target):
            return [_decode_struct(None, item, target, f"{path}[{i}]") for i, item in enumerate(raw)]
        return [_decode_scalar(item, meta, f"{path}[{i}]") for i, item in enumerate(raw)]
    if kind == MAP:
        if not isinstance(raw, Mapping):
            raise ConfigError(f"config: {_where(path)}: expected a mapping")
        merged = dict(current or {})
        for name, item in raw.items():
            merged[str(name)] = _decode_struct(None, item, target, f"{path}.{name}")
        return merged
    raise ConfigError(f"config: {_where(path)}: unknown field kind {kind!r}")


def _merge_into(obj: Any, data: Mapping[str, Any], path: str) -> None:
    for f in fields(obj):
        key = f.metadata.get("key")
        if key is None or key not in data:
            continue
        child = f"{path}.{key}" if path else key
        setattr(obj, f.name, _decode_field(getattr(obj, f.name), data[key], f, child))


# --------------------------------------------------------------------------------------------------


@runtime_checkable
class Configurer(Protocol):
    """A source of configuration that fills in a Config, raising on failure."""

    def configure(self, config: Config) -> None:
        """Fill the configuration in place."""
        ...


def _seconds(interval: float | timedelta) -> float:
    seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
    if seconds <= 0:
        raise ValueError("config: the reload interval must be positive")
    return seconds


class ConfigStore:
    """Holds the current configuration and rebuilds it from its configurers.

    The store is callable and returns the current configuration.
    """

    def __init__(self, interval: float | timedelta, configurers: Iterable[Configurer]) -> None:
        self._interval = _seconds(interval)
        self._configurers = list(configurers)
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        try:
            self._config = self._value()
        except Exception as exc:
            raise ConfigError("unable to load config") from exc

    @property
    def config(self) -> Config:
        """The most recently loaded configuration."""
        return self._config

    def __call__(self) -> Config:
        return self._config

    def _value(self) -> Config:
        config = Config()
        for configurer in self._configurers:
            try:
                configurer.configure(config)
            except Exception as exc:
                logger.error("%r : error in loading config %s", configurer, exc)
                raise
        return config

    def reload(self) -> None:
        """Rebuild the configuration; on failure the previous one is kept and the error raised."""
        self._config = self._value()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self.reload()
            except Exception:  # keep watching; the error was logged
                continue

    def start(self) -> None:
        """Start reloading in the background at the configured interval."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name="config-reload", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the background reloading."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> "ConfigStore":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def load(interval: float | timedelta, *configurers: Configurer) -> ConfigStore:
    """Load the configuration from the configurers in order and keep reloading it.

    Later configurers override earlier ones. Returns the running store; call it to get
    the current configuration.
    """
    store = ConfigStore(interval, configurers)
    store.start()
    return store