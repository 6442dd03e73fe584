import dataclasses
import json
import logging
import logging.config
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from logging import Logger
from pathlib import Path
from typing import Any

"""
Structured logging for the relay.

Events are dotted names ("relay.submitted") with keyword context:

    log_info(logger, "relay.start", assets=[...])

init_logging() reads a JSON file of named profiles, merges the chosen profile
over "default" and installs console / file handlers through dictConfig.
Every record carries a `context` dict; ContextFilter stamps run_id and mode
on it, JsonFormatter writes one JSON object per line.
"""

DEFAULT_LOG_CONFIG = "configs/logging.json"
DEFAULT_FILE_TEMPLATE = "artifacts/logs/{mode}-{run_id}.jsonl"

# ---------------------------------------------------------------------
# Log categories
# ---------------------------------------------------------------------

CATEGORY_SOURCE_READ = "source_read"
CATEGORY_DECISION = "decision_trace"
CATEGORY_SUBMISSION = "submission"
CATEGORY_HEARTBEAT = "health_heartbeat"


@dataclass
class _LogState:
    configured: bool = False
    level: int = logging.INFO
    debug_enabled: bool = False
    debug_modules: frozenset[str] = field(default_factory=frozenset)
    run_id: str | None = None
    mode: str | None = None


_STATE = _LogState()


def _merge_profile(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = _merge_profile(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def _section(cfg: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = cfg.get(key)
    return value if isinstance(value, dict) else {}


def _load_profile(path: Path, mode: str | None) -> tuple[str, dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    profiles = raw.get("profiles", {})
    if not isinstance(profiles, dict):
        raise TypeError(f"{path.name}: 'profiles' must be an object")

    name = str(mode or raw.get("active_profile") or "default")
    if name not in profiles:
        raise KeyError(f"logging profile not found: {name}")
    return name, _merge_profile(_section(profiles, "default"), _section(profiles, name))


def _handler(kind: str, cfg: Mapping[str, Any], *, level: str, formatter: str, **extra: Any) -> dict[str, Any]:
    return {
        "class": kind,
        "level": str(cfg.get("level", level)).upper(),
        "formatter": formatter,
        "filters": ["context"],
        **extra,
    }


def _build_dict_config(profile: dict[str, Any], *, run_id: str | None, mode: str) -> dict[str, Any]:
    level = str(profile.get("level", "INFO")).upper()
    formatter = "json" if _section(profile, "format").get("json", True) else "standard"
    handlers_cfg = _section(profile, "handlers")
    console = _section(handlers_cfg, "console")
    logfile = _section(handlers_cfg, "file")

    handlers: dict[str, Any] = {}
    if console.get("enabled", True):
        handlers["console"] = _handler(
            "logging.StreamHandler", console, level=level, formatter=formatter, stream="ext://sys.stdout"
        )
    if logfile.get("enabled", False):
        target = Path(str(logfile.get("path", DEFAULT_FILE_TEMPLATE)).format(run_id=run_id or "run", mode=mode))
        target.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = _handler(
            "logging.FileHandler", logfile, level=level, formatter=formatter, filename=str(target), encoding="utf-8"
        )

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"context": {"()": f"{__name__}.ContextFilter"}},
        "formatters": {
            "json": {"()": f"{__name__}.JsonFormatter"},
            "standard": {
                "()": f"{__name__}.UtcFormatter",
                "format": "%(asctime)sZ %(levelname)-7s %(name)s %(message)s %(context)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            },
        },
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
    }


def init_logging(
    config_path: str = DEFAULT_LOG_CONFIG,
    *,
    run_id: str | None = None,
    mode: str | None = None,
) -> None:
    """Configure the root logger from a JSON profile file.

    `mode` selects the profile (else the file's ``active_profile``) and is
    stamped on every record together with `run_id`.
    """
    path = Path(config_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    name, profile = _load_profile(path, mode)

    debug = _section(profile, "debug")
    _STATE.level = getattr(logging, str(profile.get("level", "INFO")).upper(), logging.INFO)
    _STATE.debug_enabled = bool(debug.get("enabled", False))
    _STATE.debug_modules = frozenset(str(m) for m in debug.get("modules", []))
    _STATE.run_id = run_id
    _STATE.mode = name

    logging.config.dictConfig(_build_dict_config(profile, run_id=run_id, mode=name))
    _STATE.configured = True

    # loggers handed out before configuration must inherit the root level
    get_logger.cache_clear()
    for existing in logging.root.manager.loggerDict.values():
        if isinstance(existing, logging.Logger):
            existing.setLevel(logging.NOTSET)


class ContextFilter(logging.Filter):
    """Gives every record a `context` dict and stamps run_id / mode on it."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = getattr(record, "context", None)
        if not _STATE.configured:
            record.context = ctx
            return True

        if ctx is None:
            ctx = {}
        elif not isinstance(ctx, dict):
            ctx = {"_context": safe_jsonable(ctx)}
        if _STATE.run_id is not None:
            ctx.setdefault("run_id", _STATE.run_id)
        if _STATE.mode is not None:
            ctx.setdefault("mode", _STATE.mode)
        record.context = ctx
        return True


class JsonFormatter(logging.Formatter):
    """One line per record: ts, ts_ms, level, logger, event, [category], [context], [exc]."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "ts_ms": int(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            context = dict(context)
            category = context.pop("category", None)
            if category is not None:
                payload["category"] = safe_jsonable(category)
            if context:
                payload["context"] = safe_jsonable(context)

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        try:
            return json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            payload["context"] = repr(payload.get("context"))
            payload["format_error"] = repr(exc)
            return json.dumps(payload, ensure_ascii=False, default=repr)


class UtcFormatter(logging.Formatter):
    converter = time.gmtime


@lru_cache(None)
def get_logger(name: str = "oracle_relay") -> Logger:
    logger = logging.getLogger(name)
    if not _STATE.configured:
        logger.setLevel(logging.NOTSET)
    return logger


def safe_jsonable(x: Any) -> Any:
    """Best-effort conversion of log context into JSON-compatible values."""
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    if isinstance(x, Decimal):
        # keep full precision; floats would round redemption rates
        return format(x, "f")
    if isinstance(x, Enum):
        inner = safe_jsonable(x.value)
        return str(x) if inner is None else inner
    if isinstance(x, datetime):
        aware = x if x.tzinfo is not None else x.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).isoformat()
    if isinstance(x, Path):
        return str(x)
    if isinstance(x, BaseException):
        return f"{type(x).__name__}: {x}"
    if dataclasses.is_dataclass(x) and not isinstance(x, type):
        return safe_jsonable({f.name: getattr(x, f.name) for f in dataclasses.fields(x)})
    if isinstance(x, Mapping):
        return {_json_key(k): safe_jsonable(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set, frozenset)):
        return [safe_jsonable(v) for v in x]
    try:
        return str(x)
    except Exception:
        return repr(x)


def _json_key(key: Any) -> str:
    out = safe_jsonable(key)
    return out if isinstance(out, str) else repr(out)


def _context(context: dict[str, Any]) -> dict[str, Any]:
    cleaned = safe_jsonable(context)
    return cleaned if isinstance(cleaned, dict) else {"_context": cleaned}


def _debug_module_matches(logger_name: str, module: str) -> bool:
    module = module.strip()
    if not module:
        return False
    if logger_name == module or logger_name.startswith(module + "."):
        return True
    return module in logger_name.split(".")


def _debug_allowed(logger: Logger) -> bool:
    if not _STATE.debug_enabled:
        return False
    if not _STATE.debug_modules:
        return True
    return any(_debug_module_matches(logger.name, m) for m in _STATE.debug_modules)


def log_debug(logger: Logger, msg: str, **context):
    if _debug_allowed(logger):
        logger.debug(msg, extra={"context": _context(context)})


def log_info(logger: Logger, msg: str, **context):
    logger.info(msg, extra={"context": _context(context)})


def log_warn(logger: Logger, msg: str, **context):
    logger.warning(msg, extra={"context": _context(context)})


def log_error(logger: Logger, msg: str, **context):
    logger.error(msg, extra={"context": _context(context)})


def log_exception(logger: Logger, msg: str, **context):
    logger.exception(msg, extra={"context": _context(context)})


# ---------------------------------------------------------------------
# Relay event helpers
# ---------------------------------------------------------------------

def log_source_error(logger: Logger, msg: str, **context):
    """Failed source-ledger read. Context: asset, contract, err_type, err."""
    log_warn(logger, msg, category=CATEGORY_SOURCE_READ, **context)


def log_decision(logger: Logger, msg: str, **context):
    """
    Per-asset policy outcome. Rejections are the normal case, so decisions
    only show up when debug logging is on for the calling module.
    Context: asset, trigger, accepted, reason, value, previous_value.
    """
    log_debug(logger, msg, category=CATEGORY_DECISION, **context)


def log_submission(logger: Logger, msg: str, **context):
    """Committed destination-ledger write. Context: contract, value, timestamp, tx_hash."""
    log_info(logger, msg, category=CATEGORY_SUBMISSION, **context)


def log_heartbeat(logger: Logger, msg: str, **context):
    """Sweep-level liveness. Context: trigger, assets, accepted, rejected, read_failures, elapsed_ms, backlog."""
    log_info(logger, msg, category=CATEGORY_HEARTBEAT, **context)
