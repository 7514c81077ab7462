from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from textwrap import wrap
from typing import Optional, Union

DEFAULT_WRAP_WIDTH = 110
DEFAULT_LABEL_WIDTH = 22
DEFAULT_INDENT = "    "

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s\n%(message)s\n"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at DEBUG
_QUIET_LOGGERS = ("urllib3", "watchdog")

FieldMapping = Union[Mapping[str, object], Sequence[tuple[str, object]]]


def configure_logging(level: int = logging.INFO, *, log_file: Optional[Path] = None) -> None:
    """Install console (and optional file) handlers on the root logger."""
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple, set)):
        return ", ".join(_stringify(item) for item in value)
    return str(value)


def render_fields_block(
    title: str,
    fields: FieldMapping,
    *,
    pad_top: bool = True,
    wrap_width: int = DEFAULT_WRAP_WIDTH,
) -> str:
    """Render ``fields`` as an aligned, wrapped key/value block under ``title``."""
    items = list(fields.items()) if isinstance(fields, Mapping) else list(fields)
    lines: list[str] = [""] if pad_top else []
    lines.append(title)
    lines.append("-" * len(title))

    if items:
        computed_width = max(len(str(key)) for key, _ in items)
        label_width = max(min(computed_width, DEFAULT_LABEL_WIDTH), 8)
        value_width = max(wrap_width - len(DEFAULT_INDENT) - label_width - 4, 32)
        for key, value in items:
            wrapped = wrap(_stringify(value), width=value_width) or [""]
            lines.append(f"{DEFAULT_INDENT}{str(key):<{label_width}}: {wrapped[0]}")
            for continuation in wrapped[1:]:
                lines.append(f"{DEFAULT_INDENT}{'':<{label_width}}  {continuation}")

    return "\n".join(lines).rstrip()
