"""Small helpers shared by lookups and exporters."""

from __future__ import annotations

import json
import os
import re
from itertools import islice
from pathlib import Path
from typing import Hashable, Iterable, Iterator, List, TypeVar

from .logging import get_logger

T = TypeVar("T")
H = TypeVar("H", bound=Hashable)

_WHITESPACE = re.compile(r"\s+")

_LOGGER = get_logger(module=__name__)


def normalize_whitespace(text: str) -> str:
    """Trim ``text`` and collapse internal whitespace runs to one space."""

    return _WHITESPACE.sub(" ", text).strip()


def ensure_directory(path: Path | str) -> Path:
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory.resolve()


def serialize_json(data: object, destination: Path | str, *, indent: int = 2) -> Path:
    """Write ``data`` as sorted, UTF-8 JSON.

    The document is written next to ``destination`` first and moved into place,
    so readers never observe a half-written report. Values JSON cannot encode
    natively (paths, enums, datetimes) are written as strings.
    """

    target = Path(destination)
    ensure_directory(target.parent)
    payload = json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False, default=str)
    staging = target.with_name(f".{target.name}.tmp")
    staging.write_text(payload + "\n", encoding="utf-8")
    os.replace(staging, target)
    _LOGGER.debug("Wrote JSON document", path=str(target), bytes=len(payload) + 1)
    return target


def unique_in_order(values: Iterable[H]) -> List[H]:
    """Distinct values in first-seen order."""

    return list(dict.fromkeys(values))


def chunked(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most ``size`` elements."""

    if size < 1:
        raise ValueError("chunk size must be at least 1")
    iterator = iter(iterable)
    batch = list(islice(iterator, size))
    while batch:
        yield batch
        batch = list(islice(iterator, size))


__all__ = [
    "normalize_whitespace",
    "ensure_directory",
    "serialize_json",
    "unique_in_order",
    "chunked",
]
