"""Mapping store.

Owns the active :class:`MappingConfig` and every way it can change:

- local files read at startup (later candidates override earlier ones)
- a one-shot remote fetch that replaces whatever is loaded when it lands
- runtime replacement, which persists to disk *before* swapping

All three go through :meth:`MappingStore._swap`, which replaces the config
reference as a whole. Readers take :attr:`MappingStore.current` once and
keep using that object, so they see either the old or the new pair.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import aiohttp
from pydantic import ValidationError

from mqtt2influxdb.exceptions import MappingFetchError, MappingLoadError, MappingPersistError
from mqtt2influxdb.models import MappingConfig

_logger = logging.getLogger(__name__)

FIELD_MAP = "fieldMap"
VALUES_MAP = "valuesMap"


def _require_object(data: Any, *, source: str) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise MappingLoadError(
            f"Mapping from {source} must be a JSON object, got {type(data).__name__}",
            source=source,
        )
    return {str(k): v for k, v in data.items()}


def read_mapping_file(path: Path) -> dict[str, Any]:
    """Read a flat JSON object from *path*."""
    source = str(path)
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise MappingLoadError(f"Cannot read mapping file {source}: {exc}", source=source) from exc
    return _require_object(data, source=source)


def write_mapping_file(path: Path, data: Mapping[str, Any]) -> None:
    """Atomically write *data* to *path* as JSON.

    The file is written next to the target and renamed over it, so a
    reader never sees a partially written mapping.
    """
    source = str(path)
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_name = fh.name
            json.dump(dict(data), fh, ensure_ascii=False)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise MappingPersistError(f"Cannot save mapping file {source}: {exc}", source=source) from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                _logger.debug("Could not remove temporary file %s", tmp_name, exc_info=True)


async def fetch_mapping(session: aiohttp.ClientSession, url: str, *, timeout: float) -> dict[str, Any]:
    """GET a JSON mapping from *url*."""
    _logger.debug("GET %s", url)
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise MappingFetchError(f"HTTP {resp.status} from {url}: {text[:200]}", source=url)
            data = await resp.json(content_type=None)
    except MappingFetchError:
        raise
    except (aiohttp.ClientError, TimeoutError) as exc:
        raise MappingFetchError(f"Request to {url} failed: {exc!r}", source=url) from exc
    except ValueError as exc:
        raise MappingFetchError(f"Invalid JSON from {url}", source=url) from exc

    try:
        return _require_object(data, source=url)
    except MappingLoadError as exc:
        raise MappingFetchError(str(exc), source=url) from exc


class MappingStore:
    """Thread-safe holder of the active mapping configuration."""

    def __init__(
        self,
        *,
        field_map_path: Path | None = None,
        values_map_path: Path | None = None,
        initial: MappingConfig | None = None,
    ) -> None:
        self._field_map_path = field_map_path
        self._values_map_path = values_map_path
        self._current = initial or MappingConfig()
        self._write_lock = threading.Lock()
        self._ready = threading.Event()
        self._sources: dict[str, None] = {"default": None}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def current(self) -> MappingConfig:
        """The active config. Immutable; hold on to it for a whole message."""
        return self._current

    def field_map(self) -> dict[str, str]:
        return dict(self._current.field_map)

    def values_map(self) -> dict[str, Any]:
        return dict(self._current.values_map)

    @property
    def sources(self) -> list[str]:
        """Mapping sources applied so far, least recent first."""
        with self._write_lock:
            return list(self._sources)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def mark_ready(self) -> None:
        if not self._ready.is_set():
            _logger.info("Mappings ready (sources=%s)", ", ".join(self.sources))
        self._ready.set()

    def wait_ready(self, timeout: float | None = None) -> bool:
        return self._ready.wait(timeout)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _swap(self, kind: str, data: dict[str, Any], *, source: str) -> MappingConfig:
        """Replace one map; caller must hold ``_write_lock``."""
        try:
            if kind == FIELD_MAP:
                updated = self._current.with_field_map(data)
            else:
                updated = self._current.with_values_map(data)
        except ValidationError as exc:
            raise MappingLoadError(f"Invalid {kind} from {source}: {exc}", source=source) from exc
        self._current = updated
        self._record(source)
        return updated

    def _record(self, source: str) -> None:
        self._sources.pop(source, None)
        self._sources[source] = None

    def apply_config(self, config: MappingConfig, *, source: str) -> None:
        """Swap both maps at once."""
        with self._write_lock:
            self._current = config
            self._record(source)

    def apply(self, kind: str, data: Mapping[str, Any], *, source: str) -> MappingConfig:
        """Swap in *data* for one map without persisting it."""
        payload = _require_object(data, source=source)
        with self._write_lock:
            return self._swap(kind, payload, source=source)

    def load_files(
        self,
        *,
        field_map_paths: Iterable[Path] = (),
        values_map_paths: Iterable[Path] = (),
    ) -> None:
        """Load every existing candidate file in order.

        Missing files are skipped; a present but broken file raises
        :class:`MappingLoadError`.
        """
        for kind, paths in ((FIELD_MAP, field_map_paths), (VALUES_MAP, values_map_paths)):
            for path in paths:
                if not path.is_file():
                    _logger.debug("No %s at %s", kind, path)
                    continue
                data = read_mapping_file(path)
                self.apply(kind, data, source=f"file:{path}")
                _logger.info("Loaded %s from %s (%d entries)", kind, path, len(data))

    async def fetch_remote(
        self,
        session: aiohttp.ClientSession,
        *,
        field_map_url: str | None = None,
        values_map_url: str | None = None,
        timeout: float = 10.0,
    ) -> dict[str, bool]:
        """Fetch remote mappings once and swap in those that arrive.

        Failures are logged and leave the previous map active. Returns
        which maps were replaced.
        """

        async def one(kind: str, url: str) -> bool:
            try:
                data = await fetch_mapping(session, url, timeout=timeout)
                self.apply(kind, data, source=f"url:{url}")
            except (MappingFetchError, MappingLoadError) as exc:
                _logger.error("Error loading %s from %s: %s", kind, url, exc)
                return False
            _logger.info("Loaded %s from %s (%d entries)", kind, url, len(data))
            return True

        jobs: dict[str, str] = {}
        if field_map_url:
            jobs[FIELD_MAP] = field_map_url
        if values_map_url:
            jobs[VALUES_MAP] = values_map_url
        if not jobs:
            return {}

        results = await asyncio.gather(*(one(kind, url) for kind, url in jobs.items()))
        return dict(zip(jobs, results, strict=True))

    def _replace(self, kind: str, data: Any, path: Path | None) -> MappingConfig:
        payload = _require_object(data, source="api")
        with self._write_lock:
            # A rejected body is never persisted.
            try:
                if kind == FIELD_MAP:
                    self._current.with_field_map(payload)
                else:
                    self._current.with_values_map(payload)
            except ValidationError as exc:
                raise MappingLoadError(f"Invalid {kind}: {exc}", source="api") from exc
            if path is not None:
                write_mapping_file(path, payload)
            updated = self._swap(kind, payload, source="api")
        _logger.info("Replaced %s via api (%d entries)", kind, len(payload))
        return updated

    def replace_field_map(self, data: Any) -> MappingConfig:
        """Persist then activate a new field map.

        Raises
        ------
        MappingLoadError
            Body is not a flat JSON object of measurement names.
        MappingPersistError
            Writing the file failed; the active mapping is unchanged.
        """
        return self._replace(FIELD_MAP, data, self._field_map_path)

    def replace_values_map(self, data: Any) -> MappingConfig:
        """Persist then activate a new values map. Same errors as :meth:`replace_field_map`."""
        return self._replace(VALUES_MAP, data, self._values_map_path)
