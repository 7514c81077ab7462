from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from queue import Empty, Queue
from typing import Callable, List, Optional

import yaml
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .config import AppConfig, ConfigurationError, ConfigWatcherSettings, load_config

LOGGER = logging.getLogger(__name__)

ConfigHandler = Callable[[AppConfig], None]

# Settings read once at startup; 'skip' and 'dry_run' are applied live
RESTART_REQUIRED_SECTIONS = ("jellyfin", "config_watcher")


class ConfigurationSource:
    """Holds the current configuration and notifies subscribers when it changes.

    This is where configuration errors are reported: a handler that rejects
    the new configuration (for example an invalid match pattern) is logged
    here and the remaining handlers are still notified.
    """

    def __init__(self, path: Path, config: Optional[AppConfig] = None) -> None:
        self.path = path
        self._config = config if config is not None else load_config(path)
        self._handlers: List[ConfigHandler] = []
        self._lock = threading.Lock()

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def match(self) -> Optional[str]:
        return self._config.settings.skip.match

    @property
    def ignore_case(self) -> bool:
        return self._config.settings.skip.ignore_case

    def subscribe(self, handler: ConfigHandler, *, replay: bool = False) -> None:
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)
        if replay:
            self._deliver(handler, self._config)

    def unsubscribe(self, handler: ConfigHandler) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    def reload(self) -> bool:
        """Re-read the configuration file and notify subscribers.

        Returns False (keeping the previous configuration) when the file
        cannot be read or is structurally invalid.
        """
        try:
            config = load_config(self.path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            LOGGER.error("Failed to reload configuration from %s: %s", self.path, exc)
            return False

        previous = self._config
        self._config = config
        LOGGER.info("Configuration reloaded from %s", self.path)
        restart_only = [
            name
            for name in RESTART_REQUIRED_SECTIONS
            if getattr(previous.settings, name) != getattr(config.settings, name)
        ]
        if restart_only:
            LOGGER.warning(
                "Changes to %s in %s take effect after a restart",
                ", ".join(f"'{name}'" for name in restart_only),
                self.path,
            )
        self._notify(config)
        return True

    def _notify(self, config: AppConfig) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            self._deliver(handler, config)

    def _deliver(self, handler: ConfigHandler, config: AppConfig) -> None:
        try:
            handler(config)
        except ConfigurationError as exc:
            LOGGER.error("Invalid configuration in %s: %s", self.path, exc)
        except Exception:  # noqa: BLE001 - isolate handlers from each other
            LOGGER.exception("Configuration handler %r failed", handler)


class _ConfigChangeHandler(FileSystemEventHandler):
    def __init__(self, queue: Queue[Path], target: Path) -> None:
        self._queue = queue
        self._target = target

    def on_created(self, event) -> None:  # type: ignore[override]
        if getattr(event, "is_directory", False):
            return
        self._emit(Path(event.src_path))

    def on_modified(self, event) -> None:  # type: ignore[override]
        if getattr(event, "is_directory", False):
            return
        self._emit(Path(event.src_path))

    def on_moved(self, event) -> None:  # type: ignore[override]
        if getattr(event, "is_directory", False):
            return
        # Editors commonly save by writing a temp file and renaming it over the original
        self._emit(Path(event.dest_path))

    def _emit(self, path: Path) -> None:
        if not self._matches(path):
            return
        self._queue.put(path)

    def _matches(self, path: Path) -> bool:
        if path.name == self._target.name:
            return True
        # A swapped symlink the config resolves through (e.g. a Kubernetes ConfigMap's ..data)
        try:
            return self._target.resolve().is_relative_to(path.resolve())
        except OSError:
            return False


class ConfigFileWatcher:
    """Watches the configuration file and reloads the source when it changes."""

    def __init__(self, source: ConfigurationSource, settings: ConfigWatcherSettings) -> None:
        self._source = source
        self._settings = settings
        self._target = source.path.expanduser().absolute()
        self._queue: Queue[Path] = Queue()
        self._handler = _ConfigChangeHandler(self._queue, self._target)
        self._observer = Observer()
        self._observer.schedule(self._handler, str(self._target.parent), recursive=False)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._observer.start()
        self._thread = threading.Thread(target=self._run, name="chapterskip-config-watcher", daemon=True)
        self._thread.start()
        LOGGER.info("Watching configuration file %s for changes", self._target)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        self._observer.stop()
        self._observer.join(timeout=5)

    def _run(self) -> None:
        pending = False
        last_change = 0.0
        while not self._stop_event.is_set():
            try:
                self._queue.get(timeout=0.5)
                pending = True
                last_change = time.monotonic()
                continue
            except Empty:
                pass

            if pending and (time.monotonic() - last_change) >= self._settings.debounce_seconds:
                pending = False
                self._drain_queue()
                self._source.reload()

    def _drain_queue(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                break


__all__ = ["ConfigFileWatcher", "ConfigurationSource"]
