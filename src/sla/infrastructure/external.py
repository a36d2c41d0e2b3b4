"""
SLA External Service Integrations
==================================

External services for SLA configuration:
- YAML config file watcher (hot reload via watchdog)
"""

import logging
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.core import ConfigurationException
from src.shared.infrastructure.logging import get_logger
from src.sla.infrastructure.repositories import YAMLConfigProvider


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA config file changes."""

    def __init__(self, watcher: "SLAConfigWatcher", config_path: Path):
        self.watcher = watcher
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            self.watcher.reload()


class SLAConfigWatcher:
    """
    Reloads a YAMLConfigProvider when its file changes.

    An invalid edit is logged and the previous configuration stays active.
    """

    def __init__(self, provider: YAMLConfigProvider, logger: Optional[logging.Logger] = None):
        self._provider = provider
        self._logger = logger or get_logger(__name__)
        self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def reload(self) -> bool:
        """Reload configuration from file, keeping the old one on failure."""
        try:
            self._provider.reload()
        except ConfigurationException as e:
            self._logger.error(
                f"Failed to reload SLA config: {e}",
                extra={"config_path": str(self._provider.config_path), **e.details}
            )
            return False

        self._logger.info(
            "SLA configuration reloaded",
            extra={"config_path": str(self._provider.config_path)}
        )
        return True

    def start_watching(self) -> None:
        """
        Start watching configuration file for changes.

        Skips watching if the file doesn't exist or the platform offers no
        file notifications (e.g. some container filesystems).
        """
        path = self._provider.config_path
        if not path.exists():
            self._logger.info(
                f"Config file doesn't exist, skipping file watch: {path}. "
                "Using default SLA configuration."
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, path)
            self._observer.schedule(handler, str(path.parent), recursive=False)
            self._observer.start()
            self._logger.info(f"Started watching config file: {path}")
        except OSError as e:
            self._logger.warning(f"File watching not available, using static config: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
