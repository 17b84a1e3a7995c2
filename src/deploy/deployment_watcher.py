"""Polling watcher for the definition deployment directory.

Any ``*.dset`` file dropped in the watched directory is deployed into the
registry and redeployed when it changes; a ``<name>.undeploy`` marker
removes the definition deployed from ``<name>.dset``. Errors in one file
are logged and never stop the pass or the watcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import threading
import time

from core.constants import (
    DEFAULT_POLLING_TIME_MS,
    DEFINITION_FILE_SUFFIX,
    DEPLOYER_ACTOR_ID,
    UNDEPLOY_FILE_SUFFIX,
)
from core.logging_config import get_logger
from core.types import DataSetDef, DeploymentReport
from store.definition_codec import DataSetDefJSONCodec
from store.definition_registry import DefinitionRegistry

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class DeploymentRecord:
    """Deployed definition with the source file it was read from.

    Attributes:
        definition: Definition currently registered for the file.
        source_file: Deployment directory file.
        registered_at_ns: Wall clock time of the (re)registration.
    """

    definition: DataSetDef
    source_file: Path
    registered_at_ns: int

    def is_outdated(self) -> bool:
        """Return whether the source file changed after registration."""
        return self.source_file.stat().st_mtime_ns > self.registered_at_ns


@dataclass
class _PassOutcome:
    deployed: list[str] = field(default_factory=list)
    redeployed: list[str] = field(default_factory=list)
    found: list[str] = field(default_factory=list)
    undeployed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_report(self) -> DeploymentReport:
        return DeploymentReport(
            deployed=tuple(self.deployed),
            redeployed=tuple(self.redeployed),
            found=tuple(self.found),
            undeployed=tuple(self.undeployed),
            failed=tuple(self.failed),
        )


class DeploymentWatcher:
    """Deploy definition files found in a directory into a registry.

    ``deploy``, ``stop`` and ``reconcile`` share one re-entrant lock, so a
    stop issued during a pass waits for that pass to finish. Each started
    polling loop owns its stop event and exits at its next wake once the
    event is set.
    """

    def __init__(
        self,
        registry: DefinitionRegistry,
        codec: DataSetDefJSONCodec,
        polling_time_ms: int = DEFAULT_POLLING_TIME_MS,
    ) -> None:
        """Initialize a stopped watcher.

        Args:
            registry: Registry receiving deploy and undeploy operations.
            codec: Definition JSON codec.
            polling_time_ms: Interval between passes; 0 disables polling.
        """
        self._registry = registry
        self._codec = codec
        self._polling_time_ms = polling_time_ms
        self._lock = threading.RLock()
        self._directory: Path | None = None
        self._deployed: dict[str, DeploymentRecord] = {}
        self._deployed_directory: Path | None = None
        self._stop_event: threading.Event | None = None
        self._worker: threading.Thread | None = None
        self._last_report = DeploymentReport()

    @property
    def directory(self) -> Path | None:
        """Watched directory, or ``None`` when stopped."""
        return self._directory

    @property
    def last_report(self) -> DeploymentReport:
        """Report of the most recent deployment pass."""
        return self._last_report

    @property
    def is_running(self) -> bool:
        """Return whether a deployment directory is being watched."""
        return self._directory is not None

    def deployed_files(self) -> dict[str, str | None]:
        """Map deployed file names to the uuids registered from them."""
        with self._lock:
            return {name: record.definition.uuid for name, record in self._deployed.items()}

    def deploy(self, directory: str | None) -> bool:
        """Start watching a deployment directory.

        Any previous polling loop is stopped first. A valid directory gets
        one immediate pass and, with a positive polling time, a daemon
        polling thread.

        Args:
            directory: Directory to watch.

        Returns:
            Whether the watcher is now running.
        """
        with self._lock:
            self._signal_stop()
            if not _is_valid_directory(directory):
                _LOGGER.warning("deployment_directory_invalid", directory=directory)
                return False
            target = Path(str(directory)).expanduser().resolve()
            if target != self._deployed_directory:
                self._deployed = {}
                self._deployed_directory = target
            self._directory = target
            _LOGGER.info(
                "deployment_directory_watched",
                directory=str(target),
                polling_time_ms=self._polling_time_ms,
            )
            self.reconcile()
            if self._polling_time_ms > 0:
                stop_event = threading.Event()
                worker = threading.Thread(
                    target=self._watch,
                    args=(stop_event,),
                    name="dataset-deployer",
                    daemon=True,
                )
                self._stop_event = stop_event
                self._worker = worker
                worker.start()
            return True

    def stop(self) -> None:
        """Stop watching; a pass in progress completes first."""
        with self._lock:
            worker = self._signal_stop()
        if worker is not None and worker is not threading.current_thread():
            worker.join()
        _LOGGER.info("deployment_watcher_stopped")

    def reconcile(self) -> DeploymentReport:
        """Run one deployment pass over the watched directory.

        Returns:
            Summary of what the pass changed; empty when stopped.
        """
        with self._lock:
            directory = self._directory
            if directory is None:
                return DeploymentReport()
            outcome = _PassOutcome()
            for definition_file in _list_files(directory, DEFINITION_FILE_SUFFIX):
                try:
                    self._deploy_file(definition_file, outcome)
                except Exception as error:
                    outcome.failed.append(definition_file.name)
                    _LOGGER.error(
                        "deployment_file_failed",
                        file=definition_file.name,
                        error=str(error),
                    )
            for marker_file in _list_files(directory, UNDEPLOY_FILE_SUFFIX):
                try:
                    self._undeploy_file(marker_file, outcome)
                except Exception as error:
                    outcome.failed.append(marker_file.name)
                    _LOGGER.error("undeployment_failed", file=marker_file.name, error=str(error))
            self._last_report = outcome.to_report()
            return self._last_report

    def _deploy_file(self, definition_file: Path, outcome: _PassOutcome) -> None:
        previous_record = self._deployed.get(definition_file.name)
        if previous_record is not None and not previous_record.is_outdated():
            return
        definition = self._codec.from_json(definition_file.read_text(encoding="utf-8"))
        if not definition.uuid or not definition.uuid.strip():
            definition.uuid = definition_file.name
        definition.def_file_path = str(definition_file.resolve())
        uuid = definition.uuid

        existing = self._registry.get_definition(uuid)
        if existing is not None and self._codec.definitions_equal(existing, definition):
            self._record(definition_file, existing)
            outcome.found.append(uuid)
            _LOGGER.info("dataset_found", uuid=uuid, file=definition_file.name)
            return

        if previous_record is None:
            self._registry.register_definition(definition, DEPLOYER_ACTOR_ID, f"deploy({uuid})")
            outcome.deployed.append(uuid)
            _LOGGER.info("dataset_deployed", uuid=uuid, file=definition_file.name)
        else:
            self._registry.register_definition(definition, DEPLOYER_ACTOR_ID, f"redeploy({uuid})")
            outcome.redeployed.append(uuid)
            _LOGGER.info("dataset_redeployed", uuid=uuid, file=definition_file.name)
        self._record(definition_file, definition)

    def _undeploy_file(self, marker_file: Path, outcome: _PassOutcome) -> None:
        """Remove the definition deployed from the marker's ``.dset`` file.

        The registry removal runs first. When it fails, the marker, the
        record and the source file are all kept, so the next pass retries.
        """
        definition_file_name = _definition_file_name(marker_file.name)
        record = self._deployed.get(definition_file_name)
        if record is not None:
            uuid = record.definition.uuid or record.source_file.name
            self._registry.remove_definition(uuid, DEPLOYER_ACTOR_ID, f"undeploy({uuid})")
            del self._deployed[definition_file_name]
            try:
                record.source_file.unlink(missing_ok=True)
            except OSError as error:
                _LOGGER.warning(
                    "undeployed_file_not_deleted",
                    file=record.source_file.name,
                    error=str(error),
                )
            outcome.undeployed.append(uuid)
            _LOGGER.info("dataset_undeployed", uuid=uuid, file=marker_file.name)
        try:
            marker_file.unlink()
        except OSError as error:
            _LOGGER.warning("undeploy_marker_not_deleted", file=marker_file.name, error=str(error))

    def _record(self, definition_file: Path, definition: DataSetDef) -> None:
        self._deployed[definition_file.name] = DeploymentRecord(
            definition=definition,
            source_file=definition_file,
            registered_at_ns=time.time_ns(),
        )

    def _signal_stop(self) -> threading.Thread | None:
        """Clear the directory and signal the active loop; caller holds the lock."""
        self._directory = None
        if self._stop_event is not None:
            self._stop_event.set()
        worker = self._worker
        self._stop_event = None
        self._worker = None
        return worker

    def _watch(self, stop_event: threading.Event) -> None:
        interval_seconds = self._polling_time_ms / 1000
        while not stop_event.wait(interval_seconds):
            with self._lock:
                if stop_event.is_set():
                    break
                try:
                    self.reconcile()
                except Exception as error:
                    _LOGGER.error("deployment_pass_failed", error=str(error))


def _is_valid_directory(directory: str | None) -> bool:
    if directory is None or not directory.strip():
        return False
    directory_path = Path(directory).expanduser()
    return directory_path.exists() and directory_path.is_dir()


def _list_files(directory: Path, suffix: str) -> list[Path]:
    try:
        candidates = sorted(directory.iterdir())
    except OSError as error:
        _LOGGER.error("deployment_directory_unreadable", directory=str(directory), error=str(error))
        return []
    return [path for path in candidates if path.name.endswith(suffix) and path.is_file()]


def _definition_file_name(marker_name: str) -> str:
    """Map ``a.undeploy`` or ``a.dset.undeploy`` to ``a.dset``."""
    base_name = marker_name[: -len(UNDEPLOY_FILE_SUFFIX)]
    if base_name.endswith(DEFINITION_FILE_SUFFIX):
        return base_name
    return base_name + DEFINITION_FILE_SUFFIX
