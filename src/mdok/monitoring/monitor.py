"""Collection loop for a named group of containers.

Each tick fans out one stats fetch per active container, turns the snapshot
into a Sample against the container's previous snapshot, and appends it to
the in-memory series. Every series is persisted at the end of the tick.

Shared state (series and previous snapshots) is guarded by a single lock so
dashboards can read it while collection threads write. Stopping, by signal or
by ``stop()``, always ends in ``shutdown()``, which runs exactly once.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from types import FrameType

from mdok.analysis.summarize import summarize_series
from mdok.core.schemas import ContainerInfo, ContainerSeries, HostInfo, MonitorConfig, Sample
from mdok.monitoring.base import ContainerNotFoundError, RuntimeClient, RuntimeClientError
from mdok.monitoring.network import NetworkInspector
from mdok.monitoring.rates import RawSnapshot, build_sample, parse_stats
from mdok.results.storage import SeriesStorage
from mdok.utils.units import format_bytes

logger = logging.getLogger(__name__)


class Monitor:
    """Periodic metrics collector for one monitoring configuration.

    Example:
        ```python
        monitor = Monitor(config, DockerRuntimeClient(), SeriesStorage(workspace))
        monitor.initialize()
        monitor.run()  # blocks until SIGINT/SIGTERM or monitor.stop()
        ```
    """

    def __init__(
        self,
        config: MonitorConfig,
        client: RuntimeClient,
        storage: SeriesStorage,
        inspector: NetworkInspector | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Monitoring configuration
            client: Runtime client used for all container access
            storage: Where series are persisted
            inspector: Traffic classifier (built from the config when omitted
                and ``config.classify_network`` is set)
            clock: Time source for sample timestamps
        """
        self.config = config
        self._client = client
        self._storage = storage
        if inspector is None and config.classify_network:
            inspector = NetworkInspector(client, config.proxy_patterns)
        self._inspector = inspector
        self._clock = clock

        self._lock = threading.Lock()
        self._series: dict[str, ContainerSeries] = {}
        self._previous: dict[str, RawSnapshot] = {}
        self._active: dict[str, str] = {}  # name -> container id

        self._stop_event = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._shutdown_done = False
        self._initialized = False
        self.session_id: str | None = None

    @property
    def active_containers(self) -> list[str]:
        """Names still being collected, in configuration order."""
        with self._lock:
            return [name for name in self.config.containers if name in self._active]

    def initialize(self) -> None:
        """Resolve containers and prepare (or resume) their series.

        Raises:
            RuntimeClientError: If the runtime is unreachable or no configured
                container resolves
        """
        self._client.ping()

        try:
            host = self._client.get_host_info()
        except RuntimeClientError as e:
            logger.warning(f"Failed to get host info: {e}")
            host = HostInfo()

        now = self._clock()
        self.session_id = str(int(now.timestamp()))

        for name in self.config.containers:
            try:
                container_id = self._client.resolve_id(name)
            except RuntimeClientError as e:
                logger.warning(f"Container {name} not found: {e}")
                continue

            try:
                limits = self._client.get_limits(container_id)
                image = self._client.get_image(container_id)
            except RuntimeClientError as e:
                logger.warning(f"Failed to inspect {name}: {e}")
                continue

            update = {
                "container_id": container_id,
                "image_name": image,
                "host": host,
                "limits": limits,
                "end_time": None,
                "interval_seconds": self.config.interval,
                "session_id": self.session_id,
                "summary": None,
                "network_cost": None,
                "recommendation": None,
            }
            existing = self._load_existing(name)
            if existing is not None:
                series = existing.model_copy(update=update)
                logger.info(
                    f"Resuming series for {name} ({len(existing.samples)} earlier samples)"
                )
            else:
                series = ContainerSeries(container_name=name, start_time=now, **update)

            with self._lock:
                self._series[name] = series
                self._active[name] = container_id
            logger.info(f"Initialized monitoring for container: {name} ({container_id[:12]})")

        if not self._series:
            raise RuntimeClientError(
                f"None of the configured containers could be resolved: {self.config.containers}"
            )
        self._initialized = True

    def _load_existing(self, name: str) -> ContainerSeries | None:
        try:
            return self._storage.load_series(self.config.name, name)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable stored series for {name}: {e}")
            return None

    def collect_container(
        self,
        name: str,
        container_id: str,
        containers: list[ContainerInfo] | None = None,
        classify: bool = True,
    ) -> Sample | None:
        """Take one sample for a container and append it to its series.

        Args:
            name: Container display name
            container_id: Full container id
            containers: Current container listing shared across the tick
            classify: Run traffic classification for this sample

        Returns:
            The new Sample, or None if the container is not running

        Raises:
            ContainerNotFoundError: If the container no longer exists
            RuntimeClientError: If the stats call fails
        """
        if not self._client.is_running(container_id):
            logger.info(f"Container {name} is not running, skipping")
            return None

        timestamp = self._clock()
        raw = parse_stats(self._client.stats_snapshot(container_id), timestamp)

        with self._lock:
            previous = self._previous.get(name)

        sample = build_sample(raw, previous, self.config.cpu_baseline, self.session_id)
        if classify and self._inspector is not None:
            sample = self._inspector.collect(container_id, containers).apply_to(sample)

        with self._lock:
            self._previous[name] = raw
            self._series[name].samples.append(sample)

        mem_pct = f"{sample.memory_percent:.1f}%" if sample.memory_percent is not None else "-"
        logger.info(
            f"[{name}] CPU: {sample.cpu_percent:.1f}% | "
            f"Mem: {format_bytes(sample.memory_usage)} ({mem_pct}) | "
            f"Net rx/tx: {format_bytes(sample.net_rx_rate)}/s / {format_bytes(sample.net_tx_rate)}/s"
        )
        return sample

    def collect_all(self) -> dict[str, Sample]:
        """Run one tick: sample every active container concurrently, then persist.

        Returns:
            Samples taken this tick, by container name
        """
        with self._lock:
            targets = dict(self._active)
        if not targets:
            return {}

        containers = None
        classify = self._inspector is not None
        if classify:
            try:
                containers = self._client.list_containers()
            except RuntimeClientError as e:
                logger.warning(f"Skipping traffic classification this tick: {e}")
                classify = False

        samples: dict[str, Sample] = {}
        workers = min(self.config.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mdok-collect") as pool:
            futures = {
                pool.submit(self.collect_container, name, container_id, containers, classify): name
                for name, container_id in targets.items()
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    sample = future.result()
                except ContainerNotFoundError as e:
                    logger.warning(f"Container {name} no longer exists, dropping it: {e}")
                    with self._lock:
                        self._active.pop(name, None)
                except (RuntimeClientError, ValueError) as e:
                    logger.warning(f"Error collecting stats for {name}: {e}")
                else:
                    if sample is not None:
                        samples[name] = sample

        self.persist()
        return samples

    def persist(self, end_time: datetime | None = None) -> None:
        """Write every non-empty series to storage; failures are logged."""
        end_time = end_time or self._clock()
        with self._lock:
            for series in self._series.values():
                if series.samples:
                    series.end_time = end_time
            snapshot = [s.model_copy(deep=True) for s in self._series.values() if s.samples]

        for series in snapshot:
            try:
                self._storage.save_series(self.config.name, series)
            except OSError as e:
                logger.error(f"Error saving data for {series.container_name}: {e}")

    def get_container_data(self) -> dict[str, ContainerSeries]:
        """Deep copies of the in-memory series, safe to read while collecting."""
        with self._lock:
            return {name: s.model_copy(deep=True) for name, s in self._series.items()}

    def stop(self) -> None:
        """Request the loop to stop; ``run()`` then shuts down."""
        self._stop_event.set()

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, stopping")
        self._stop_event.set()

    def run(self, install_signal_handlers: bool = True) -> None:
        """Collect on a fixed interval until stopped, then shut down.

        Args:
            install_signal_handlers: Stop on SIGINT/SIGTERM (main thread only)

        Raises:
            RuntimeClientError: If initialization fails
        """
        if not self._initialized:
            self.initialize()

        previous_handlers = {}
        if install_signal_handlers and threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous_handlers[signum] = signal.signal(signum, self._handle_signal)

        logger.info(
            f"Starting monitoring for {len(self.active_containers)} containers "
            f"(interval: {self.config.interval}s, session {self.session_id})"
        )
        try:
            self.collect_all()
            while not self._stop_event.wait(self.config.interval):
                self.collect_all()
        finally:
            self.shutdown()
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

    def shutdown(self) -> None:
        """Compute final summaries, persist and release the client (once)."""
        with self._shutdown_lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True

        self._stop_event.set()
        logger.info("Generating final summary...")
        end_time = self._clock()
        with self._lock:
            for name, series in self._series.items():
                if not series.samples:
                    continue
                self._series[name] = summarize_series(series, self.config.region, end_time)
                logger.info(f"Computed summary for {name} ({len(series.samples)} samples)")

        self.persist(end_time)
        self._client.close()
        logger.info("Monitoring stopped")
