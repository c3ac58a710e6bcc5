"""
SLA External Service Integrations
==================================

External services for the SLA engine:
- YAML rule/calendar file with watchdog hot-reload
- Event publishing to the messaging collaborator (webhook)
- APScheduler for the periodic sweep
"""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ticket_sla.config import settings
from ticket_sla.core import ConfigurationException, ExternalServiceException
from ticket_sla.shared.infrastructure.logging import get_logger
from ticket_sla.sla.application import IEventPublisher, ISLAConfigProvider
from ticket_sla.sla.domain import SLAConfig, SLAEvent

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Triggers a reload when the watched rules file is written or replaced."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def _matches(self, event) -> bool:
        if event.is_directory:
            return False
        return Path(event.src_path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        if self._matches(event):
            logger.info("Config file changed", extra={"path": event.src_path})
            self.config_manager.reload()

    # Editors that save via rename produce a create instead of a modify
    on_created = on_modified


class SLAConfigManager(ISLAConfigProvider):
    """
    Holds the current rule registry and swaps it atomically on file change.

    Readers always get a complete, validated SLAConfig: a reload that fails
    to parse or validate is logged and the previous registry stays active.
    """

    def __init__(self):
        self._config: Optional[SLAConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file cannot be parsed or validated
        """
        self._path = Path(path)
        config = self._load_from_file(self._path)
        with self._lock:
            self._config = config
        logger.info(
            "SLA configuration loaded",
            extra={"path": str(self._path), "rules": len(config.rules),
                   "escalation_rules": len(config.escalation_rules)}
        )
        return config

    def _load_from_file(self, path: Path) -> SLAConfig:
        """Parse and validate one YAML file; a missing file means no active rules."""
        if not path.exists():
            logger.warning("SLA config file not found, no rules active", extra={"path": str(path)})
            return SLAConfig()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            return SLAConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid SLA configuration in {path}",
                {"path": str(path), "error": str(e)}
            ) from e

    def reload(self) -> bool:
        """Re-read the rules file. Returns False when the previous config was kept."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error(
                "Failed to reload SLA config, keeping previous configuration",
                extra=e.details
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA configuration reloaded successfully", extra={"rules": len(new_config.rules)})
        return True

    def start_watching(self) -> None:
        """
        Watch the directory of the rules file with watchdog.

        A missing file or an unavailable inotify backend leaves the loaded
        config static.
        """
        if self._path is None:
            raise RuntimeError("start_watching() requires a prior load()")

        if not self._path.exists():
            logger.info("Config file doesn't exist, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching config file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Idempotent."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_config(self) -> SLAConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA configuration not loaded")
            return self._config

    @property
    def config(self) -> SLAConfig:
        return self.get_config()


class CircuitState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops event delivery to a webhook that keeps failing.

    Opens after failure_threshold consecutive failed deliveries; after
    recovery_timeout seconds one trial delivery is let through (half open).
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class HttpEventPublisher(IEventPublisher):
    """
    Posts SLA events as JSON to the messaging collaborator.

    Failed deliveries are retried with exponential backoff; when every
    attempt fails ExternalServiceException is raised for the caller to log.
    Without a configured URL, or while the circuit is open, events are
    dropped with a log line.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 3,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.events_webhook_url
        self._timeout = timeout_seconds or settings.events_timeout_seconds
        self._max_retries = max_retries
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    @staticmethod
    def _build_payload(event: SLAEvent) -> Dict[str, Any]:
        return event.to_dict()

    async def publish(self, event: SLAEvent) -> None:
        if not self._webhook_url:
            logger.debug("Events webhook URL not configured, skipping delivery",
                         extra={"event_type": event.event_type, "ticket_id": event.ticket_id})
            return

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping SLA event delivery",
                extra={"event_type": event.event_type, "ticket_id": event.ticket_id}
            )
            return

        payload = self._build_payload(event)

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=payload)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "SLA event delivered",
                        extra={"event_type": event.event_type, "ticket_id": event.ticket_id}
                    )
                    return
                logger.warning(
                    "Events webhook returned error status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                logger.error(
                    "SLA event delivery failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": event.ticket_id}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        raise ExternalServiceException(
            "events webhook",
            f"delivery failed after {self._max_retries} attempts",
            {"event_type": event.event_type, "ticket_id": event.ticket_id}
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SLAScheduler:
    """
    Runs SLAEngine.sweep on an APScheduler interval trigger.
    """

    def __init__(self, interval_seconds: int = 180):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Schedule job_func every interval_seconds and start the scheduler."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        # max_instances=1 keeps a slow sweep from overlapping the next one
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_sweep",
            name="SLA Sweep Job",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Shut down without waiting for a sweep in progress."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
