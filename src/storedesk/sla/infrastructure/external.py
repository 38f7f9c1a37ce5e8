"""
SLA External Service Integrations
==================================

External services for SLA escalation:
- YAML SLA policy loading (read once at startup)
- Slack webhook notifications
- APScheduler for the periodic escalation sweep
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError

from storedesk.config import settings
from storedesk.core import ConfigurationException
from storedesk.routing.domain import Ticket
from storedesk.shared.infrastructure.logging import get_logger
from storedesk.sla.application import IEscalationNotifier
from storedesk.sla.domain import Escalation, EscalationTrigger, SLAPolicy, SLAPolicyConfig

logger = get_logger(__name__)


# ========== SLA policy ==========

def load_sla_policy(path: Optional[Path] = None) -> SLAPolicy:
    """
    Build the SLA policy from a YAML file.

    A missing file yields the built-in table. The policy does not change
    after it is loaded.

    Raises:
        ConfigurationException: If the file exists but is not a valid SLA table
    """
    path = Path(path or settings.sla_config_path)
    if not path.exists():
        logger.warning(f"SLA config file not found: {path}, using defaults")
        return SLAPolicy()

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        config = SLAPolicyConfig(**data)
    except (yaml.YAMLError, ValidationError, TypeError) as e:
        raise ConfigurationException(f"Invalid SLA config {path}: {e}", {"path": str(path)})

    policy = SLAPolicy.from_config(config)
    logger.info("SLA policy loaded", extra={"path": str(path), "rules": policy.as_minutes()})
    return policy


# ========== Circuit breaker ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


# ========== Slack ==========

_TRIGGER_HEADERS = {
    EscalationTrigger.ASSIGNMENT_TIMEOUT: ":hourglass: Ticket not assigned in time",
    EscalationTrigger.ACCEPTANCE_TIMEOUT: ":warning: Assignment not accepted in time",
    EscalationTrigger.RESOLUTION_TIMEOUT: ":warning: Work not finished in time",
    EscalationTrigger.SLA_DEADLINE: ":rotating_light: SLA deadline missed",
}


class SlackEscalationNotifier(IEscalationNotifier):
    """
    Slack webhook notifier with circuit breaker and retry logic.

    Handles sending escalation messages to Slack with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling

    Never raises; delivery problems are logged and reported as False.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 3,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._max_retries = max_retries
        self._http_client = http_client
        self._sleep = sleep
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def build_message(self, escalation: Escalation, ticket: Ticket) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        try:
            header = _TRIGGER_HEADERS[EscalationTrigger(escalation.trigger_event)]
        except ValueError:
            header = f":warning: {escalation.trigger_event}"

        assignee = ticket.assigned_service_provider_id or "unassigned"
        moderator = escalation.escalated_to_user_id or "no moderator"

        return {
            "channel": self._channel,
            "text": f"{escalation.trigger_event} for ticket {ticket.id}",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": header, "emoji": True}
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Ticket:*\n{ticket.id}"},
                        {"type": "mrkdwn", "text": f"*Priority:*\n{ticket.priority.value}"},
                        {"type": "mrkdwn", "text": f"*Category:*\n{ticket.category} / {ticket.subcategory}"},
                        {"type": "mrkdwn", "text": f"*Status:*\n{ticket.status.value}"},
                        {"type": "mrkdwn", "text": f"*Provider:*\n{assignee}"},
                        {"type": "mrkdwn", "text": f"*Escalated to:*\n{moderator}"},
                    ]
                },
                {
                    "type": "context",
                    "elements": [
                        {
                            "type": "mrkdwn",
                            "text": (
                                f"Location: {ticket.location_in_store} | "
                                f"SLA deadline: {ticket.sla_deadline.isoformat()}"
                            )
                        }
                    ]
                }
            ]
        }

    async def notify(self, escalation: Escalation, ticket: Ticket) -> bool:
        """
        Send escalation to the Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"ticket_id": ticket.id}
            )
            return False

        message = self.build_message(escalation, ticket)

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"ticket_id": ticket.id, "trigger_event": escalation.trigger_event}
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": ticket.id}
                )

            if attempt < self._max_retries - 1:
                await self._sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


# ========== Scheduler ==========

class EscalationScheduler:
    """
    Wrapper for APScheduler running the escalation sweep.

    Manages the lifecycle of the scheduler and its single interval job.
    """

    JOB_ID = "escalation_sweep"

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler with the given coroutine function."""
        if self._running:
            logger.warning("Escalation scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA Escalation Sweep",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Escalation scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Escalation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
