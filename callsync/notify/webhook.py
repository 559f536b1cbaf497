"""Webhook notifier delivering new call records to a remote channel."""

from abc import ABC, abstractmethod

import requests
import structlog
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout

from callsync.errors import DeliveryFailure
from callsync.models.config import WebhookConfig
from callsync.models.records import DiffResult
from callsync.utils.retry import exponential_backoff_retry

log = structlog.stdlib.get_logger()

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class Notifier(ABC):
    """Delivers a diff to a remote system."""

    @abstractmethod
    def deliver(self, diff: DiffResult) -> None:
        """
        Transmit the new entries of ``diff``.

        Raises:
            DeliveryFailure: If the diff could not be transmitted
        """


def is_retryable(error: Exception) -> bool:
    """Connection problems, timeouts, rate limits and server errors are transient."""
    if isinstance(error, (ConnectionError, Timeout)):
        return True
    if isinstance(error, HTTPError) and error.response is not None:
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return False


def render_messages(diff: DiffResult, max_length: int) -> list[str]:
    """
    Render the new entries as webhook messages.

    Lines are packed greedily; a single line longer than ``max_length`` is
    truncated.

    Args:
        diff: Diff whose new entries are rendered
        max_length: Maximum characters per message

    Returns:
        Messages in entry order
    """
    header = f"{diff.new_entry_count} new call(s) logged"
    lines = [header] + [record.describe() for record in diff.new_entries]

    messages: list[str] = []
    current = ""
    for line in lines:
        if len(line) > max_length:
            line = line[: max_length - 3] + "..."
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > max_length:
            messages.append(current)
            current = line
        else:
            current = candidate
    if current:
        messages.append(current)
    return messages


class WebhookNotifier(Notifier):
    """Posts new call records to a Discord-compatible webhook."""

    def __init__(
        self,
        url: str,
        username: str = "callsync",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        base_delay_seconds: float = 1.0,
        max_message_length: int = 2000,
        session: requests.Session | None = None,
    ):
        """
        Initialize the notifier.

        Args:
            url: Webhook URL
            username: Display name attached to each message
            timeout_seconds: HTTP timeout per request
            max_retries: Retries on transient errors
            base_delay_seconds: Initial backoff delay
            max_message_length: Maximum characters per message
            session: Optional requests session (a new one is created if None)
        """
        self._url = url
        self._username = username
        self._timeout = timeout_seconds
        self._max_message_length = max_message_length
        self._session = session or requests.Session()
        self._post = exponential_backoff_retry(
            max_retries=max_retries,
            base_delay=base_delay_seconds,
            max_delay=60.0,
            exceptions=(RequestException,),
            should_retry=is_retryable,
        )(self._post_once)

        log.info("webhook_notifier_initialized", max_retries=max_retries)

    @classmethod
    def from_config(
        cls, config: WebhookConfig, session: requests.Session | None = None
    ) -> "WebhookNotifier":
        """Build a notifier from the ``webhook`` config section."""
        if config.url is None:
            raise ValueError("webhook.url is required to build a WebhookNotifier")
        return cls(
            url=str(config.url),
            username=config.username,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            base_delay_seconds=config.base_delay_seconds,
            max_message_length=config.max_message_length,
            session=session,
        )

    def deliver(self, diff: DiffResult) -> None:
        if not diff.has_changes:
            log.info("nothing_to_deliver")
            return

        messages = render_messages(diff, self._max_message_length)
        log.info(
            "delivering_diff",
            new_entries=diff.new_entry_count,
            message_count=len(messages),
        )

        for index, content in enumerate(messages):
            try:
                self._post({"content": content, "username": self._username})
            except RequestException as e:
                log.error(
                    "webhook_delivery_failed",
                    message_index=index,
                    message_count=len(messages),
                    error=str(e),
                )
                raise DeliveryFailure(
                    f"Webhook delivery failed after {index} of {len(messages)} message(s): {e}"
                ) from e

        log.info("diff_delivered", message_count=len(messages))

    def _post_once(self, payload: dict) -> None:
        response = self._session.post(self._url, json=payload, timeout=self._timeout)
        response.raise_for_status()
