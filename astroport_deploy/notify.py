import traceback
from abc import ABC, abstractmethod
from typing import Optional

import click
import requests

from astroport_deploy.constants import SLACK_TIMEOUT


class Notifier(ABC):
    """Best-effort channel used to report a failed deployment."""

    @abstractmethod
    def notify(self, title: str, message: str, trace: str) -> None:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    def notify(self, title: str, message: str, trace: str) -> None:
        click.secho(f"\n! {title}: {message}", fg="red", err=True)
        if trace:
            click.secho(trace, fg="red", err=True)


class SlackNotifier(Notifier):
    """Posts failures to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, timeout: int = SLACK_TIMEOUT):
        self.webhook_url = webhook_url
        self.timeout = timeout

    @staticmethod
    def _payload(title: str, message: str, trace: str) -> dict:
        text = f"*{title}*\n{message}"
        if trace:
            text = f"{text}\n```{trace}```"
        return {"text": text}

    def notify(self, title: str, message: str, trace: str) -> None:
        try:
            response = requests.post(
                self.webhook_url,
                json=self._payload(title, message, trace),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            click.secho(f"(!) Could not send Slack notification: {e}", fg="yellow", err=True)


def notifier_from_webhook(webhook_url: Optional[str]) -> Notifier:
    """Returns a Slack notifier if a webhook is configured, otherwise the console."""
    if webhook_url:
        return SlackNotifier(webhook_url=webhook_url)
    return ConsoleNotifier()


def report_failure(notifier: Notifier, error: BaseException, title: str) -> None:
    """
    Sends an error through a notifier. A failing notifier is reported on the
    console and never replaces the original error.
    """
    trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    try:
        notifier.notify(title, str(error), trace)
    except Exception as e:
        click.secho(f"(!) Failed to send notification: {e}", fg="yellow", err=True)
