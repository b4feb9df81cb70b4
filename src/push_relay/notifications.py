"""Desktop notifications via notify-send."""

import subprocess
from pathlib import Path

import structlog

from push_relay import logging as console
from push_relay.config import NotificationsConfig

log = structlog.get_logger()


def send_notification(
    title: str,
    message: str,
    icon: Path | None = None,
    urgency: str = "normal",
    app_name: str = "push-relay",
    expire_ms: int = 0,
) -> bool:
    """Send a freedesktop notification via notify-send.

    Args:
        title: Notification summary
        message: Notification body
        icon: Optional path to an icon image
        urgency: low, normal or critical
        app_name: Application name shown by the notification server
        expire_ms: Expiry in milliseconds, 0 for the server default

    Returns:
        True if notification was sent successfully
    """
    cmd = ["notify-send", "-a", app_name, "-u", urgency]
    if expire_ms > 0:
        cmd += ["-t", str(expire_ms)]
    if icon is not None:
        cmd += ["-i", str(icon)]
    # "--" so a title starting with "-" isn't parsed as an option
    cmd += ["--", title, message]

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=5)
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        log.warning("notification_failed", error=str(e))
        return False

    if result.returncode != 0:
        log.warning(
            "notification_failed",
            returncode=result.returncode,
            stderr=result.stderr.decode(errors="replace").strip(),
        )
        return False

    log.debug("notification_sent", title=title)
    return True


def urgency_for(priority: int, high_urgency: str = "critical") -> str:
    """Map an API priority (-2..2) to a notify-send urgency."""
    if priority >= 1:
        return high_urgency
    if priority < 0:
        return "low"
    return "normal"


class Notifier:
    """Notification sink for relayed messages.

    Interactive messages become desktop popups; low-priority ones are
    printed to the console only.
    """

    def __init__(self, config: NotificationsConfig):
        self.config = config

    def show(self, title: str, body: str, icon: Path | None = None, priority: int = 0) -> None:
        """Pop up a desktop notification."""
        if not self.config.enabled:
            console.message_printed(title, body)
            return

        send_notification(
            title=title,
            message=body,
            icon=icon,
            urgency=urgency_for(priority, self.config.high_priority_urgency),
            app_name=self.config.app_name,
            expire_ms=self.config.expire_ms,
        )

    def show_quiet(self, title: str, body: str) -> None:
        """Textual sink for priority < 0 messages."""
        console.low_priority_message(title, body)
