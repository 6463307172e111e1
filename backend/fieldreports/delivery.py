"""Renders composed reports to HTML and sends them by email."""
import logging
import time
from pathlib import Path
from typing import Optional, Dict, Any, List, Callable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .exceptions import DeliveryError
from .mailer import is_connection_fault

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

STANDARD_TEMPLATE = "field_report.html"
ALERT_TEMPLATE = "alert_report.html"

RISK_COLORS = {
    "Very High": "#B91C1C",
    "High": "#EA580C",
    "Medium": "#CA8A04",
    "Low": "#65A30D",
    "Very Low": "#15803D",
}


class ReportDelivery:
    """
    Delivery adapter: template selection, rendering, send with retry, audit log.

    A failed send is retried ``send_retries`` more times with a fixed backoff,
    reconnecting the shared transport when the failure is connection-level.
    """

    def __init__(
        self,
        mailer,
        store=None,
        send_retries: int = 2,
        backoff_seconds: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
        template_dir: Optional[Path] = None,
    ):
        self.mailer = mailer
        self.store = store
        self.send_retries = send_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.globals["risk_colors"] = RISK_COLORS

    def select_template(self, report: Dict[str, Any]) -> str:
        return ALERT_TEMPLATE if report.get("is_alert") else STANDARD_TEMPLATE

    def render(self, report: Dict[str, Any]) -> str:
        template = self.env.get_template(self.select_template(report))
        return template.render(report=report, **report)

    def build_subject(self, report: Dict[str, Any]) -> str:
        farm = report.get("farm_name") or "Your Farm"
        crop = (report.get("field") or {}).get("crop_type")
        subject = f"Yieldera {report.get('report_title', 'Field Report')}: {farm}"
        if crop:
            subject += f" - {crop}"
        return subject

    def deliver(self, report: Dict[str, Any], attachments: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Render and send a report.

        Returns:
            The email gateway's result (``message_id``)

        Raises:
            DeliveryError: no recipient, or every send attempt failed
        """
        recipient = report.get("recipient") or {}
        to = recipient.get("email")
        if not to:
            raise DeliveryError("Report has no recipient email address")

        html = self.render(report)
        subject = self.build_subject(report)

        try:
            result = self._send_with_retry(to, subject, html, attachments or [])
        except DeliveryError:
            self._log(report, success=False)
            raise

        self._log(report, success=True)
        return result

    def _send_with_retry(self, to: str, subject: str, html: str, attachments: List[Dict[str, Any]]) -> Dict[str, Any]:
        attempts = self.send_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                return self.mailer.send(to, subject, html, attachments)
            except Exception as e:
                last_error = e
                logger.error(f"Error sending email to {to} (attempt {attempt}/{attempts}): {e}")
                if attempt == attempts:
                    break
                if is_connection_fault(e):
                    logger.info("Recreating email transport before retrying")
                    self.mailer.reset()
                self.sleep(self.backoff_seconds)

        raise DeliveryError(f"Failed to send email after {attempts} attempts: {last_error}") from last_error

    def _log(self, report: Dict[str, Any], success: bool):
        if self.store is None:
            return
        try:
            self.store.log_report(
                report["field"].get("id"),
                (report.get("recipient") or {}).get("user_id"),
                success,
            )
        except Exception as e:
            logger.error(f"Error logging report delivery: {e}")
