import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Dict, Any

from config import EMAIL_FROM, EMAIL_HOST, EMAIL_PASSWORD, EMAIL_PORT, EMAIL_USER

logger = logging.getLogger(__name__)


def build_proxy_notification(substitute_email: str, details: Dict[str, Any]) -> MIMEMultipart:
    """Builds the HTML message telling a teacher about a proxy duty."""
    msg = MIMEMultipart("alternative")
    msg['Subject'] = f"Proxy Duty Assigned - {details['date']} Period {details['period_no']}"
    msg['From'] = EMAIL_FROM
    msg['To'] = substitute_email

    body_html = f"""
    <html>
    <body style="font-family: sans-serif; padding: 20px; border: 1px solid #ddd; max-width: 600px; margin: auto;">
        <h3 style="color: #4f46e5;">Proxy Assignment</h3>
        <p>Dear {details['substitute_name']},</p>
        <p>You have been assigned to cover a class due to an absence.</p>
        <table style="width: 100%; border-collapse: collapse; margin-top: 15px;">
            <tr><td style="padding: 8px; border: 1px solid #ddd; font-weight: bold;">Date:</td><td style="padding: 8px; border: 1px solid #ddd;">{details['date']} ({details['day']})</td></tr>
            <tr><td style="padding: 8px; border: 1px solid #ddd; font-weight: bold;">Period:</td><td style="padding: 8px; border: 1px solid #ddd;">{details['period_no']} ({details['time']})</td></tr>
            <tr><td style="padding: 8px; border: 1px solid #ddd; font-weight: bold;">Class/Subject:</td><td style="padding: 8px; border: 1px solid #ddd;">{details['class_name']} ({details['subject']})</td></tr>
            <tr><td style="padding: 8px; border: 1px solid #ddd; font-weight: bold;">Absent Teacher:</td><td style="padding: 8px; border: 1px solid #ddd;">{details['absent_name']}</td></tr>
            <tr><td style="padding: 8px; border: 1px solid #ddd; font-weight: bold;">Reason:</td><td style="padding: 8px; border: 1px solid #ddd;">{details['reason'] or 'Absent'}</td></tr>
        </table>
        <p style="margin-top: 20px;">Please check the updated schedule. Thank you for covering this period.</p>
    </body>
    </html>
    """
    msg.attach(MIMEText(body_html, 'html'))
    return msg


def send_proxy_notification(substitute_email: str, details: Dict[str, Any]) -> bool:
    """
    Sends an email notification to the assigned proxy teacher.
    Uses the SMTP settings from the environment. A failed send is logged and
    reported as False; the proxy itself stays assigned.
    """
    msg = build_proxy_notification(substitute_email, details)

    try:
        with smtplib.SMTP(EMAIL_HOST, EMAIL_PORT) as server:
            server.starttls()  # Secure the connection
            server.login(EMAIL_USER, EMAIL_PASSWORD)
            server.sendmail(EMAIL_FROM, substitute_email, msg.as_string())
        logger.info("Proxy notification sent to %s", substitute_email)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send proxy notification to %s: %s", substitute_email, e)
        return False
