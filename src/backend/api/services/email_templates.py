"""
Fixed HTML email templates for complaint notifications.

Every interpolated value is HTML-escaped here; stored complaint text is plain
text and is never trusted as markup.
"""
from dataclasses import dataclass
from html import escape
from typing import Optional

from db.enums import ComplaintPriority

PRIORITY_COLORS = {
    ComplaintPriority.HIGH.value: "#dc2626",
    ComplaintPriority.MEDIUM.value: "#d97706",
    ComplaintPriority.LOW.value: "#16a34a",
}


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def _layout(system_name: str, heading: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; background: #f3f4f6; padding: 24px;">
    <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 8px; overflow: hidden;">
      <div style="background: #1e40af; color: #ffffff; padding: 20px;">
        <h1 style="margin: 0; font-size: 20px;">{escape(heading)}</h1>
      </div>
      <div style="padding: 20px; color: #111827;">
        {body}
      </div>
      <div style="padding: 12px 20px; background: #f9fafb; color: #6b7280; font-size: 12px;">
        This is an automated message from {escape(system_name)}.
      </div>
    </div>
  </body>
</html>"""


def _details_table(snapshot) -> str:
    color = PRIORITY_COLORS.get(snapshot.priority, "#374151")
    rows = [
        ("Title", escape(snapshot.title)),
        ("Category", escape(snapshot.category)),
        ("Priority", f'<span style="color: {color}; font-weight: bold;">{escape(snapshot.priority)}</span>'),
        ("Submitted by", escape(snapshot.user_email)),
        ("Submitted", escape(snapshot.date_submitted.strftime("%Y-%m-%d %H:%M UTC"))),
    ]
    cells = "".join(
        f'<tr><td style="padding: 6px 12px 6px 0; color: #6b7280;">{label}</td><td style="padding: 6px 0;">{value}</td></tr>'
        for label, value in rows
    )
    return f'<table style="border-collapse: collapse;">{cells}</table>'


def _link(base_url: str) -> str:
    url = escape(f"{base_url.rstrip('/')}/admin/complaints", quote=True)
    return (
        f'<p style="margin-top: 20px;"><a href="{url}" '
        f'style="background: #1e40af; color: #ffffff; padding: 10px 16px; '
        f'border-radius: 6px; text-decoration: none;">View in dashboard</a></p>'
    )


def render_new_complaint(snapshot, system_name: str, base_url: str) -> RenderedEmail:
    body = (
        "<p>A new complaint has been submitted and is waiting for review.</p>"
        f"{_details_table(snapshot)}"
        '<h3 style="margin-bottom: 4px;">Description</h3>'
        f'<p style="white-space: pre-wrap;">{escape(snapshot.description)}</p>'
        f"{_link(base_url)}"
    )
    text = (
        "A new complaint has been submitted.\n\n"
        f"Title: {snapshot.title}\n"
        f"Category: {snapshot.category}\n"
        f"Priority: {snapshot.priority}\n"
        f"Submitted by: {snapshot.user_email}\n\n"
        f"{snapshot.description}\n"
    )
    return RenderedEmail(
        subject=f"New Complaint Received: {snapshot.title}",
        html=_layout(system_name, "New Complaint Received", body),
        text=text,
    )


def render_status_changed(
    snapshot, previous_status: Optional[str], system_name: str, base_url: str
) -> RenderedEmail:
    old = previous_status or "Unknown"
    body = (
        "<p>The status of a complaint has been updated.</p>"
        f'<p style="font-size: 16px;"><strong>{escape(old)}</strong> &rarr; '
        f"<strong>{escape(snapshot.status)}</strong></p>"
        f"{_details_table(snapshot)}"
        f"{_link(base_url)}"
    )
    text = (
        "The status of a complaint has been updated.\n\n"
        f"Title: {snapshot.title}\n"
        f"Status: {old} -> {snapshot.status}\n"
    )
    return RenderedEmail(
        subject=f"Complaint Status Updated: {snapshot.title}",
        html=_layout(system_name, "Complaint Status Updated", body),
        text=text,
    )


def render_test_email(system_name: str, smtp_host: str, smtp_port: int) -> RenderedEmail:
    body = (
        f"<p>This is a test email from {escape(system_name)}.</p>"
        f"<p>SMTP server: {escape(smtp_host)}:{smtp_port}</p>"
        "<p>If you received this message, your email configuration is working correctly.</p>"
    )
    return RenderedEmail(
        subject=f"{system_name} - Email Configuration Test",
        html=_layout(system_name, "Email Configuration Test", body),
        text=(
            f"This is a test email from {system_name}.\n"
            f"SMTP server: {smtp_host}:{smtp_port}\n"
        ),
    )
