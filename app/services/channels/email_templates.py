"""
Email templates for notification emails.
"""

from app.core.settings import settings
from pydantic import BaseModel
from html import escape
from typing import Optional, Tuple


class EmailTemplateData(BaseModel):
    """Values rendered into a notification email."""
    kind: str  # "status_change" | "new_comment"
    report_id: str
    report_title: str
    new_status: Optional[str] = None
    commenter_name: Optional[str] = None
    comment_excerpt: Optional[str] = None


_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: linear-gradient(135deg, #0D9488 0%, #1E3A8A 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }
    .content { background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px; }
    .status-badge { display: inline-block; padding: 8px 16px; background: #0D9488; color: white; border-radius: 20px; font-weight: bold; }
    .button { display: inline-block; padding: 12px 24px; background: #0D9488; color: white; text-decoration: none; border-radius: 5px; margin-top: 20px; }
    .footer { text-align: center; margin-top: 20px; color: #666; font-size: 12px; }
"""


def render_email(data: EmailTemplateData) -> Tuple[str, str]:
    """Return (subject, html) for a notification email."""
    title = escape(data.report_title)
    report_url = f"{settings.APP_PUBLIC_URL.rstrip('/')}/dashboard?report={escape(data.report_id)}"

    if data.kind == "new_comment":
        subject = f"New Comment on Your Report - {settings.APP_NAME}"
        heading = "Someone Commented on Your Report"
        details = (
            f"<p><strong>Report:</strong> {title}</p>"
            f"<p><strong>{escape(data.commenter_name or 'Someone')}</strong> wrote:</p>"
            f"<blockquote>{escape(data.comment_excerpt or '')}</blockquote>"
        )
    else:
        subject = f"Report Status Update - {settings.APP_NAME}"
        heading = "Your Report Has Been Updated!"
        details = (
            f"<p><strong>Report:</strong> {title}</p>"
            f"<p><strong>New Status:</strong> <span class=\"status-badge\">{escape(data.new_status or '')}</span></p>"
        )

    html = f"""<!DOCTYPE html>
<html>
<head>
  <style>{_STYLE}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>{escape(settings.APP_NAME)}</h1>
    </div>
    <div class="content">
      <h2>{heading}</h2>
      {details}
      <p>Thank you for helping make your community better. We'll keep you updated on the progress of your report.</p>
      <a href="{report_url}" class="button">View Report Details</a>
    </div>
    <div class="footer">
      <p>You can change which emails you receive in Notification Settings.</p>
    </div>
  </div>
</body>
</html>"""
    return subject, html
