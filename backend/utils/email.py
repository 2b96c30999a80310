"""
utils/email.py — SendGrid email helpers.

All outbound email goes through `send_email()`. It is a no-op if
SENDGRID_API_KEY is not configured, so the app runs without email in
development and tests.
"""

import re
import logging

log = logging.getLogger(__name__)

BRAND = "NCH Community"


def send_email(to_email: str, subject: str, html_body: str, text_body: str = "") -> bool:
    """
    Send a transactional email via SendGrid.

    Returns True on success, False on failure. Failures are logged, not
    raised; the Celery task decides whether to retry.
    """
    from flask import current_app

    api_key   = current_app.config.get("SENDGRID_API_KEY", "")
    from_addr = current_app.config.get("SENDGRID_FROM_EMAIL", "contact@nch-community.online")

    if not api_key:
        log.warning(f"SendGrid not configured — email to {to_email} suppressed.")
        return False

    plain = text_body or _html_to_plain(html_body)

    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail, Email, To, Content

        message = Mail(
            from_email=Email(from_addr, BRAND),
            to_emails=To(to_email),
            subject=subject,
        )
        message.add_content(Content("text/plain", plain))
        message.add_content(Content("text/html", html_body))

        response = SendGridAPIClient(api_key).send(message)
        if response.status_code in (200, 202):
            log.info(f"Email sent to {to_email}: {subject!r} (status {response.status_code})")
            return True
        log.error(f"SendGrid returned {response.status_code} sending to {to_email}")
        return False

    except Exception as exc:
        log.error(f"SendGrid error sending to {to_email}: {exc}")
        return False


def _html_to_plain(html: str) -> str:
    """Naïve HTML → plain text fallback (strips tags)."""
    text = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _layout(accent: str, body: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family:Arial,sans-serif;color:#1e293b;max-width:560px;margin:0 auto;padding:24px;">
  <h2 style="color:#0f1a2e;margin-bottom:4px;">{BRAND}</h2>
  <hr style="border:none;border-top:2px solid {accent};margin-bottom:24px;">
{body}
</body>
</html>
"""


# ── Email templates ───────────────────────────────────────────────────────────

def registration_approved_email(client_name: str, login_email: str, portal_url: str) -> tuple[str, str]:
    """Returns (subject, html_body) sent when an admin approves a registration."""
    subject = f"Your {BRAND} account is active"
    html = _layout("#16a34a", f"""
  <p>Dear <strong>{client_name}</strong>,</p>
  <p>Your payment receipt has been verified and your account is now active.</p>
  <p>Sign in with <strong>{login_email}</strong> and the password shown when you registered.</p>
  <p style="text-align:center;margin:32px 0;">
    <a href="{portal_url}" style="background:#16a34a;color:#fff;text-decoration:none;
       padding:12px 28px;border-radius:4px;font-weight:600;display:inline-block;">
      Open My Space
    </a>
  </p>
""")
    return subject, html


def registration_rejected_email(client_name: str, reason: str) -> tuple[str, str]:
    """Returns (subject, html_body) sent when an admin rejects a registration."""
    subject = f"Your {BRAND} registration could not be approved"
    html = _layout("#dc2626", f"""
  <p>Dear <strong>{client_name}</strong>,</p>
  <p>We could not verify your registration payment.</p>
  <p><strong>Reason:</strong> {reason}</p>
  <p>Please contact us if you believe this is a mistake.</p>
""")
    return subject, html


STATUS_LABELS = {
    "approved":  "approved",
    "rejected":  "not accepted",
    "completed": "completed",
}


def status_update_email(client_name: str, new_status: str) -> tuple[str, str]:
    """Returns (subject, html_body) for a case status change."""
    label = STATUS_LABELS.get(new_status, new_status)
    accent = "#dc2626" if new_status == "rejected" else "#2962cc"
    subject = f"Your file has been {label}"
    html = _layout(accent, f"""
  <p>Dear <strong>{client_name}</strong>,</p>
  <p>The status of your file has been updated to <strong>{label}</strong>.</p>
  <p>You can follow every step of your file from your client space.</p>
""")
    return subject, html


def payment_verified_email(client_name: str, amount: float, remaining: float) -> tuple[str, str]:
    """Returns (subject, html_body) when a payment receipt is verified."""
    subject = "Your payment has been verified"
    balance = (
        f"<p>Remaining balance: <strong>{remaining:,.0f} DA</strong>.</p>"
        if remaining > 0 else "<p>Your file is fully paid.</p>"
    )
    html = _layout("#16a34a", f"""
  <p>Dear <strong>{client_name}</strong>,</p>
  <p>We have verified your payment of <strong>{amount:,.0f} DA</strong>.</p>
  {balance}
""")
    return subject, html
