"""
Email service for invitation and verification messages.
Uses Flask-Mail for SMTP integration.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message
from markupsafe import escape

from tenantkit.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def mail_enabled() -> bool:
    """True when the SMTP host and credentials are configured."""
    cfg = current_app.config
    return bool(cfg.get("MAIL_SERVER") and cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"))


def _invitation_message(to_email, invite_url, tenant_name, role):
    ttl_days = current_app.config.get('INVITATION_TTL_DAYS', 7)
    subject = f"You've been invited to join {tenant_name}"
    text_body = (
        f"You've been invited to join {tenant_name} as a {role}.\n\n"
        f"Accept the invitation: {invite_url}\n\n"
        f"This invitation will expire in {ttl_days} days.\n"
        "If you didn't expect this invitation, you can safely ignore this email."
    )
    safe_tenant, safe_role, safe_url = escape(tenant_name), escape(role), escape(invite_url)
    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>You've been invited!</h2>
        <p>You've been invited to join <strong>{safe_tenant}</strong> as a <strong>{safe_role}</strong>.</p>
        <p>Click the button below to accept the invitation:</p>
        <div style="text-align: center; margin: 30px 0;">
            <a href="{safe_url}"
               style="background-color: #4F46E5; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
                Accept Invitation
            </a>
        </div>
        <p style="color: #666; font-size: 14px;">Or copy and paste this link into your browser:</p>
        <p style="color: #666; font-size: 14px; word-break: break-all;">{safe_url}</p>
        <p style="color: #999; font-size: 12px;">This invitation will expire in {ttl_days} days.</p>
    </div>
    """
    return Message(subject=subject, recipients=[to_email], body=text_body, html=html_body)


def deliver_invitation_email(to_email: str, invite_url: str, tenant_name: str, role: str) -> None:
    """
    Send an invitation email, raising on failure.

    Raises:
        EmailDeliveryError: SMTP not configured or the server refused the message
    """
    if not mail_enabled():
        logger.error("[EMAIL] SMTP not configured")
        raise EmailDeliveryError("SMTP not configured. Required: SMTP_HOST, SMTP_USER, SMTP_PASS")

    logger.info(f"[EMAIL] Sending invitation to {to_email} as {role}")
    try:
        mail.send(_invitation_message(to_email, invite_url, tenant_name, role))
    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send invitation to {to_email}")
        raise EmailDeliveryError(f"Failed to send email: {e}") from e


def send_invitation_email(to_email: str, invite_url: str, tenant_name: str, role: str) -> bool:
    """
    Best-effort invitation email.

    Returns:
        True if sent successfully, False otherwise
    """
    try:
        deliver_invitation_email(to_email, invite_url, tenant_name, role)
    except EmailDeliveryError as e:
        logger.warning(f"[EMAIL] Invitation email to {to_email} not delivered: {e.message}")
        return False
    return True


def send_verification_email(to_email: str, verify_url: str) -> bool:
    """Best-effort email-address verification message."""
    if not mail_enabled():
        logger.warning(f"[MAIL DISABLED] Verification email skipped for {to_email}")
        return False

    msg = Message(
        subject="Verify your email address",
        recipients=[to_email],
        body=(
            "Confirm your email address to finish setting up your account:\n\n"
            f"{verify_url}\n\n"
            "If you did not create an account, you can ignore this email."
        ),
        html=(
            "<p>Confirm your email address to finish setting up your account:</p>"
            f'<p><a href="{escape(verify_url)}">Verify email</a></p>'
        ),
    )
    try:
        mail.send(msg)
    except Exception:
        logger.exception(f"[EMAIL] Failed to send verification email to {to_email}")
        return False
    logger.info(f"[EMAIL] Verification email sent to {to_email}")
    return True
