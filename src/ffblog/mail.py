"""
Outgoing mail for account verification and password resets.

When ``MAIL_HOST`` is configured messages go out over SMTP; otherwise
they are written to the ``mail`` log channel so development setups can
copy links out of ``storage/logs/mail.log``.
"""

import logging
import smtplib
from email.message import EmailMessage

from flask import current_app, render_template, url_for

from . import logger as log_channels

logger = logging.getLogger(__name__)


class Mailer:
    """Render and deliver templated mail using the current app's config."""

    def send(self, to, subject, template, **context):
        """Render ``mail/<template>.txt`` and deliver it.

        :returns: ``True`` when the message was handed to SMTP or logged.
        """
        cfg = current_app.config
        body = render_template(f"mail/{template}.txt", app_name=cfg.get("APP_NAME"), **context)

        if not cfg.get("MAIL_HOST"):
            log_channels.channel("mail").info(
                "Mail not sent (no MAIL_HOST); logged instead",
                extra={"context": {"to": to, "subject": subject, "body": body}},
            )
            return True

        message = EmailMessage()
        message["From"] = cfg.get("MAIL_FROM")
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(cfg["MAIL_HOST"], cfg.get("MAIL_PORT", 25), timeout=10) as smtp:
                smtp.send_message(message)
        except (OSError, smtplib.SMTPException) as exc:
            logger.error("Mail delivery failed", extra={"context": {"to": to, "error": str(exc)}})
            return False

        logger.info("Mail sent", extra={"context": {"to": to, "subject": subject}})
        return True

    def send_verification_email(self, user, token):
        link = url_for("auth.verify_email", token=token, _external=True)
        return self.send(user.email, "Verify your email address", "verify", user=user, link=link)

    def send_password_reset_email(self, user, token):
        link = url_for("auth.reset_password", token=token, _external=True)
        return self.send(user.email, "Reset your password", "reset", user=user, link=link)

    def send_welcome_email(self, user):
        link = url_for("auth.login", _external=True)
        return self.send(user.email, "Welcome!", "welcome", user=user, link=link)
