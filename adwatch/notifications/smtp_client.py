"""SMTP mail transport.

Thin wrapper around smtplib with support for TLS/SSL, authentication and
connection lifecycle management. Recipient addresses are resolved through
the user directory at send time.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from adwatch.config.environment import EnvironmentConfig
from adwatch.users import UserDirectory, UserDirectoryError

from .models import DispatchError, RecipientUnavailableError
from .transport import MailTransport

logger = logging.getLogger(__name__)


class SMTPMailTransport(MailTransport):
    """MailTransport over SMTP.

    Port 465 uses implicit TLS; any other port uses STARTTLS when
    ``use_tls`` is set. The smtplib factories are injectable for testing.
    """

    def __init__(
        self,
        user_directory: UserDirectory,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """
        Args:
            user_directory: Resolves recipient addresses
            env_config: Environment configuration with SMTP settings
            use_tls: Whether to use TLS (STARTTLS or implicit SSL)
            smtp_factory: Factory function for creating SMTP instances (for mocking)
            smtp_ssl_factory: Factory function for creating SMTP_SSL instances (for mocking)
        """
        self.user_directory = user_directory
        self.env_config = env_config
        self.use_tls = use_tls
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(
        self, to_user_id: str, subject: str, body: str, html_body: Optional[str] = None
    ) -> None:
        recipient = self._resolve_recipient(to_user_id)

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = build_sender_address(self.env_config)
        message["To"] = recipient
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")

        self._deliver(message, to_user_id)

    def _resolve_recipient(self, user_id: str) -> str:
        try:
            address = self.user_directory.get_email(user_id)
        except UserDirectoryError as e:
            raise DispatchError(
                f"Could not resolve address of user {user_id}: {e}", owner_id=user_id
            ) from e

        if not address:
            raise RecipientUnavailableError(
                f"User {user_id} is unknown or has no email address", owner_id=user_id
            )

        try:
            return validate_email(address, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise RecipientUnavailableError(
                f"Invalid email address for user {user_id}: '{address}' - {e}",
                owner_id=user_id,
            ) from e

    def _deliver(self, message: EmailMessage, user_id: str) -> None:
        """Open a connection, authenticate, send and always close.

        Raises:
            DispatchError: If message delivery fails
        """
        env = self.env_config
        smtp = None
        try:
            if env.smtp_port == 465:
                logger.debug(f"Connecting to {env.smtp_host}:{env.smtp_port} with implicit TLS")
                context = ssl.create_default_context()
                smtp = self.smtp_ssl_factory(env.smtp_host, env.smtp_port, context=context)
            else:
                logger.debug(f"Connecting to {env.smtp_host}:{env.smtp_port}")
                smtp = self.smtp_factory(env.smtp_host, env.smtp_port)

                if self.use_tls:
                    logger.debug("Upgrading connection with STARTTLS")
                    context = ssl.create_default_context()
                    smtp.starttls(context=context)

            if env.smtp_user and env.smtp_pass:
                logger.debug(f"Authenticating as {env.smtp_user}")
                smtp.login(env.smtp_user, env.smtp_pass)

            smtp.send_message(message)
            logger.debug(f"Message sent successfully to {message['To']}")

        except smtplib.SMTPException as e:
            error_msg = f"SMTP error during message delivery: {e}"
            logger.error(error_msg)
            raise DispatchError(error_msg, owner_id=user_id) from e
        except OSError as e:
            error_msg = f"Network error during SMTP connection: {e}"
            logger.error(error_msg)
            raise DispatchError(error_msg, owner_id=user_id) from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the 'From' address for outgoing alerts.

    Uses SMTP_SENDER_EMAIL if set, then SMTP_USER, otherwise a noreply
    address at the SMTP host.

    Returns:
        Formatted sender address (e.g., "FoxBuy Watchdog <user@example.com>")
    """
    if env_config.smtp_sender_email:
        sender_email = env_config.smtp_sender_email
    elif env_config.smtp_user:
        sender_email = env_config.smtp_user
    else:
        sender_email = f"noreply@{env_config.smtp_host}"

    return f"{env_config.smtp_sender_name} <{sender_email}>"
