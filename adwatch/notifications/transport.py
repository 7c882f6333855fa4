"""Mail transport abstraction used by the dispatcher."""

from abc import ABC, abstractmethod
from typing import Optional


class MailTransport(ABC):
    """Delivers a rendered alert to a marketplace user.

    Implementations resolve the user's address themselves and raise
    DispatchError when the message is not accepted.
    """

    @abstractmethod
    def send(
        self, to_user_id: str, subject: str, body: str, html_body: Optional[str] = None
    ) -> None:
        """Send one message.

        Args:
            to_user_id: Recipient user id
            subject: Subject line
            body: Plain-text body
            html_body: Optional HTML alternative

        Raises:
            DispatchError: If the message was rejected
        """
