"""
Inbound SMS webhook processing.
"""
from typing import Optional
from xml.sax.saxutils import escape

import structlog

from fivec.core.exceptions import ConfigError, GatewayError
from fivec.models.sms import MessageDirection, SMSThread
from fivec.services.gateways import SMSGateway
from fivec.services.thread_manager import ThreadManager

logger = structlog.get_logger(__name__)

UNSUBSCRIBE_KEYWORDS = ("stop", "unsubscribe")
SUBSCRIBE_KEYWORDS = ("start", "subscribe")

UNSUBSCRIBED_REPLY = "You've been unsubscribed from SMS notifications. Text START to resubscribe."
SUBSCRIBED_REPLY = "You're now subscribed to SMS notifications from 5C Community!"
LINK_REPLY = "Here's your personalized link to respond via the web interface: {link}"
ACK_REPLY = (
    "Message received! To view the full conversation and respond, visit: {link}"
    "\n\nOr continue texting here."
)

TWIML_OK = "Message received successfully!"
TWIML_ERROR = "Sorry, there was an error processing your message. Please try again."


def twiml_response(message: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<Response>\n"
        f"  <Message>{escape(message)}</Message>\n"
        "</Response>"
    )


class InboundSMSHandler:
    """Logs inbound texts on their thread and answers keyword commands."""

    def __init__(self, thread_manager: ThreadManager, sms_gateway: SMSGateway):
        self.thread_manager = thread_manager
        self.sms_gateway = sms_gateway

    async def handle_inbound(
        self,
        from_number: str,
        to_number: Optional[str],
        body: Optional[str],
        message_sid: Optional[str],
    ) -> str:
        """
        Process a provider webhook for an inbound SMS.

        Returns:
            TwiML document; always produced, even when processing fails, so
            the provider does not retry the webhook
        """
        body = body or ""
        logger.info(
            "Received inbound SMS",
            from_number=from_number,
            to_number=to_number,
            body_preview=body[:100],
            message_sid=message_sid,
        )

        try:
            thread = await self.thread_manager.find_thread_for_inbound(from_number)
            await self.thread_manager.append_message(
                thread,
                MessageDirection.INBOUND,
                body,
                provider_message_id=message_sid,
                provider_status="received",
                from_number=from_number,
                to_number=to_number,
            )
            await self._handle_command(thread, body)
        except Exception as e:
            logger.error("Error processing inbound SMS", from_number=from_number, error=str(e))
            return twiml_response(TWIML_ERROR)

        return twiml_response(TWIML_OK)

    async def _handle_command(self, thread: SMSThread, body: str) -> None:
        command = body.strip().lower()
        link = self.thread_manager.build_response_link(thread)

        if command in UNSUBSCRIBE_KEYWORDS:
            await self.thread_manager.set_active(thread, False)
            await self._reply(thread, UNSUBSCRIBED_REPLY)
        elif command in SUBSCRIBE_KEYWORDS:
            await self.thread_manager.set_active(thread, True)
            await self._reply(thread, SUBSCRIBED_REPLY)
        elif command.startswith("link") or "web" in command:
            await self._reply(thread, LINK_REPLY.format(link=link))
        else:
            await self._reply(thread, ACK_REPLY.format(link=link))

    async def _reply(self, thread: SMSThread, text: str) -> bool:
        """Send an automatic reply. Failures are logged, never raised."""
        try:
            receipt = await self.sms_gateway.send(thread.phone_number, text)
        except (ConfigError, GatewayError) as e:
            logger.error("Failed to send SMS auto-reply", thread_id=thread.id, error=str(e))
            return False

        await self.thread_manager.append_message(
            thread,
            MessageDirection.OUTBOUND,
            text,
            provider_message_id=receipt.sid,
            provider_status=receipt.status,
            from_number=receipt.from_number,
            to_number=receipt.to_number or thread.phone_number,
        )
        return True
