"""
SMS send, web reply-link and inbound webhook endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response
from pydantic import BaseModel, Field

from fivec.core.dependencies import (
    get_inbound_sms_handler,
    get_notification_dispatcher,
    get_thread_manager,
)
from fivec.schemas.commands import SendSMSCommand
from fivec.schemas.results import SMSSendResult, ThreadConversation
from fivec.services.inbound_sms import InboundSMSHandler
from fivec.services.notification_dispatcher import NotificationDispatcher
from fivec.services.thread_manager import ThreadManager

router = APIRouter(prefix="/sms", tags=["sms"])


class ThreadReplyRequest(BaseModel):
    """Request schema for a reply sent from the web conversation page."""

    message: str = Field(..., min_length=1, description="Reply text")
    sender_name: Optional[str] = Field(None, description="Shown as '{sender} says:'")


@router.post("/send", response_model=SMSSendResult, summary="Send a threaded SMS")
async def send_sms(
    request: SendSMSCommand,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SMSSendResult:
    return await dispatcher.send_sms(
        to=request.to,
        message=request.message,
        thread_id=request.thread_id,
        group_name=request.group_name,
        sender_name=request.sender_name,
    )


@router.get(
    "/threads/{token}",
    response_model=ThreadConversation,
    responses={404: {"description": "Unknown or expired reply link"}},
    summary="Load the conversation behind a reply link",
)
async def get_thread_conversation(
    token: str,
    thread_manager: ThreadManager = Depends(get_thread_manager),
) -> ThreadConversation:
    thread = await thread_manager.get_thread_by_token(token)
    messages = await thread_manager.list_messages(thread.id)
    return ThreadConversation(thread=thread, messages=messages)


@router.post(
    "/threads/{token}/reply",
    response_model=SMSSendResult,
    responses={
        404: {"description": "Unknown or expired reply link"},
        409: {"description": "Recipient has unsubscribed"},
    },
    summary="Reply on the thread behind a reply link",
)
async def reply_to_thread(
    token: str,
    request: ThreadReplyRequest,
    thread_manager: ThreadManager = Depends(get_thread_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SMSSendResult:
    thread = await thread_manager.get_thread_by_token(token)
    return await dispatcher.send_sms(
        to=thread.phone_number,
        message=request.message,
        thread_id=thread.id,
        sender_name=request.sender_name,
    )


@router.post("/webhook", summary="Provider webhook for inbound SMS")
async def inbound_webhook(
    From: str = Form(...),
    To: Optional[str] = Form(None),
    Body: Optional[str] = Form(None),
    MessageSid: Optional[str] = Form(None),
    handler: InboundSMSHandler = Depends(get_inbound_sms_handler),
) -> Response:
    """Always answers 200 with TwiML so the provider does not retry."""
    twiml = await handler.handle_inbound(
        from_number=From,
        to_number=To,
        body=Body,
        message_sid=MessageSid,
    )
    return Response(content=twiml, media_type="text/xml")
