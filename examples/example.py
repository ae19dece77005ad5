"""Chat bot that answers ``!ping`` using an EventSub socket session."""

import asyncio
import logging
import os

from dotenv import load_dotenv

from twitch_events import (
    ChatMessageEvent,
    EventSubSession,
    Frame,
    HelixClient,
    NotificationRouter,
    SessionCallbacks,
    SubscriptionType,
    channel_chat_message,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

# Load environment variables from a .env file if present
load_dotenv(dotenv_path=".env")


async def main() -> None:
    """Read chat of the token owner's channel and reply to ``!ping``."""
    client_id = os.getenv("TWITCH_CLIENT_ID")
    token = os.getenv("TWITCH_TOKEN")
    if not client_id or not token:
        logger.error("Please set the TWITCH_CLIENT_ID and TWITCH_TOKEN environment variables.")
        return

    async with HelixClient(client_id, token) as client:
        validated = await client.validate_token()
        auth = validated.data
        if not validated.ok or auth is None or auth.user_id is None:
            logger.error("Token validation failed: %s", validated.message)
            return
        user_id = auth.user_id

        router = NotificationRouter()

        @router.on(SubscriptionType.CHANNEL_CHAT_MESSAGE, "1")
        async def handle_chat(frame: Frame) -> None:
            """Reply to ``!ping``."""
            event = frame.event_as(ChatMessageEvent)
            if event is None:
                return
            logger.info("%s: %s", event.chatter_user_name, event.message.text)
            if event.message.text.strip() == "!ping":
                await client.send_chat_message(
                    event.broadcaster_user_id,
                    user_id,
                    "Pong!",
                    reply_parent_message_id=event.message_id,
                )

        session: EventSubSession

        async def on_welcome(frame: Frame, is_reconnected: bool) -> None:  # noqa: FBT001
            """Subscribe once per fresh session."""
            if is_reconnected:
                return
            result = await client.create_eventsub_subscription(
                channel_chat_message(session, user_id, user_id)
            )
            if not result.ok:
                logger.error("Subscription failed: %s", result.message)

        async def on_close(code: int, reason: str) -> None:
            """Log closed connections."""
            logger.info("Connection closed (%d): %s", code, reason)

        session = EventSubSession(
            authorization=auth,
            callbacks=SessionCallbacks(
                on_welcome=on_welcome,
                on_notification=router.dispatch,
                on_close=on_close,
            ),
        )

        async with session:
            logger.info("Listening for chat... (Ctrl+C to stop)")
            await session.wait_closed()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
