from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.notify.tokens import tokens_for_user

logger = logging.getLogger(__name__)

FCM_PROJECT_ID = os.environ.get("AUTOINSPECT_FCM_PROJECT_ID")
FCM_ACCESS_TOKEN = os.environ.get("AUTOINSPECT_FCM_ACCESS_TOKEN")
VAPID_PUBLIC_KEY = os.environ.get("AUTOINSPECT_VAPID_PUBLIC_KEY")

_FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project}/messages:send"


class MissingRecipients(ValueError):
    pass


@dataclass(frozen=True)
class PushMessage:
    title: str
    body: str
    data: dict[str, str] | None = None


@dataclass(frozen=True)
class DeliveryReport:
    success: bool
    sent: int
    failed: int


class PushSender(ABC):
    @abstractmethod
    async def send(self, token: str, message: PushMessage) -> None:
        """Deliver to one device. Raises on failure."""


class LoggingPushSender(PushSender):
    """Used when FCM is not configured: records what would be sent."""

    async def send(self, token: str, message: PushMessage) -> None:
        logger.info("Push to %s...: %s | %s", token[:20], message.title, message.body)


class FcmPushSender(PushSender):
    """Firebase Cloud Messaging HTTP v1."""

    def __init__(
        self, client: httpx.AsyncClient, project_id: str, access_token: str
    ) -> None:
        self._client = client
        self._url = _FCM_SEND_URL.format(project=project_id)
        self._access_token = access_token

    async def send(self, token: str, message: PushMessage) -> None:
        payload: dict[str, object] = {
            "token": token,
            "notification": {"title": message.title, "body": message.body},
        }
        if message.data:
            payload["data"] = message.data

        response = await self._client.post(
            self._url,
            json={"message": payload},
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        response.raise_for_status()


def create_push_sender() -> PushSender:
    if FCM_PROJECT_ID and FCM_ACCESS_TOKEN:
        return FcmPushSender(httpx.AsyncClient(), FCM_PROJECT_ID, FCM_ACCESS_TOKEN)
    logger.warning("FCM not configured, push notifications will only be logged")
    return LoggingPushSender()


async def send_notification(
    session: AsyncSession,
    sender: PushSender,
    message: PushMessage,
    *,
    user_id: UUID | None = None,
    tokens: Sequence[str] | None = None,
) -> DeliveryReport:
    """Fan a message out to explicit tokens or to every device of a user.

    Per-device failures are counted, never raised.
    """
    if tokens:
        targets = list(tokens)
    elif user_id is not None:
        targets = await tokens_for_user(session, user_id)
    else:
        raise MissingRecipients("Either userId or tokens must be provided")

    if not targets:
        logger.info("No push tokens found for user %s", user_id)
        return DeliveryReport(success=True, sent=0, failed=0)

    logger.info("Sending notification to %d devices", len(targets))
    results = await asyncio.gather(
        *(sender.send(token, message) for token in targets),
        return_exceptions=True,
    )

    failed = 0
    for token, result in zip(targets, results):
        if isinstance(result, BaseException):
            failed += 1
            logger.warning("Push to %s... failed: %s", token[:20], result)

    report = DeliveryReport(success=True, sent=len(targets) - failed, failed=failed)
    logger.info(
        "Notification results: %d successful, %d failed", report.sent, report.failed
    )
    return report
