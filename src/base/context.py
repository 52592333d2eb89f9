from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from src.notify.email import EmailSender
from src.notify.push import PushSender
from src.realtime.feed import ChangeFeed
from src.storage.interface import MediaStorage


@dataclass
class AppContext:
    """Long-lived collaborators shared by every request.

    Built once in the app lifespan and handed to routers through
    `get_context`, so tests can swap any of them.
    """

    feed: ChangeFeed
    storage: MediaStorage
    push: PushSender
    email: EmailSender


def get_context(request: Request) -> AppContext:
    return request.app.state.context
