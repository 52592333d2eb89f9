import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.base.context import AppContext
from src.base.db import async_session
from src.functions.router import router as functions_router
from src.inspection.router import router as inspection_router
from src.negotiation.router import router as negotiation_router
from src.notify.dispatcher import NotificationDispatcher
from src.notify.email import LoggingEmailSender
from src.notify.push import create_push_sender
from src.notify.router import router as push_token_router
from src.realtime.feed import ChangeFeed
from src.realtime.router import router as realtime_router
from src.storage import create_storage
from src.user.router import router as staff_router

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    context = AppContext(
        feed=ChangeFeed(),
        storage=create_storage(),
        push=create_push_sender(),
        email=LoggingEmailSender(),
    )
    app.state.context = context

    dispatcher = NotificationDispatcher(context.feed, context.push, async_session)
    dispatcher.start()
    yield
    await dispatcher.stop()
    context.feed.close_all()


app = FastAPI(title="AutoInspect", lifespan=lifespan)
app.include_router(inspection_router)
app.include_router(negotiation_router)
app.include_router(staff_router)
app.include_router(functions_router)
app.include_router(push_token_router)
app.include_router(realtime_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
