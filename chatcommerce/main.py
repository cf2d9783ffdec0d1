"""Main FastAPI application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from chatcommerce.core.logging import setup_logging
from chatcommerce.db.database import init_db
from chatcommerce.api import chat, health


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title="Chat Commerce",
    description="Conversational shopping across nearby shops",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(chat.router, tags=["chat"])
