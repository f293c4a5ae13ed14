# app/main.py

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api import auth, messages, ws
from app.core.config import CORS_ORIGINS, HOST, LOG_LEVEL, PORT
from app.core.rate_limit import limiter
from app.infra.postgres import init_db
from app.realtime.router import EventRouter
from app.services.message_store import MessageStore
from app.utils.logger import setup_logger

setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Chat Backend",
    version="1.0.0",
    description="One-to-one realtime chat with presence, typing and read receipts",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# One router per process; owns the presence table
app.state.event_router = EventRouter(store=MessageStore())

# Register routers
app.include_router(auth.router, tags=["Auth"])
app.include_router(messages.router, tags=["Messages"])
app.include_router(ws.router, tags=["Realtime"])

@app.get("/health")
def health_check():
    return {
        "status": "ok",
        "connections": app.state.event_router.connection_count,
        "online": len(app.state.event_router.presence),
    }


@app.get("/ping")
def ping():
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}


def run():
    uvicorn.run("app.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
