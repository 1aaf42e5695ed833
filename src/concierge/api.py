"""
FastAPI application for the Concierge chat assistant.

Routes:
    POST /api/chat    - header X-Customer-ID, body {"messageText": ...}
    POST /api/logout  - header X-Customer-ID
    GET  /health
"""

import argparse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .connections.llm_connector import close_all_clients
from .connections.postgres_connector import close_all_connections
from .gateway import get_session_store, handle_chat, logout, rejection_message
from .utils.errors import MaliciousContentError, MissingCustomerIdError
from .utils.logging import get_logger, setup_logging
from .utils.settings import config

CUSTOMER_ID_HEADER = "X-Customer-ID"

setup_logging()
logger = get_logger()


class ChatRequest(BaseModel):
    messageText: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - startup and shutdown.

    Closes cached LLM clients and the database pool on shutdown.
    """
    del app
    logger.info("api.startup", environment=config.environment)

    yield

    logger.info("api.shutdown", active_sessions=get_session_store().active_count())
    try:
        await close_all_clients()
        logger.info("api.shutdown.llm_clients_closed")
    except Exception as e:  # pylint: disable=broad-exception-caught
        # Shutdown continues so the database pool is still released.
        logger.error("api.shutdown.llm_error", error=str(e))

    try:
        await close_all_connections()
        logger.info("api.shutdown.db_connections_closed")
    except Exception as e:  # pylint: disable=broad-exception-caught
        # Nothing else to release after the pool.
        logger.error("api.shutdown.db_error", error=str(e))


app = FastAPI(
    title="Concierge Banking Assistant",
    description="Conversational, read-only access to customer banking data",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MissingCustomerIdError)
async def missing_customer_id_handler(request: Request, exc: MissingCustomerIdError):
    del request
    return JSONResponse(status_code=400, content={"code": "MISSING_CUSTOMER_ID", "message": str(exc)})


@app.exception_handler(MaliciousContentError)
async def malicious_content_handler(request: Request, exc: MaliciousContentError):
    del request
    # The guard's reason is logged by the gateway; the customer gets a fixed message
    return JSONResponse(
        status_code=400,
        content={
            "code": "MALICIOUS_CONTENT",
            "message": rejection_message(exc.language),
            "language": exc.language,
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("api.unexpected_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"},
    )


@app.post("/api/chat")
async def chat(
    request: ChatRequest,
    customer_id: Optional[str] = Header(default=None, alias=CUSTOMER_ID_HEADER),
):
    """Answer one chat message from the customer named in the header."""
    response = await handle_chat(customer_id, request.messageText)
    return response.to_dict()


@app.post("/api/logout")
async def logout_endpoint(customer_id: Optional[str] = Header(default=None, alias=CUSTOMER_ID_HEADER)):
    """Drop the customer's session."""
    logout(customer_id)
    return {"status": "success", "message": "Logged out successfully"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "active_sessions": get_session_store().active_count(),
    }


def main():
    """Main entry point for the API server."""
    parser = argparse.ArgumentParser(description="Run the Concierge API")
    parser.add_argument("--host", default=config.api_host, help="Host to bind (default: API_HOST)")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind (default: API_PORT)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = parser.parse_args()

    uvicorn.run(
        "concierge.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
