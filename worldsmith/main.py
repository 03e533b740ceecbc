"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from worldsmith import __version__
from worldsmith.api.endpoints import router
from worldsmith.utils.logging import setup_logging

setup_logging()

# Create FastAPI application
app = FastAPI(
    title="Worldsmith Agent",
    description=(
        "A conversational agent for building fictional worlds, with tool calling, "
        "streamed replies and persisted per-session history."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    tags_metadata=[
        {
            "name": "Conversation",
            "description": (
                "Run conversation turns. Replies stream as newline-delimited JSON chunks "
                "or are returned whole with their structured content parts."
            ),
        },
        {
            "name": "History",
            "description": "Read, clear and archive the persisted history of a session.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-Id"],
)

# Include routers
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("worldsmith.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
