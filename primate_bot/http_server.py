"""FastAPI server for Slack's HTTP event delivery."""

from fastapi import FastAPI, Request
from slack_bolt.adapter.fastapi.async_handler import AsyncSlackRequestHandler
from slack_bolt.async_app import AsyncApp

from . import __version__


def create_http_app(slack_app: AsyncApp) -> FastAPI:
    """Create the FastAPI application that forwards Slack events to Bolt.

    Bolt verifies the request signature with the configured signing secret.

    Args:
        slack_app: Bolt app with the bot's listeners registered.

    Returns:
        Configured FastAPI app
    """
    handler = AsyncSlackRequestHandler(slack_app)
    app = FastAPI(
        title="PRimate Bot",
        description="Slack event receiver for merge request review tracking",
        version=__version__,
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "primate-bot"}

    @app.post("/slack/events")
    async def slack_events(request: Request):
        """Events API and interactivity requests from Slack."""
        return await handler.handle(request)

    return app
