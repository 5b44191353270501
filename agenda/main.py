"""
Main entry point for the Reiki Agenda service.
Starts the HTTP API server.
"""

import logging

from aiohttp import web
from dotenv import load_dotenv

from config.settings import Settings, get_settings
from .api.routes import create_app
from .services.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


def build_slot_generator(settings: Settings) -> SlotGenerator:
    """Day grid builder configured from settings."""
    return SlotGenerator(
        day_start_hour=settings.day_start_hour,
        day_end_hour=settings.day_end_hour,
        slot_step_minutes=settings.slot_step_minutes,
        appointment_minutes=settings.appointment_minutes,
        timezone=settings.timezone,
        buffer_minutes=settings.booking_buffer_minutes if settings.booking_buffer_enabled else None,
    )


def run_api_server():
    """Run the HTTP API server."""
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app(
        settings=settings,
        slot_generator=build_slot_generator(settings),
    )

    logger.info(
        f"Starting API server on {settings.host}:{settings.port} "
        f"({settings.environment}, timezone {settings.timezone})"
    )
    web.run_app(app, host=settings.host, port=settings.port)


def main():
    """Main entry point."""
    # Load environment variables (override=True ensures .env values take precedence)
    load_dotenv(override=True)
    run_api_server()


if __name__ == "__main__":
    main()
