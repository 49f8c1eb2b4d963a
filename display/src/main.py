#!/usr/bin/env python3
"""
Raffle Drawing Display Application

Main entry point: polls the drawing backend, sequences the reveal and
elimination animations, and serves the view state to display clients.
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (3 levels up from this file)
load_dotenv(Path(__file__).parent.parent.parent / '.env')

# Ensure package imports work when running this file directly
sys.path.insert(0, str(Path(__file__).parent))

from backend.client import DrawingBackendClient
from drawing.engine import DrawingEngine
from utils.config import get_int, load_config
from utils.logger import configure_logging, get_logger
from web_server import DrawingWebServer

logger = get_logger(__name__)


class DrawingDisplayApp:
    """Wires the backend client, drawing engine and web server together.

    Handles graceful shutdown on SIGINT/SIGTERM and logs a startup summary
    for diagnostics.
    """

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        app_config = self.config.get('app', {})
        configure_logging(app_config.get('log_level'), app_config.get('log_file'))
        self.backend_client = None
        self.engine = None
        self.web_server = None
        self.running = True

        logger.info("🎟️  Raffle Drawing Display initialized")

    def _handle_signal(self, signum, frame):
        logger.info(f"📡 Received signal {signum}, initiating graceful shutdown...")
        self.running = False

    def _display_config_summary(self):
        logger.info("=" * 60)
        logger.info("📋 CONFIGURATION SUMMARY")
        logger.info("=" * 60)

        backend_config = self.config.get('backend', {})
        logger.info(f"🔗 Backend URL: {backend_config.get('base_url', 'http://localhost:5000/api')}")
        logger.info(f"🔑 Auth Token: {'configured' if backend_config.get('auth_token') else 'none'}")

        drawing_config = self.config.get('drawing', {})
        logger.info(f"🎲 Raffle ID: {drawing_config.get('raffle_id', 'Not configured')}")
        logger.info(f"⏱️  Poll Interval: {drawing_config.get('poll_interval_sec', 5.0)}s")

        server_config = self.config.get('server', {})
        logger.info(f"🌍 Server Host: {server_config.get('host', '0.0.0.0')}")
        logger.info(f"🔌 Server Port: {server_config.get('port', 8080)}")

        logger.info("=" * 60)

    async def initialize(self):
        """Create the backend client, drawing engine and web server."""
        logger.info("🚀 Initializing Raffle Drawing Display")
        self._display_config_summary()

        if get_int(self.config, 'drawing.raffle_id', 0) <= 0:
            raise ValueError("drawing.raffle_id must be configured (DRAWING_RAFFLE_ID)")

        logger.info("🔗 Initializing backend client...")
        self.backend_client = DrawingBackendClient(self.config)

        logger.info("🎯 Initializing drawing engine...")
        self.engine = DrawingEngine(self.config, client=self.backend_client)

        logger.info("🌐 Initializing web server...")
        self.web_server = DrawingWebServer(self.config, self.engine, self.backend_client)

        logger.info("🎉 Initialization completed")

    async def start(self):
        """Start services and run until a shutdown signal is received."""
        try:
            await self.initialize()

            logger.info("🔄 Starting snapshot polling...")
            await self.engine.start()

            server_host = self.config.get('server', {}).get('host', '0.0.0.0')
            server_port = get_int(self.config, 'server.port', 8080)

            logger.info(f"🌍 Starting web server on {server_host}:{server_port}...")
            server_task = asyncio.create_task(self.web_server.start(host=server_host, port=server_port))
            # Give the server a moment to bind; a failed bind finishes the task early
            await asyncio.sleep(0.2)
            if server_task.done() and server_task.exception():
                logger.error(f"Web server task failed during startup: {server_task.exception()}")
                raise server_task.exception()

            self._display_startup_summary()

            while self.running and not server_task.done():
                await asyncio.sleep(1)

            logger.info("🛑 Shutdown signal received, stopping application...")
        finally:
            await self.stop()

    async def stop(self):
        """Stop all services and release resources. Safe to call more than once."""
        logger.info("🛑 Stopping Raffle Drawing Display")
        self.running = False

        if self.engine is not None:
            try:
                await self.engine.stop()
                logger.info("✅ Drawing engine stopped")
            except Exception as e:
                logger.error(f"❌ Error stopping drawing engine: {e}")

        if self.web_server is not None:
            try:
                await self.web_server.stop()
                logger.info("✅ Web server stopped")
            except Exception as e:
                logger.error(f"❌ Error stopping web server: {e}")

        if self.backend_client is not None:
            try:
                await self.backend_client.close()
                logger.info("✅ Backend client closed")
            except Exception as e:
                logger.error(f"❌ Error closing backend client: {e}")

        logger.info("🟢 Raffle Drawing Display stopped")

    def _display_startup_summary(self):
        logger.info("=" * 60)
        logger.info("🔰 RAFFLE DRAWING DISPLAY STARTED")
        logger.info("=" * 60)

        try:
            status = self.engine.get_status() if self.engine else {}
            logger.info(f"🎲 Raffle: #{status.get('raffle_id')}")
            logger.info(f"📊 Drawing Status: {status.get('status') or 'unknown'}")
            logger.info(f"🔢 Revealed Digits: {status.get('revealed_digits') or '-'}")
        except Exception as e:
            logger.warning(f"⚠️  Could not get engine status: {e}")

        server_config = self.config.get('server', {})
        host = server_config.get('host', '0.0.0.0')
        port = server_config.get('port', 8080)

        logger.info("=" * 60)
        logger.info("🌐 SERVER ACCESS")
        logger.info("=" * 60)
        logger.info(f"📡 WebSocket: ws://{host}:{port}/ws/drawing")
        logger.info(f"🔧 API Endpoints: http://{host}:{port}/api/")
        logger.info("=" * 60)


async def main():
    """Main entry point for the Raffle Drawing Display"""
    app = DrawingDisplayApp()

    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("🛑 Interrupted by user")
    except Exception as e:
        logger.exception(f"❌ Raffle Drawing Display failed: {e}")
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
