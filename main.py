#!/usr/bin/env python3
"""
SmokeStream - DJ Smoke Stream chat client

A GTK3 desktop chat window over a hosted chat-completions API, with image
drops rendered inline.
"""
import gi
gi.require_version("Gtk", "3.0")

import asyncio
import logging
import os
import sys
import threading

from config import load_config

# Optional backend override for debugging:
# SMOKESTREAM_FORCE_X11=1 python3 main.py
if os.environ.get("SMOKESTREAM_FORCE_X11") == "1":
    os.environ["GDK_BACKEND"] = "x11"

CONFIG = load_config()

logging.basicConfig(
    level=getattr(logging, CONFIG.log_level, logging.DEBUG),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

from ui.main_window import MainWindow
import constants as C

from gi.repository import Gtk, Gio, GLib


class AsyncioThread(threading.Thread):
    """Runs the network event loop beside the GTK main loop."""

    def __init__(self):
        super().__init__(daemon=True)
        self.loop = None
        self.started = threading.Event()

    def run(self):
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        logger.info("Asyncio event loop started in separate thread.")
        self.started.set()
        self.loop.run_forever()

    def stop(self):
        if self.loop and self.loop.is_running():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self.join(timeout=5)
            if self.loop.is_running():
                logger.warning("Asyncio thread did not stop gracefully.")
            logger.info("Asyncio event loop stopped.")


class SmokeStreamApplication(Gtk.Application):
    """Main GTK Application class."""

    def __init__(self, config):
        super().__init__(
            application_id=C.APP_ID,
            flags=Gio.ApplicationFlags.FLAGS_NONE
        )
        self.config = config
        self.window = None
        self.asyncio_thread = AsyncioThread()
        self.connect("activate", self._on_activate)
        self.connect("shutdown", self._on_shutdown)

        self.asyncio_thread.start()
        self.asyncio_thread.started.wait(timeout=5)
        logger.debug("Asyncio thread started and loop is ready.")

    def _on_shutdown(self, app):
        logger.debug("Application shutdown initiated.")
        self.asyncio_thread.stop()

    def _on_activate(self, app):
        if self.window is None:
            self.window = MainWindow(self, self.asyncio_thread, self.config)
        self.window.present()
        GLib.idle_add(self._initialize_async)

    def _initialize_async(self):
        """Hand the window's async setup to the asyncio thread."""
        if self.asyncio_thread.loop and self.asyncio_thread.loop.is_running():
            asyncio.run_coroutine_threadsafe(self.window._async_init(), self.asyncio_thread.loop)
        else:
            logger.error("Asyncio loop not running in separate thread.")
        return False


def main():
    """Main entry point."""
    app = SmokeStreamApplication(CONFIG)
    return app.run(sys.argv[:1])


if __name__ == "__main__":
    sys.exit(main())
