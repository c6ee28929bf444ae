"""Desktop GUI launcher for JarScan using pywebview.

Opens a native window around the FastAPI web interface and adds a native
file chooser for picking the jar to process.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import time
from pathlib import Path


def _get_log_file_path() -> Path:
    """Get path to log file for debugging startup issues."""
    if sys.platform == "win32":
        appdata = os.environ.get("LOCALAPPDATA", os.path.expanduser("~"))
        log_dir = Path(appdata) / "JarScan" / "logs"
    elif sys.platform == "darwin":
        log_dir = Path.home() / "Library" / "Logs" / "JarScan"
    else:
        log_dir = Path.home() / ".local" / "share" / "jarscan" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "jarscan.log"


def _setup_logging() -> None:
    """Configure logging to both console and file."""
    log_file = _get_log_file_path()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # The file always gets DEBUG so skipped entries can be traced after the fact
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


logger = logging.getLogger(__name__)


def _start_server(host: str, timeout: float = 30.0):
    """Serve the web app on a free port in a daemon thread.

    Returns the running ``uvicorn.Server`` once it accepts connections.
    """
    import uvicorn

    from jarscan.web.app import app

    # Port 0 lets the OS pick the port; the bound socket tells us which one.
    config = uvicorn.Config(app, host=host, port=0, log_level="warning", access_log=False)
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="jarscan-server", daemon=True)
    thread.start()

    deadline = time.monotonic() + timeout
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            server.should_exit = True
            raise RuntimeError("Web server failed to start")
        time.sleep(0.05)
    return server


def _server_url(server) -> str:
    host, port = server.servers[0].sockets[0].getsockname()[:2]
    return f"http://{host}:{port}"


class DesktopApi:
    """Functions exposed to the page as ``window.pywebview.api``."""

    def __init__(self) -> None:
        self.window = None

    def select_file(self) -> str | None:
        import webview

        if self.window is None:
            return None
        selection = self.window.create_file_dialog(
            webview.FileDialog.OPEN,
            allow_multiple=False,
            file_types=("JAR Files (*.jar)", "All files (*.*)"),
        )
        if not selection:
            return None
        return str(selection[0])


def main() -> None:
    """Launch the JarScan desktop application."""
    _setup_logging()
    logger.info("JarScan starting up...")
    logger.info("Platform: %s, Python: %s", sys.platform, sys.version)

    try:
        import webview
    except ImportError as exc:
        logger.error(
            "pywebview is not installed. Install the gui extras with: pip install 'jarscan[gui]'"
        )
        raise SystemExit(1) from exc

    try:
        server = _start_server("127.0.0.1")
        url = _server_url(server)
        logger.info("JarScan server listening on %s", url)

        api = DesktopApi()
        window = webview.create_window(
            title="JarScan",
            url=url,
            js_api=api,
            width=800,
            height=600,
            min_size=(640, 480),
            resizable=True,
            text_select=True,
        )
        api.window = window

        def on_closed() -> None:
            logger.info("Window closed, shutting down server...")
            server.should_exit = True

        window.events.closed += on_closed

        # Blocks until the window is closed
        webview.start(private_mode=False)
        logger.info("JarScan closed normally.")

    except SystemExit:
        raise
    except Exception as e:
        logger.exception("Fatal error during JarScan startup: %s", e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
