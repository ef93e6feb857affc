"""Desktop launcher opening the GM tracker API console in a PyWebView window."""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import time
import webbrowser
from pathlib import Path
from urllib import error, request
from urllib.parse import urlencode, urlsplit

ROOT_DIR = Path(__file__).resolve().parents[2]
SERVER_APP = "gmtracker.backend.api:app"

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GM Tracker launcher")
    parser.add_argument("--server", default="http://127.0.0.1:8000")
    parser.add_argument("--token", default="")
    parser.add_argument("--start-server", action="store_true")
    return parser.parse_args(argv)


def wait_for_server(server_url: str, timeout_s: float = 8.0) -> bool:
    start = time.time()
    while time.time() - start < timeout_s:
        try:
            with request.urlopen(f"{server_url}/docs", timeout=0.5) as response:
                if int(response.status) < 500:
                    return True
        except (error.URLError, TimeoutError):
            pass
        time.sleep(0.2)
    return False


def server_command(server_url: str) -> list[str]:
    parts = urlsplit(server_url)
    return [
        sys.executable,
        "-m",
        "uvicorn",
        SERVER_APP,
        "--host",
        parts.hostname or "127.0.0.1",
        "--port",
        str(parts.port or 8000),
    ]


def maybe_start_server(server_url: str) -> subprocess.Popen[str] | None:
    process = subprocess.Popen(server_command(server_url), cwd=str(ROOT_DIR), env=os.environ.copy())
    if wait_for_server(server_url):
        return process
    process.terminate()
    return None


def build_ui_url(server: str, token: str) -> str:
    base = f"{server.rstrip('/')}/docs"
    if not token:
        return base
    return f"{base}?{urlencode({'token': token})}"


def open_ui(url: str, title: str) -> None:
    try:
        import webview

        webview.create_window(title, url=url, width=1280, height=860)
        webview.start()
    except Exception:
        logger.warning("pywebview unavailable, opening %s in the browser", url)
        webbrowser.open(url)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    server_process: subprocess.Popen[str] | None = None
    if args.start_server:
        server_process = maybe_start_server(args.server)
        if server_process is None:
            print("Server could not be started.", file=sys.stderr)
            return 1
    elif not wait_for_server(args.server):
        print("Server not reachable. Use --start-server or run uvicorn manually.", file=sys.stderr)
        return 1

    try:
        open_ui(url=build_ui_url(server=args.server, token=args.token), title="GM Tracker")
    finally:
        if server_process is not None:
            server_process.terminate()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
