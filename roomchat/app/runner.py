import argparse
import os
import socket
import sys
import threading
import time
import webbrowser
from pathlib import Path

import uvicorn


def _pick_free_port(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roomchat")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--backend", choices=["rest", "sql"], default=None)
    parser.add_argument("--db-path", default=None)
    parser.add_argument("--poll-interval-ms", type=int, default=None)
    parser.add_argument("--open", dest="open_browser", action="store_true")
    parser.add_argument("--no-open", dest="open_browser", action="store_false")
    parser.set_defaults(open_browser=False)
    return parser


def apply_overrides(args: argparse.Namespace) -> None:
    # settings are read from the environment when the app starts
    if args.backend:
        os.environ["ROOMCHAT_BACKEND"] = args.backend
    if args.db_path:
        p = Path(args.db_path).expanduser().resolve()
        p.parent.mkdir(parents=True, exist_ok=True)
        os.environ["ROOMCHAT_DATABASE_URL"] = f"sqlite:///{p}"
    if args.poll_interval_ms is not None:
        if args.poll_interval_ms <= 0:
            raise SystemExit("--poll-interval-ms must be positive")
        os.environ["ROOMCHAT_POLL_INTERVAL_MS"] = str(args.poll_interval_ms)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    apply_overrides(args)

    host = str(args.host)
    port = int(args.port)
    if port == 0:
        port = _pick_free_port(host)

    url = f"http://{host}:{port}/"

    if args.open_browser:
        def _open():
            time.sleep(0.8)
            try:
                webbrowser.open(url, new=1, autoraise=True)
            except Exception:
                pass

        threading.Thread(target=_open, daemon=True).start()

    uvicorn.run("roomchat.app.main:create_app", factory=True, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main(sys.argv[1:])
