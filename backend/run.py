"""
Development server for the token vault API.

Usage:
    python run.py              # normal mode
    python run.py --reload     # with auto-reload

asyncpg needs a SelectorEventLoop, which uvicorn does not pick on Windows;
the loop factory is patched before startup there.
"""
import argparse
import sys

import uvicorn

APP = "token_vault.main:app"


def _use_selector_loop_on_windows() -> None:
    if sys.platform != "win32":
        return
    import asyncio
    import uvicorn.loops.asyncio as uvicorn_loops

    uvicorn_loops.asyncio_loop_factory = lambda use_subprocess=False: asyncio.SelectorEventLoop


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the token vault API")
    parser.add_argument("--reload", action="store_true", default=False)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    _use_selector_loop_on_windows()
    uvicorn.run(APP, host=args.host, port=args.port, reload=args.reload, loop="asyncio", log_config=None)


if __name__ == "__main__":
    main()
