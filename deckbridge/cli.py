from __future__ import annotations

import argparse
import os

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(prog="deckbridge-server", description="Run the openHAB control-surface bridge")
    parser.add_argument("--host", default=os.environ.get("DECK_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("DECK_PORT", "8765")))
    parser.add_argument("--log-level", default=os.environ.get("DECK_LOG_LEVEL", "info"))
    args = parser.parse_args()

    # Single worker: the bridge holds one openHAB session and in-memory bindings.
    uvicorn.run(
        "deckbridge.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        workers=1,
    )


if __name__ == "__main__":
    main()
