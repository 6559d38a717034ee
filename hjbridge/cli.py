from __future__ import annotations

import argparse
import os

import uvicorn

from hjbridge.config import config_path_from_env, load_config


def main() -> None:
    parser = argparse.ArgumentParser(prog="hj-bridge", description="Run the HJ gateway bridge")
    parser.add_argument("--config", default=config_path_from_env())
    parser.add_argument("--host", default=os.environ.get("HJB_HOST"))
    parser.add_argument("--port", type=int, default=int(os.environ["HJB_PORT"]) if os.environ.get("HJB_PORT") else None)
    parser.add_argument("--log-level", default=os.environ.get("HJB_LOG_LEVEL"))
    args = parser.parse_args()

    config = load_config(args.config)
    # create_app() reads these back when uvicorn calls the factory.
    os.environ["HJB_CONFIG"] = args.config
    if args.log_level:
        os.environ["HJB_LOG_LEVEL"] = args.log_level

    # One worker only: the gateway session must be a single instance.
    uvicorn.run(
        "hjbridge.main:create_app",
        factory=True,
        host=args.host or config.http_server.host,
        port=args.port or config.http_server.port,
        log_level=(args.log_level or config.logging.level).lower(),
        workers=1,
    )


if __name__ == "__main__":
    main()
