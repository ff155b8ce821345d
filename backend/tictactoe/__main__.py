"""Запуск сервера: python -m tictactoe [port]."""
import argparse

import uvicorn

from .config import get_config


def main() -> None:
    config = get_config()
    parser = argparse.ArgumentParser(prog="tictactoe", description="WebSocket tic-tac-toe server")
    parser.add_argument("port", nargs="?", type=int, default=config.port, help="port to listen on")
    args = parser.parse_args()
    uvicorn.run(
        "tictactoe.main:app",
        host=config.host,
        port=args.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
