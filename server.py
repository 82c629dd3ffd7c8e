# server.py
import logging

import uvicorn

import config
from startup_env import validate_port_env

logger = logging.getLogger("api.startup")


def main() -> None:
    port = validate_port_env()
    from app import app

    logger.info("server_listening host=%s port=%s", config.HOST, port)
    uvicorn.run(app, host=config.HOST, port=port, log_config=None)


if __name__ == "__main__":
    main()
