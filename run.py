import logging

import uvicorn

import config
from utils.logging_config import setup_logging

# Initialize centralized logging configuration
setup_logging()

from app import app

if __name__ == '__main__':
    logging.info(f"Starting API on {config.WEBAPP_HOST}:{config.WEBAPP_PORT} ({config.RUNTIME_ENVIRONMENT.value})")
    uvicorn.run(app, host=config.WEBAPP_HOST, port=config.WEBAPP_PORT, log_config=None)
