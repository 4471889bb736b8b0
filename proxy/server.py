"""
Uvicorn wrapper used by the CLI.
"""
import logging
import os
from typing import Optional

import uvicorn

from config.settings import BIND_ADDRESS, LOG_LEVEL, PORT
from proxy.app import app

logger = logging.getLogger(__name__)


class ProxyServer:
    """Proxy server wrapper for CLI control"""

    def __init__(
        self,
        debug: bool = False,
        bind_address: Optional[str] = None,
        port: Optional[int] = None,
        model: Optional[str] = None,
        monitor: bool = False,
    ):
        self.server = None
        self.config = None
        self.debug = debug
        self.bind_address = bind_address or BIND_ADDRESS
        self.port = port or PORT
        if model:
            app.state.default_model = model
        if monitor:
            app.state.monitor_mode = True

        if debug:
            self._setup_debug_logging()

    def _setup_debug_logging(self):
        """Send DEBUG output to the console and append it to proxy_debug.log"""
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        # Clear existing handlers to avoid duplicates
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        log_file = os.path.abspath('proxy_debug.log')
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        logger.info(f"Debug logging enabled - appending to {log_file}")

    def run(self):
        """Run the proxy server (blocking)"""
        logger.info(f"Starting Anthropic OpenRouter Proxy on http://{self.bind_address}:{self.port}")
        logger.info("Available endpoints: /v1/messages, /v1/messages/count_tokens, /health")
        self.config = uvicorn.Config(
            app,
            host=self.bind_address,
            port=self.port,
            log_level="debug" if self.debug else LOG_LEVEL,
            access_log=False,
        )
        self.server = uvicorn.Server(self.config)
        self.server.run()

    def stop(self):
        """Stop the proxy server"""
        if self.server:
            self.server.should_exit = True
