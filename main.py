# main.py
import os
import sys
import json
import copy
import logging
import argparse
from pathlib import Path

from api import ApiClient
from checkout import CheckoutSession
from logger import LOGGER_NAME, setup_logger

logger = logging.getLogger(LOGGER_NAME)

# Default configuration
DEFAULT_CONFIG = {
    "api": {
        "base_url": "http://localhost:8000/api/v1",
        "timeout": 10,
        "token": None
    },
    "receipt": {
        "receipt_dir": "receipts",
        "format": "txt"
    },
    "export": {
        "default_dir": "exports"
    },
    "logging": {
        "level": "INFO",
        "file": "logs/pos.log"
    },
    "checkout": {
        "enforce_stock": True
    },
    "layout": "auto",
    "theme": "default"
}


def merge_config(base, override):
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path="config.json"):
    """Load configuration from JSON file or create default if not exists"""
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
            logger.info(f"Configuration loaded from {config_path}")
            return merge_config(DEFAULT_CONFIG, config)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config: {e}")
            return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4)
    logger.info(f"Created default configuration at {config_path}")

    return copy.deepcopy(DEFAULT_CONFIG)


def setup_directories(config):
    """Create required directories if they don't exist."""
    dir_mappings = {
        'receipt_dir': config.get('receipt', {}).get('receipt_dir', 'receipts'),
        'export_dir': config.get('export', {}).get('default_dir', 'exports'),
        'log_dir': os.path.dirname(config.get('logging', {}).get('file', 'logs/pos.log'))
    }

    for dir_key, dir_path in dir_mappings.items():
        if not dir_path:
            continue
        path = Path(dir_path)
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created directory: {path}")
        else:
            logger.debug(f"Directory already exists: {path}")


def create_session(config):
    api_config = config.get("api", {})
    client = ApiClient(
        api_config.get("base_url", DEFAULT_CONFIG["api"]["base_url"]),
        token=api_config.get("token"),
        timeout=api_config.get("timeout", 10),
    )
    return CheckoutSession(
        client,
        enforce_stock=config.get("checkout", {}).get("enforce_stock", True),
        export_dir=config.get("export", {}).get("default_dir", "exports"),
    )


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Clothing store POS checkout")
    parser.add_argument("--config", help="Path to configuration file", default="config.json")
    parser.add_argument("--debug", help="Enable debug mode", action="store_true")
    parser.add_argument("--base-url", help="Backend API base URL (overrides config)")
    parser.add_argument("--layout", choices=("auto", "compact", "wide"),
                        help="Checkout layout (overrides config)")
    return parser.parse_args(argv)


def main(argv=None):
    try:
        args = parse_arguments(argv)

        config = load_config(args.config)
        if args.debug:
            config["logging"]["level"] = "DEBUG"
        if args.base_url:
            config["api"]["base_url"] = args.base_url
        if args.layout:
            config["layout"] = args.layout

        setup_logger(config)
        logger.debug("Debug mode enabled")

        setup_directories(config)

        session = create_session(config)
        logger.info(f"Using backend {session.client.base_url}")

        # tkinter is only needed once the window is opened
        from ui import CheckoutUI

        app = CheckoutUI(session, config)
        logger.info("Starting POS checkout")
        app.run()

    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
