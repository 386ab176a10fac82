"""
AgentGPT Configuration Module
Reads configuration from environment variables or .env file
"""

import logging
import os
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4"
DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"


def load_env_file(env_path: str = ".env") -> None:
    """
    Load environment variables from one or more .env files if they exist.

    Search order:
    1) Provided env_path (current working directory by default)
    2) The directory of this package
    3) $AGENTGPT_HOME/.env if AGENTGPT_HOME is set

    Only sets variables that are not already present in the environment.
    """
    candidates = [Path(env_path), Path(__file__).resolve().parent / ".env"]
    agent_home = os.environ.get("AGENTGPT_HOME")
    if agent_home:
        candidates.append(Path(agent_home) / ".env")

    for env_file in candidates:
        if not env_file.is_file():
            continue
        try:
            with open(env_file, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except OSError as e:
            logger.warning("Could not read %s: %s", env_file, e)
            continue
        for line in lines:
            line = line.strip()
            # Skip empty lines and comments
            if not line or line.startswith('#'):
                continue
            # Parse KEY=VALUE format
            if '=' in line:
                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()
                # Only set if not already in environment
                if key and value and not os.environ.get(key):
                    os.environ[key] = value


def get_config() -> Dict:
    """
    Get configuration from environment variables or .env file.

    Priority:
    1. Environment variables
    2. .env file
    3. Default values

    Returns:
        Dictionary with configuration settings
    """
    load_env_file()

    config = {
        "api_key": os.environ.get("AI_API_KEY"),
        "model": os.environ.get("MODEL", DEFAULT_MODEL),
        "api_endpoint": os.environ.get("API_ENDPOINT", DEFAULT_ENDPOINT),
        "temperature": float(os.environ.get("TEMPERATURE", "0.7")),
        "request_timeout": float(os.environ.get("REQUEST_TIMEOUT", "120")),
        "log_level": os.environ.get("LOG_LEVEL", "WARNING"),
    }

    return config


def validate_config(config: Dict) -> bool:
    """
    Validate that required configuration is present.

    Args:
        config: Configuration dictionary

    Returns:
        True if valid, False otherwise
    """
    if not config.get("api_key"):
        return False

    if not config.get("model"):
        return False

    if not config.get("api_endpoint"):
        return False

    return True
