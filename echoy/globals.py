"""Paths, logging and secret lookup, used across various modules."""

import getpass
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import keyring
from keyring import get_password
from keyring.backends import null
from platformdirs import user_data_dir
from prompt_toolkit import prompt
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory

# Default directories and system details
APP_DIR = user_data_dir("Echoy")
CONFIG_DIR = os.path.join(APP_DIR, "config")
LOG_DIR = os.path.join(APP_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")
USER_NAME = getpass.getuser()

KEYRING_SERVICE = "EchoyAPI"

# In-memory history for the root prompt, must mutate
main_history = InMemoryHistory()


def init_logger(level: str = "ERROR"):
    """Initializes the logging system."""
    os.makedirs(LOG_DIR, exist_ok=True)
    date_str = datetime.now().strftime("%Y%m%d")
    # Output example: echoy_20251109.log
    log_path = os.path.join(LOG_DIR, f"echoy_{date_str}.log")
    # Max of 3 backups, max size of 1MB
    handler = RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.ERROR),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )


def log_exception(
    e: BaseException, context: str = "", logger: logging.Logger | None = None
):
    """Creates a full formatted traceback string and writes it to a log file"""
    import traceback

    # Format the traceback (exception class, exception instance, traceback object)
    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    msg = f"{context}\n{tb}" if context else tb
    (logger or logging.getLogger("echoy")).error(msg)


def setup_keyring_backend():
    """Safely detects a keyring backend."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logging.getLogger("echoy").error(
            f"Keyring backend failed. Falling back to NullBackend. Error: {e}"
        )


def retrieve_key() -> str:
    """
    Attempts to retrieve a stored API key.\n
    Prio: OPENAI_API_KEY env variable -> OS keyring entry -> Dummy key
    """
    api_key = os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        try:
            api_key = get_password(KEYRING_SERVICE, USER_NAME) or ""
        except Exception as e:
            logging.getLogger("echoy").warning(f"Keyring lookup failed: {e}")
    if not api_key:
        api_key = "dummy-key"
    return api_key


def root_prompt(user_name: str) -> str:
    """Line-oriented read for the chat loop."""
    return prompt(
        HTML(f"<seagreen>{user_name} &gt; </seagreen>"),
        history=main_history,
    )
