"""
Utility functions for rate limiting, retry logic, and logging
"""
import sys
import os
import logging
import time
from datetime import datetime
from typing import Callable, Optional
from functools import wraps

import requests

from config import RATE_LIMIT_DELAY, MAX_RETRIES, RETRY_DELAY, RETRY_BACKOFF, CONSOLE_LOG_LEVEL, LOGS_DIR

logger = logging.getLogger(__name__)


def setup_logging(logs_dir: str = LOGS_DIR, console_level: int = CONSOLE_LOG_LEVEL) -> Optional[str]:
    """
    Configure file and console logging for an import run

    Args:
        logs_dir: Directory for the run's log file (created if missing)
        console_level: Level for console output; the file always gets DEBUG

    Returns:
        Path of the log file
    """
    # Configure Windows console for UTF-8 encoding to handle special characters
    if sys.platform == 'win32':
        if hasattr(sys.stdout, 'reconfigure'):
            sys.stdout.reconfigure(encoding='utf-8')
        if hasattr(sys.stderr, 'reconfigure'):
            sys.stderr.reconfigure(encoding='utf-8')

    if not os.path.exists(logs_dir):
        os.makedirs(logs_dir)

    log_filename = os.path.join(logs_dir, f'import_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    # Root logger at DEBUG so the file handler captures all levels
    logging.basicConfig(
        level=logging.DEBUG,
        handlers=[file_handler, console_handler],
        force=True
    )
    # urllib3 is chatty at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    return log_filename


def rate_limit(func: Callable) -> Callable:
    """Decorator to add rate limiting to API calls"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        time.sleep(RATE_LIMIT_DELAY)
        return func(*args, **kwargs)
    return wrapper


def _retry_reason(e: requests.exceptions.RequestException) -> Optional[str]:
    """Return a description if the error is worth retrying, None otherwise"""
    status = None
    if getattr(e, 'response', None) is not None:
        status = e.response.status_code

    if status and status in [429, 500, 502, 503, 504]:
        return f"HTTP {status}"
    if isinstance(e, (
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        requests.exceptions.ChunkedEncodingError,
    )):
        return f"Connection error: {type(e).__name__}"
    if e.args:
        error_str = str(e.args[0]).lower()
        if any(keyword in error_str for keyword in [
            'connection reset', 'connection aborted', 'broken pipe',
            'connection refused', 'timeout', 'network is unreachable'
        ]):
            return f"Connection issue: {error_str[:100]}"
    return None


def retry_with_backoff(max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY, backoff: float = RETRY_BACKOFF):
    """
    Decorator for retrying function calls with exponential backoff

    Only transport errors and 429/5xx responses are retried; anything else is
    raised immediately.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for exponential backoff
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            retries = 0
            current_delay = delay

            while True:
                try:
                    return func(*args, **kwargs)
                except requests.exceptions.RequestException as e:
                    retries += 1
                    if retries >= max_retries:
                        logger.error(f"Max retries ({max_retries}) exceeded for {func.__name__}: {e}")
                        raise

                    retry_reason = _retry_reason(e)
                    if not retry_reason:
                        raise

                    logger.warning(f"Retryable error ({retry_reason}) in {func.__name__}, retrying in {current_delay}s (attempt {retries}/{max_retries})...")
                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper
    return decorator
