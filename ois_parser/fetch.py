"""Loading the raw export text from a file or URL.

Any failure to obtain the text is raised as :class:`InputUnreadable`; the
parser is only called once the text is in hand.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import requests

from . import config

logger = logging.getLogger(__name__)


class InputUnreadable(RuntimeError):
    """The raw text could not be fetched or read."""


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def _fetch_url(url: str, timeout: float) -> str:
    try:
        response = requests.get(url, timeout=timeout, headers={"User-Agent": config.USER_AGENT})
        response.raise_for_status()
    except requests.RequestException as e:
        raise InputUnreadable(f"could not fetch {url}: {e}") from e
    # Servers often omit the charset on text/csv, which makes requests guess latin-1
    if not response.encoding or response.encoding.lower() == "iso-8859-1":
        response.encoding = "utf-8"
    logger.info("fetched %s (%d bytes, status %d)", url, len(response.content), response.status_code)
    return response.text


def _read_file(path: str) -> str:
    if not os.path.isfile(path):
        raise InputUnreadable(f"input file not found: {path}")
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise InputUnreadable(f"could not read {path}: {e}") from e
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("%s is not valid UTF-8, decoding as latin-1", path)
        return data.decode("latin-1")


def load_raw_text(source: str, timeout: Optional[float] = None) -> str:
    """
    Return the raw export text from a local path or an http(s) URL.

    Args:
        source (str): File path or URL
        timeout (Optional[float]): HTTP timeout in seconds; defaults to
            config.HTTP_TIMEOUT

    Raises:
        InputUnreadable: On missing files, I/O errors, network errors and
            non-2xx responses
    """
    if not source:
        raise InputUnreadable("no input given")
    if _is_url(source):
        return _fetch_url(source, timeout if timeout is not None else config.HTTP_TIMEOUT)
    return _read_file(source)
