"""
Shared HTTP session for calls to eBird and Nominatim

Every request gets the configured timeout unless the caller passes one.
Retries are off by default: a failed call surfaces immediately as
``UpstreamUnavailable``. Pass a ``Retry`` to ``create_session`` to turn
them on for every service at once.
"""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from bird_sightings import __version__
from bird_sightings.config import EXTERNAL_TIMEOUT

NO_RETRY = Retry(total=0, raise_on_status=False)

# Nominatim's usage policy requires an identifying User-Agent
USER_AGENT = f"bird-sightings/{__version__}"


def create_session(retry: Optional[Retry] = None, timeout: float = EXTERNAL_TIMEOUT) -> requests.Session:
    """
    Build a ``requests.Session`` with a retry adapter and default timeout

    Args:
        retry: Retry strategy for the mounted adapters (defaults to ``NO_RETRY``)
        timeout: Seconds applied to every request that doesn't set its own
    """
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry or NO_RETRY)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.headers["User-Agent"] = USER_AGENT

    _original_send = s.send

    def _send_with_timeout(prepared, **kwargs):
        # Session.request always passes timeout, as None when unset
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = timeout
        return _original_send(prepared, **kwargs)

    s.send = _send_with_timeout
    return s


session = create_session()
