import logging
import os
from typing import Optional

import requests
from dotenv import load_dotenv

from ..errors import ImageFetchError

load_dotenv()

logger = logging.getLogger(__name__)

# Some CDNs refuse requests without a browser-like agent.
FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/png,image/*,*/*",
}


class RemoteImageRepository:
    """
    Downloads image bytes.  No decoding here.
    """

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.timeout = timeout or float(os.getenv("FETCH_TIMEOUT_S", "15"))
        self.session = session or requests.Session()

    def fetch(self, url: str) -> bytes:
        try:
            response = self.session.get(url, headers=FETCH_HEADERS, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as err:
            raise ImageFetchError(f"Image could not be loaded: {url} ({err})") from err

        logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content
