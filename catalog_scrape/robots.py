# robots.py
import logging
import urllib.robotparser as urp
from typing import Callable, Dict, List
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)

UA = "CatalogScrape/1.0"


def fetch_robots(robots_url: str, timeout: float = 5) -> List[str]:
    r = requests.get(robots_url, timeout=timeout)
    r.raise_for_status()
    return r.text.splitlines()


class RobotsGate:
    """robots.txt rules per origin, fetched once per origin."""

    def __init__(self, user_agent: str = UA, fetch: Callable[[str], List[str]] = fetch_robots):
        self.user_agent = user_agent
        self.fetch = fetch
        self.parsers: Dict[str, urp.RobotFileParser] = {}

    def parser_for(self, url: str) -> urp.RobotFileParser:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}"
        rp = self.parsers.get(origin)
        if rp is None:
            rp = urp.RobotFileParser()
            try:
                lines = self.fetch(f"{origin}/robots.txt")
            except requests.RequestException as exc:
                # No readable rules means nothing is disallowed.
                logger.warning("robots.txt unavailable for %s (%s); allowing", origin, exc)
                lines = []
            rp.parse(lines)
            self.parsers[origin] = rp
        return rp

    def allowed(self, url: str) -> bool:
        return self.parser_for(url).can_fetch(self.user_agent, url)


_default_gate = RobotsGate()


def allowed(url: str) -> bool:
    return _default_gate.allowed(url)
