# radar/page/host.py
# Purpose: What the page-side scanner needs from its host (document, events, background link).
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from radar.settings import REQUEST_TIMEOUT


class PageElement:
    """A text-bearing node. `connected` goes False once the host removes it from the document."""

    text: str = ""
    connected: bool = True

    def set_badge(self, address: str, badge) -> None:
        raise NotImplementedError


class PageHost:
    hostname: str = ""

    def text_elements(self, root: Optional[Any] = None) -> Iterable[PageElement]:
        """Elements worth scanning under `root` (the whole document when None)."""
        raise NotImplementedError

    def observe_mutations(self, callback: Callable[[List[Any]], None]) -> None:
        raise NotImplementedError

    def observe_scroll(self, callback: Callable[[], None]) -> None:
        raise NotImplementedError


class TextElement(PageElement):
    """Plain in-memory element: keeps the latest badge per address."""

    def __init__(self, text: str, children: Optional[List["TextElement"]] = None):
        self.text = text
        self.children = list(children or [])
        self.connected = True
        self.badges: Dict[str, Any] = {}
        self.history: List[Any] = []

    def set_badge(self, address: str, badge) -> None:
        self.badges[address] = badge
        self.history.append(badge)

    def detach(self):
        self.connected = False
        for child in self.children:
            child.detach()


class StaticPageHost(PageHost):
    """In-memory document. `append()` fires the mutation callback, `scroll()` the scroll one."""

    def __init__(self, hostname: str, elements: Optional[List[TextElement]] = None):
        self.hostname = hostname
        self.elements: List[TextElement] = list(elements or [])
        self._on_mutation: List[Callable[[List[Any]], None]] = []
        self._on_scroll: List[Callable[[], None]] = []

    def text_elements(self, root: Optional[Any] = None) -> Iterable[PageElement]:
        stack = [root] if root is not None else list(self.elements)
        out = []
        while stack:
            el = stack.pop(0)
            if el.connected and el.text:
                out.append(el)
            stack.extend(getattr(el, "children", []))
        return out

    def observe_mutations(self, callback):
        self._on_mutation.append(callback)

    def observe_scroll(self, callback):
        self._on_scroll.append(callback)

    def append(self, *elements: TextElement):
        self.elements.extend(elements)
        for cb in self._on_mutation:
            cb(list(elements))

    def remove(self, element: TextElement):
        element.detach()
        if element in self.elements:
            self.elements.remove(element)

    def scroll(self):
        for cb in self._on_scroll:
            cb()


def _strip_www(host: str) -> str:
    host = (host or "").strip().lower()
    return host[4:] if host.startswith("www.") else host


def is_domain_allowed(hostname: str, allowed_websites: Optional[Iterable[str]]) -> bool:
    """Exact or subdomain match, ignoring a leading www. on either side."""
    allowed = [d for d in (allowed_websites or []) if d]
    host = (hostname or "").lower()
    if not allowed:
        return "x.com" in host or "twitter.com" in host
    host = _strip_www(host)
    for domain in allowed:
        d = _strip_www(domain)
        if host == d or host.endswith("." + d):
            return True
    return False


class MessageClient:
    async def send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class LocalMessageClient(MessageClient):
    """Same-process link straight to a MessageRouter (tests, embedding)."""

    def __init__(self, router):
        self.router = router

    async def send(self, message):
        return await self.router.handle(message)


class HttpMessageClient(MessageClient):
    """Talks to the API's POST /api/message."""

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT * 4,
                 session: Optional[requests.Session] = None):
        self.url = base_url.rstrip("/") + "/api/message"
        # a scan may retry several upstream calls, so allow well past one request timeout
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, message):
        resp = self.session.post(self.url, json=message, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    async def send(self, message):
        try:
            return await asyncio.to_thread(self._post, message)
        except (requests.RequestException, ValueError) as e:
            print(f"[PAGE] message {message.get('type')} FAIL -> {e}")
            return {"success": False, "error": str(e)}
