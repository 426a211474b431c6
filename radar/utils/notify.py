# radar/utils/notify.py
# Purpose: User-notification channel for watchlist alerts.
from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import requests


class Notifier:
    async def notify(self, title: str, message: str, priority: int = 1) -> bool:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Prints alerts; keeps the last few around for status/inspection."""

    def __init__(self, keep: int = 50):
        self.keep = keep
        self.sent: List[Tuple[str, str, int]] = []

    async def notify(self, title: str, message: str, priority: int = 1) -> bool:
        marker = "🚨" if priority >= 2 else "⚠️"
        print(f"[NOTIFY] {marker} {title}: {message}")
        self.sent.append((title, message, priority))
        if len(self.sent) > self.keep:
            self.sent = self.sent[-self.keep:]
        return True


def escape_md(text: str) -> str:
    return (text or "").replace("_", "\\_").replace("*", "\\*").replace("[", "\\[").replace("`", "\\`")


class TelegramNotifier(Notifier):
    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self.session = session or requests.Session()
        if not self.bot_token or not self.chat_id:
            print("[NOTIFY] Telegram: missing bot token or chat ID!")

    def _send(self, text: str) -> bool:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            print(f"[NOTIFY] Telegram request exception: {e}")
            return False
        if resp.status_code != 200:
            print(f"[NOTIFY] Telegram failed: {resp.status_code} - {resp.text}")
            return False
        return True

    async def notify(self, title: str, message: str, priority: int = 1) -> bool:
        if not self.bot_token or not self.chat_id:
            return False
        marker = "🚨" if priority >= 2 else "⚠️"
        text = f"{marker} *{escape_md(title)}*\n{escape_md(message)}"
        return await asyncio.to_thread(self._send, text)


def notifier_from_env(cfg: dict) -> Notifier:
    token = cfg.get("telegram_bot_token")
    chat = cfg.get("telegram_chat_id")
    if token and chat:
        print("[NOTIFY] Telegram notifier enabled")
        return TelegramNotifier(token, chat)
    print("[NOTIFY] Console notifier (no TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID)")
    return ConsoleNotifier()
