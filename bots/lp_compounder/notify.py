#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Telegram notifications for cycle outcomes."""

from __future__ import annotations

import os
from typing import Dict, Optional

import requests

from input_validation import sanitize_string_for_log
from logging_config import get_logger

logger = get_logger(__name__)

STATUS_ICONS = {
    "completed": "♻️",
    "postponed": "⏸️",
    "incomplete": "⚠️",
    "terminated": "🛑",
}


def build_cycle_message(instance_name: str, farm_type: str, report, next_run_at: Optional[str] = None) -> str:
    status = report.status.value
    lines = [f"{STATUS_ICONS.get(status, '•')} {instance_name} ({farm_type}): {status}"]
    lines.append(f"🔁 Txns: {report.txn_count}")
    if report.deposited:
        lines.append(f"🌾 LP deposited: {report.deposited}")
    if report.dev_fee:
        lines.append(f"💸 Dev fee: {report.dev_fee}")
    if report.reason:
        lines.append(f"🧾 {report.reason}")
    lines.append(f"⏱️ Duration: {report.duration_seconds:.0f}s")
    if next_run_at:
        lines.append(f"📅 Next: {next_run_at}")
    return "\n".join(lines)


class TelegramNotifier:
    def __init__(self, telegram: Optional[Dict[str, object]] = None):
        conf = telegram or {}
        self.enabled = bool(conf.get("enabled", False))
        self.bot_token_env = str(conf.get("bot_token_env", "") or "")
        self.chat_id_env = str(conf.get("chat_id_env", "") or "")

    def send(self, msg: str) -> bool:
        if not self.enabled:
            return False

        token = os.getenv(self.bot_token_env) if self.bot_token_env else None
        chat_id = os.getenv(self.chat_id_env) if self.chat_id_env else None
        if not token or not chat_id:
            logger.info("[telegram] skipped: token/chat_id missing")
            return False

        try:
            r = requests.get(
                f"https://api.telegram.org/bot{token}/sendMessage",
                params={"chat_id": chat_id, "text": msg},
                timeout=10,
            )
        except requests.RequestException as exc:
            logger.warning("[telegram] exception: %s", exc)
            return False
        if not r.ok:
            logger.warning("[telegram] error: %s", sanitize_string_for_log(r.text, 300))
            return False
        return True
