"""イベントID・相関ID生成ユーティリティ"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

# Kafka ヘッダーで相関IDを運ぶときのキー
X_CORRELATION_ID = "X-Correlation-Id"


def generate_event_id() -> str:
    """UUID v4 形式のイベントIDを生成する。"""
    return str(uuid.uuid4())


def generate_correlation_id() -> str:
    """UUID v4 形式の相関IDを生成する。"""
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    """現在時刻を ISO-8601 (UTC) 文字列で返す。"""
    return datetime.now(UTC).isoformat()
