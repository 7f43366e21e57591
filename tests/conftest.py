import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure repository root is on the import path for local package imports during tests.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from digrag.models import Document  # noqa: E402


def make_doc(title: str, text: str, *, tags=None, day: int = 15, hour: int = 10) -> Document:
    date = datetime(2025, 1, day, hour, 0, 0, tzinfo=timezone.utc)
    return Document.with_content_id(title, date, list(tags or []), text)


@pytest.fixture
def sample_documents() -> list[Document]:
    return [
        make_doc(
            "MCPサーバーの実装",
            "MCPサーバーをRustで実装する方法について説明します。",
            tags=["memo", "rust"],
            day=15,
        ),
        make_doc(
            "Pythonの非同期処理",
            "asyncioを使った非同期処理のパターンをまとめる。",
            tags=["memo", "python"],
            day=14,
        ),
        make_doc(
            "検索エンジンの設計",
            "BM25とベクトル検索を組み合わせたハイブリッド検索の設計メモ。",
            tags=["worklog"],
            day=13,
        ),
        make_doc(
            "Docker環境構築",
            "docker composeで開発環境を構築する手順。",
            tags=["worklog", "infra"],
            day=12,
        ),
        make_doc(
            "日報",
            "今日はレビューとミーティングを行った。",
            tags=["diary"],
            day=11,
        ),
    ]


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point config lookups at an empty temp directory and clear digrag env vars."""

    import os

    for key in list(os.environ):
        if key.startswith("DIGRAG_") or key == "OPENROUTER_API_KEY":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def doc_factory():
    return make_doc


@pytest.fixture
def no_retry_sleep(monkeypatch):
    """Skip tenacity backoff sleeps in HTTP client tests."""

    from digrag.clients.base import BaseHttpClient

    monkeypatch.setattr(BaseHttpClient._send.retry, "sleep", lambda _seconds: None)
