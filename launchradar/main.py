"""mindshare 収集バッチ — メインエントリーポイント.

cron から定期実行する。処理内容は collector.run_collection を参照。
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime

from launchradar.collector import run_collection
from launchradar.config import LOG_DIR


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"collector_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def run() -> None:
    """メイン処理."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== mindshare 収集 開始 ===")
    summary = run_collection()
    logger.info("=== mindshare 収集 完了 ===")
    if summary.processed and summary.failed == summary.processed:
        logger.error("全プロジェクトの収集に失敗しました")
        sys.exit(1)


if __name__ == "__main__":
    run()
