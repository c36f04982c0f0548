"""例外定義."""

from __future__ import annotations


class RadarError(Exception):
    """launchradar の例外基底クラス."""


class ExternalApiError(RadarError):
    """フィード API が失敗ステータスまたは不正なレスポンスを返した."""


class RateLimited(ExternalApiError):
    """フィード API のレート制限 (HTTP 429)."""


class InvalidQueryParameter(RadarError):
    """クエリパラメータが不正."""

    def __init__(self, param: str, value, valid_values=None) -> None:
        self.param = param
        self.value = value
        self.valid_values = list(valid_values) if valid_values else []
        msg = f"Invalid {param}: {value!r}"
        if self.valid_values:
            msg += f". Choose from: {self.valid_values}"
        super().__init__(msg)


class PageOutOfRange(RadarError):
    """page > 1 で該当データがない."""

    def __init__(self, page: int) -> None:
        self.page = page
        super().__init__("No listings found for this page")


class ListingAlreadyExists(RadarError):
    """同じハンドルのプロジェクトが登録済み."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Listing already exists for Twitter username: {handle}")


class ListingNotFound(RadarError):
    """指定ハンドルのプロジェクトが存在しない."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Listing not found: {handle}")


class OAuthStateError(RadarError):
    """OAuth コールバックの state / verifier が検証できない."""
