"""
Order Service — 例外定義

サービス層はドメインの例外を送出し、HTTP ステータスへの変換は
main の例外ハンドラが ERROR_STATUS_CODES を見て行う。
"""


class NekomartError(Exception):
    """注文サービスの例外の基底クラス"""

    pass


class NotFound(NekomartError):
    """ユーザー・ストア・商品・注文が存在しない"""

    pass


class InvalidState(NekomartError):
    """現在の状態では実行できない（空のカート、価格変更、不正な遷移など）"""

    pass


class AccessDenied(NekomartError):
    """購入者・ストア所有者・管理者のいずれでもない"""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class Conflict(NekomartError):
    """一意制約違反（クーポンコードの重複など）"""

    pass


class Unauthorized(NekomartError):
    """Bearer トークンが無い、不正、または期限切れ"""

    pass


class RateLimited(NekomartError):
    """レート制限のウィンドウ内で上限を超えた"""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__("Rate limit exceeded. Please try again later.")


ERROR_STATUS_CODES: dict[type, int] = {
    NotFound: 404,
    InvalidState: 400,
    AccessDenied: 403,
    Conflict: 409,
    Unauthorized: 401,
    RateLimited: 429,
}
