"""
config.py - ロギングオプションのロード

API Gateway プロキシ関数のロギング動作を ProxyLoggingOptions にまとめ、
環境変数から組み立てる。キーワード引数で渡した値は環境変数より優先される。

対応する環境変数:
  - SERVICE_NAME: ロガー名・ログの service フィールド（例: "orders-api"）
  - LOG_RESPONSE_BODY: レスポンス全体をログに出すか（既定 false）
  - LOG_INVOCATION_CONTEXT: リクエスト・コンテキスト・クレームをログに出すか（既定 false）
  - ELAPSED_PRECISION: 処理時間の小数桁数（未設定なら整数表示）
  - LOG_TIMEZONE: タイムスタンプのタイムゾーン（既定 "UTC"）
  - LOG_LEVEL: ロガーのレベル（既定 "INFO"）
"""
import os
from dataclasses import dataclass, replace
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_SERVICE_NAME = "apigw-proxy"

_TRUE_VALUES = {"1", "true", "yes", "on"}

# (request, response, elapsed_ms) を受け取るメトリクス連携用コールバック
PostAction = Callable[[dict, dict, float], None]


@dataclass(frozen=True)
class ProxyLoggingOptions:
    """
    プロキシ関数ロギングの設定値。

    Attributes:
        log_response_body: レスポンス全体を追加のログとして出力する。
            レスポンスボディが大きい場合は性能・安定性に影響するため注意。
        log_invocation_context: リクエスト全体・Lambda コンテキスト・クレームを出力する。
        post_action: ログ出力後に呼ばれるコールバック。
        elapsed_precision: メッセージ中の処理時間の小数桁数。None なら整数に丸める。
        service_name: ロガー名および service フィールド。
    """
    log_response_body: bool = False
    log_invocation_context: bool = False
    post_action: Optional[PostAction] = None
    elapsed_precision: Optional[int] = None
    service_name: str = DEFAULT_SERVICE_NAME


def load_options(**overrides) -> ProxyLoggingOptions:
    """
    環境変数から ProxyLoggingOptions を生成し、overrides で上書きして返す。

    LOG_TIMEZONE もここで検証し、不正な値はロード時に ValueError とする。
    """
    log_timezone()
    options = ProxyLoggingOptions(
        log_response_body=_env_flag("LOG_RESPONSE_BODY"),
        log_invocation_context=_env_flag("LOG_INVOCATION_CONTEXT"),
        elapsed_precision=_env_precision("ELAPSED_PRECISION"),
        service_name=os.environ.get("SERVICE_NAME", "") or DEFAULT_SERVICE_NAME,
    )
    return replace(options, **overrides)


def log_timezone() -> ZoneInfo:
    """LOG_TIMEZONE のタイムゾーンを返す。存在しないゾーン名は ValueError。"""
    name = os.environ.get("LOG_TIMEZONE", "") or "UTC"
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        raise ValueError(f"Unknown LOG_TIMEZONE: {name}") from None


def log_level() -> str:
    return (os.environ.get("LOG_LEVEL", "") or "INFO").upper()


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_VALUES


def _env_precision(name: str) -> Optional[int]:
    """小数桁数を読み取る。未設定は None、負数や数値以外は ValueError。"""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        precision = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer: {raw!r}") from None
    if precision < 0:
        raise ValueError(f"{name} must not be negative: {precision}")
    return precision
