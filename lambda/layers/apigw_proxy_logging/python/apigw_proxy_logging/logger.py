"""
logger.py - 構造化ログ出力

API Gateway プロキシ関数用の構造化ログ（JSON形式）を提供する。
CloudWatch Logs Insights での横断検索を容易にするため、
1エントリ = 1 JSON オブジェクトで出力し、message と名前付きフィールドを併せ持つ。

ログフェーズ:
  - REQUEST: リクエスト受信（メソッド・パス）
  - CONTEXT: リクエスト全体・Lambda コンテキスト・クレーム（オプション）
  - RESPONSE: レスポンス（ステータスコード・処理時間）。400以上は ERROR レベル
  - RESPONSE_BODY: レスポンス全体（オプション）
  - ERROR: ハンドラの例外（スタックトレース付き）
  - WARN: 処理続行時の警告（post_action の失敗等）
"""
import logging
import json
import traceback
from datetime import datetime, timezone
from typing import Optional

from apigw_proxy_logging.config import log_level, log_timezone

# ログに出力する Lambda コンテキストの属性
_CONTEXT_ATTRIBUTES = (
    "aws_request_id",
    "function_name",
    "function_version",
    "invoked_function_arn",
    "memory_limit_in_mb",
    "log_group_name",
    "log_stream_name",
)


def get_logger(service_name: str) -> logging.Logger:
    """サービス名を名前空間とするロガーを取得する。"""
    logger = logging.getLogger(service_name)
    logger.setLevel(log_level())
    return logger


def _now() -> str:
    """現在時刻を LOG_TIMEZONE の ISO 8601 形式で返す（ログのタイムスタンプ用）。"""
    return datetime.now(timezone.utc).astimezone(log_timezone()).isoformat()


def _entry(phase: str, service_name: str, request_id: str,
           message: str, **fields) -> str:
    return json.dumps({
        "phase": phase,
        "service": service_name,
        "request_id": request_id,
        "timestamp": _now(),
        "message": message,
        **fields,
    }, ensure_ascii=False, default=str)


def format_elapsed(elapsed_ms: float, precision: Optional[int] = None) -> str:
    """処理時間をメッセージ用に整形する。precision が None なら整数に丸める。"""
    if precision is None:
        return str(round(elapsed_ms))
    return f"{elapsed_ms:.{precision}f}"


def extract_claims(request: dict) -> Optional[dict]:
    """
    requestContext.authorizer.claims を取り出す。

    オーソライザーを通っていないリクエストではどの階層も欠けうるため、
    途中が無ければ None を返す（例外にはしない）。
    """
    node = request
    for key in ("requestContext", "authorizer", "claims"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def summarize_context(context) -> dict:
    """
    Lambda コンテキストをログ出力用の辞書に変換する。

    LambdaContext はそのままでは JSON 化できないため、
    主要な属性と残り時間・クライアント情報だけを取り出す。
    """
    summary = {}
    for name in _CONTEXT_ATTRIBUTES:
        if hasattr(context, name):
            summary[name] = getattr(context, name)
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if callable(remaining):
        summary["remaining_time_in_millis"] = remaining()
    client_context = getattr(context, "client_context", None)
    if client_context is not None:
        summary["client_context"] = _public_attributes(client_context)
    identity = getattr(context, "identity", None)
    if identity is not None:
        summary["identity"] = _public_attributes(identity)
    return summary


def _public_attributes(value):
    if isinstance(value, dict):
        return value
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    return value


def log_request(logger: logging.Logger, service_name: str,
                request_id: str, method: str, path: str) -> None:
    """リクエスト受信ログを JSON 形式で出力する。"""
    logger.info(_entry(
        "REQUEST", service_name, request_id,
        f"Request - {method} - {path}",
        method=method,
        path=path,
    ))


def log_invocation_context(logger: logging.Logger, service_name: str,
                           request_id: str, request: dict, context) -> None:
    """リクエスト全体・コンテキスト・クレームを1エントリで出力する。クレームが無ければ省略。"""
    fields = {
        "proxy_request": request,
        "context": summarize_context(context),
    }
    claims = extract_claims(request)
    if claims is not None:
        fields["claims"] = claims
    logger.info(_entry("CONTEXT", service_name, request_id, "ProxyRequest", **fields))


def log_response(logger: logging.Logger, service_name: str, request_id: str,
                 method: str, path: str, status_code: int, elapsed_ms: float,
                 precision: Optional[int] = None) -> None:
    """レスポンスログを出力する。ステータスコード400以上は ERROR レベル。"""
    message = (
        f"Response - {method} - {path} responded {status_code} "
        f"in {format_elapsed(elapsed_ms, precision)} ms"
    )
    entry = _entry(
        "RESPONSE", service_name, request_id, message,
        method=method,
        path=path,
        status_code=status_code,
        elapsed_ms=elapsed_ms,
    )
    if status_code >= 400:
        logger.error(entry)
    else:
        logger.info(entry)


def log_response_body(logger: logging.Logger, service_name: str,
                      request_id: str, response: dict) -> None:
    """レスポンス全体を出力する。ボディが大きい場合は高コスト。"""
    logger.info(_entry(
        "RESPONSE_BODY", service_name, request_id, "ProxyResponse",
        proxy_response=response,
    ))


def log_error(logger: logging.Logger, service_name: str, request_id: str,
              method: str, path: str, elapsed_ms: float,
              error: BaseException) -> None:
    """ハンドラの例外を JSON 形式で出力する（except 節内で呼ぶこと。スタックトレース付き）。"""
    logger.error(_entry(
        "ERROR", service_name, request_id,
        f"Response - {method} - {path} failed with {type(error).__name__}",
        method=method,
        path=path,
        elapsed_ms=elapsed_ms,
        status="FAILURE",
        error_type=type(error).__name__,
        error_message=str(error),
        stacktrace=traceback.format_exc(),
    ))


def log_warn(logger: logging.Logger, service_name: str,
             request_id: str, message: str) -> None:
    """処理続行時の警告ログを JSON 形式で出力する。"""
    logger.warning(_entry("WARN", service_name, request_id, message))
