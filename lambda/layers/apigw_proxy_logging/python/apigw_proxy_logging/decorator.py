"""
decorator.py - API Gateway プロキシ関数のロギングラッパー

プロキシハンドラの呼び出しを、リクエスト・レスポンスの構造化ログと
処理時間の計測で包む。ハンドラの戻り値はそのまま返し、例外もそのまま再raiseする。

使い方（デコレータ）:
    @proxy_logging(service_name="orders-api")
    def lambda_handler(event, context):
        ...

使い方（関数呼び出し）:
    response = await log_function_handler_async(event, context, handle, logger, options)
"""
import inspect
import logging
import time
from dataclasses import replace
from functools import wraps
from typing import Awaitable, Callable, Optional

from apigw_proxy_logging.config import ProxyLoggingOptions, load_options, log_timezone
from apigw_proxy_logging.logger import (
    get_logger, log_request, log_invocation_context, log_response,
    log_response_body, log_error, log_warn,
)
from apigw_proxy_logging.tracer import init_tracer, trace_handler, annotate_status

Handler = Callable[[dict, object], dict]
AsyncHandler = Callable[[dict, object], Awaitable[dict]]


class _Invocation:
    """1回の呼び出し分のログ出力と計時を受け持つ。呼び出し間で状態は共有しない。"""

    def __init__(self, request: dict, context, logger: logging.Logger,
                 options: Optional[ProxyLoggingOptions]):
        self.request = request
        self.context = context
        self.logger = logger
        self.options = options or ProxyLoggingOptions()
        self.method = request.get("httpMethod")
        self.path = request.get("path")
        self.request_id = getattr(context, "aws_request_id", "-")
        self._start = 0.0

    def before(self) -> None:
        service = self.options.service_name
        log_request(self.logger, service, self.request_id, self.method, self.path)
        if self.options.log_invocation_context:
            log_invocation_context(self.logger, service, self.request_id,
                                   self.request, self.context)
        self._start = time.perf_counter()

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def failed(self, error: BaseException) -> None:
        log_error(self.logger, self.options.service_name, self.request_id,
                  self.method, self.path, self.elapsed_ms(), error)

    def after(self, response: dict, elapsed: float) -> dict:
        service = self.options.service_name
        log_response(self.logger, service, self.request_id, self.method, self.path,
                     status_code_of(response), elapsed, self.options.elapsed_precision)
        if self.options.log_response_body:
            log_response_body(self.logger, service, self.request_id, response)
        if self.options.post_action is not None:
            try:
                self.options.post_action(self.request, response, elapsed)
            except Exception as e:
                # post_action の失敗は警告のみ出して続行
                log_warn(self.logger, service, self.request_id,
                         f"post_action failed: {type(e).__name__} {e}")
        return response


def status_code_of(response) -> int:
    """レスポンスのステータスコードを返す。欠落・数値以外は 0 として扱う。"""
    if not isinstance(response, dict):
        return 0
    try:
        return int(response.get("statusCode"))
    except (TypeError, ValueError):
        return 0


def log_function_handler(request: dict, context, func: Handler,
                         logger: logging.Logger,
                         options: Optional[ProxyLoggingOptions] = None) -> dict:
    """
    同期ハンドラの呼び出しをリクエスト・レスポンスのログで包む。

    Args:
        request: API Gateway プロキシイベント
        context: Lambda コンテキスト
        func: (request, context) -> response を返すハンドラ
        logger: 出力先ロガー
        options: ロギングオプション（省略時は既定値）

    Returns:
        ハンドラが返したレスポンス（同一オブジェクト）
    """
    invocation = _Invocation(request, context, logger, options)
    invocation.before()
    with trace_handler(invocation.method, invocation.path) as subsegment:
        try:
            response = func(request, context)
        except Exception as e:
            invocation.failed(e)
            raise
        elapsed = invocation.elapsed_ms()
        annotate_status(subsegment, status_code_of(response))
    return invocation.after(response, elapsed)


async def log_function_handler_async(request: dict, context, func: AsyncHandler,
                                     logger: logging.Logger,
                                     options: Optional[ProxyLoggingOptions] = None) -> dict:
    """
    log_function_handler のコルーチン版。ハンドラの完了を await する。

    X-Ray のサブセグメントは開かない（既定レコーダのエンティティスタックはスレッド単位）。
    """
    invocation = _Invocation(request, context, logger, options)
    invocation.before()
    try:
        response = await func(request, context)
    except Exception as e:
        invocation.failed(e)
        raise
    elapsed = invocation.elapsed_ms()
    return invocation.after(response, elapsed)


def proxy_logging(service_name: Optional[str] = None,
                  options: Optional[ProxyLoggingOptions] = None):
    """
    プロキシハンドラにリクエスト・レスポンスのログを付与するデコレータ。

    デコレータ適用時（モジュールロード時）に以下を実行:
      - オプションのロード（options 省略時は環境変数から）と LOG_TIMEZONE の検証
      - サービス名付きロガーの生成
      - X-Ray トレーシングの初期化（patch_all）

    async def のハンドラには log_function_handler_async を、
    それ以外には log_function_handler を適用する。
    """
    def decorator(func):
        # デコレータ適用時（コールドスタート時）に1回だけ実行
        resolved = options or load_options()
        if service_name:
            resolved = replace(resolved, service_name=service_name)
        log_timezone()
        logger = get_logger(resolved.service_name)
        init_tracer()

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(event, context):
                return await log_function_handler_async(event, context, func, logger, resolved)
            return async_wrapper

        @wraps(func)
        def wrapper(event, context):
            return log_function_handler(event, context, func, logger, resolved)
        return wrapper
    return decorator
