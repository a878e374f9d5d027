"""
tracer.py - AWS X-Ray トレーシング

X-Ray の初期化と、プロキシハンドラ呼び出しを囲むサブセグメントのヘルパーを提供する。
init_tracer() を呼び出すと、boto3 等の全サービス呼び出しが
自動的に X-Ray トレースの対象になる。

テスト時は環境変数 AWS_XRAY_SDK_ENABLED=false を設定することで無効化できる。
"""
from aws_xray_sdk.core import patch_all, xray_recorder

HANDLER_SUBSEGMENT = "proxy_handler"


def init_tracer():
    """
    X-Ray を初期化し、対応ライブラリの呼び出しを自動トレースする。

    proxy_logging デコレータから呼び出される。
    """
    patch_all()


def trace_handler(method: str, path: str):
    """
    ハンドラ呼び出し区間をサブセグメントとして可視化するコンテキストマネージャを返す。

    使い方:
        with trace_handler("GET", "/items/42") as subsegment:
            response = func(request, context)
            annotate_status(subsegment, response["statusCode"])
    """
    return _AnnotatedSubsegment(method, path)


def annotate_status(subsegment, status_code: int) -> None:
    if subsegment is not None:
        subsegment.put_annotation("status_code", status_code)


class _AnnotatedSubsegment:
    def __init__(self, method: str, path: str):
        self._manager = xray_recorder.in_subsegment(HANDLER_SUBSEGMENT)
        self._method = method
        self._path = path

    def __enter__(self):
        subsegment = self._manager.__enter__()
        if subsegment is not None:
            subsegment.put_annotation("method", self._method)
            subsegment.put_annotation("path", self._path)
        return subsegment

    def __exit__(self, exc_type, exc_value, tb):
        return self._manager.__exit__(exc_type, exc_value, tb)
