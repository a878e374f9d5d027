import os
import pytest

# テスト時はX-Rayを無効化
os.environ["AWS_XRAY_SDK_ENABLED"] = "false"
os.environ["AWS_DEFAULT_REGION"] = "ap-northeast-1"
os.environ["AWS_REGION"] = "ap-northeast-1"
for _name in ("SERVICE_NAME", "LOG_RESPONSE_BODY", "LOG_INVOCATION_CONTEXT",
              "ELAPSED_PRECISION", "LOG_TIMEZONE", "LOG_LEVEL"):
    os.environ.pop(_name, None)


@pytest.fixture
def mock_context():
    """Lambdaのcontextオブジェクトモック"""
    class Context:
        aws_request_id = "test-request-id-12345"
        function_name = "orders-api"
        function_version = "$LATEST"
        memory_limit_in_mb = 256
        invoked_function_arn = "arn:aws:lambda:ap-northeast-1:123456789012:function:orders-api"
        client_context = None

        def get_remaining_time_in_millis(self):
            return 2900
    return Context()


@pytest.fixture
def api_gateway_event():
    """API Gateway プロキシイベント（オーソライザーなし）"""
    return {
        "resource": "/items/{id}",
        "path": "/items/42",
        "httpMethod": "GET",
        "headers": {"Accept": "application/json"},
        "queryStringParameters": None,
        "pathParameters": {"id": "42"},
        "requestContext": {
            "requestId": "c6af9ac6-7b61-11e6-9a41-93e8deadbeef",
            "stage": "prod",
        },
        "body": None,
    }


@pytest.fixture
def authorized_event(api_gateway_event):
    """Cognito オーソライザーのクレーム付きイベント"""
    api_gateway_event["requestContext"]["authorizer"] = {
        "claims": {"sub": "user-001", "email": "user@example.com"}
    }
    return api_gateway_event
