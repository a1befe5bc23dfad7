"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from hoststats.http.request import HTTPRequest
from hoststats.http.response import HTTPResponse, ResponseBuilder, not_found
from hoststats.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline


class Tag(Middleware):
    """Appends its label to a trace on the way in and out."""

    def __init__(self, label, trace):
        self.label = label
        self.trace = trace

    def __call__(self, request, next):
        self.trace.append(f"{self.label}:in")
        response = next(request)
        self.trace.append(f"{self.label}:out")
        return response


def make_request(path="/stats") -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path=path,
        headers={"user-agent": "pytest"},
        client_address=("10.0.0.5", 40000),
    )


def ok_handler(request: HTTPRequest) -> HTTPResponse:
    return ResponseBuilder().text("ok").build()


class TestMiddlewarePipeline:
    def test_first_added_is_outermost(self):
        trace = []
        pipeline = MiddlewarePipeline()
        pipeline.add(Tag("a", trace)).add(Tag("b", trace))

        def handler(request):
            trace.append("handler")
            return ok_handler(request)

        pipeline.wrap(handler)(make_request())

        assert trace == ["a:in", "b:in", "handler", "b:out", "a:out"]
        assert len(pipeline) == 2
        assert [mw.name for mw in pipeline] == ["Tag", "Tag"]

    def test_empty_pipeline_returns_handler_result(self):
        response = MiddlewarePipeline().wrap(ok_handler)(make_request())
        assert response.body == b"ok"


class TestLoggingMiddleware:
    def test_text_line(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(ok_handler)

        with caplog.at_level(logging.INFO, logger="hoststats.access"):
            handler(make_request())

        record = caplog.records[-1]
        assert record.name == "hoststats.access"
        assert '10.0.0.5 - - [' in record.message
        assert '"GET /stats" 200 2 ' in record.message

    def test_json_line(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware(log_format="json")).wrap(
            lambda request: not_found()
        )

        with caplog.at_level(logging.INFO, logger="hoststats.access"):
            handler(make_request("/nope"))

        entry = json.loads(caplog.records[-1].message)
        assert entry["path"] == "/nope"
        assert entry["status_code"] == 404
        assert entry["content_length"] == len(b"Not Found")
        assert entry["user_agent"] == "pytest"

    def test_skip_paths(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware(skip_paths=["/stats"])).wrap(ok_handler)

        with caplog.at_level(logging.INFO, logger="hoststats.access"):
            handler(make_request("/stats"))

        assert not [r for r in caplog.records if r.name == "hoststats.access"]

    def test_failure_logged_and_reraised(self, caplog):
        def broken(request):
            raise RuntimeError("kaput")

        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(broken)

        with caplog.at_level(logging.INFO, logger="hoststats.access"):
            with pytest.raises(RuntimeError):
                handler(make_request())

        assert "kaput" in caplog.text

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")
