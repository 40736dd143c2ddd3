import io
import json
from dataclasses import dataclass, field
from typing import List

import pytest

from tyr.jsonrpc import (
    AppError,
    ErrorCode,
    Handler,
    OpenAPI,
    ValidationErrors,
    code_error,
    json_response,
    swgui_settings,
    text_response,
)


@dataclass
class Inp:
    a: str = field(default="", metadata={"json": "a", "validate": "required"})
    b: int = field(default=0, metadata={"json": "b"})


@dataclass
class Out:
    a: str = field(default="", metadata={"json": "a"})
    b: int = field(default=0, metadata={"json": "b"})


@dataclass
class NameInput:
    name: str = field(default="", metadata={"json": "name"})


@dataclass
class NameOutput:
    len: int = field(default=0, metadata={"json": "len"})


@dataclass
class Blob:
    data: bytes = b""
    tags: List[str] = field(default_factory=list)


def _echo(inp):
    return Out(a=inp.a, b=inp.b)


@pytest.fixture
def counted():
    counter = {"n": 0}

    def counting(next_):
        def wrapped(value):
            counter["n"] += 1
            return next_(value)

        return wrapped

    handler = Handler(openapi=OpenAPI(), validate=True, middlewares=[counting])
    handler.add("echo", _echo, Inp, Out)
    return handler, counter


class _StartResponse:
    def __init__(self):
        self.status = None
        self.headers = None

    def __call__(self, status, headers):
        self.status = status
        self.headers = dict(headers)


def test_handler_add(counted):
    handler, counter = counted

    resp = handler.handle(b'{"jsonrpc":"2.0","method":"echo","params":{"a":"abc","b":5},"id":1}')
    assert resp == {"jsonrpc": "2.0", "result": {"b": 5, "a": "abc"}, "id": 1}
    assert counter["n"] == 1

    resp = handler.handle(b'{"jsonrpc":"2.0","method":"echo","params":{"a":"abc","b":"abc"},"id":1}')
    assert resp == {
        "jsonrpc": "2.0",
        "error": {
            "code": -32602,
            "message": "failed to unmarshal parameters",
            "data": "cannot unmarshal string into field Inp.b of type int",
        },
        "id": 1,
    }
    assert counter["n"] == 2

    resp = handler.handle(b'{"jsonrpc":"2.0","method":"echo","params":{"b":5},"id":1}')
    assert resp == {
        "jsonrpc": "2.0",
        "error": {
            "code": -32602,
            "message": "invalid parameters",
            "data": "Key: 'Inp.a' Error:Field validation for 'a' failed on the 'required' tag",
        },
        "id": 1,
    }
    assert counter["n"] == 3


def test_validation_can_be_disabled():
    handler = Handler(validate=False)
    handler.add("echo", _echo, Inp, Out)
    resp = handler.handle('{"jsonrpc":"2.0","method":"echo","params":{"b":7},"id":"x"}')
    assert resp == {"jsonrpc": "2.0", "result": {"a": "", "b": 7}, "id": "x"}


def test_missing_params():
    handler = Handler()
    handler.add("echo", _echo, Inp, Out)
    resp = handler.handle('{"jsonrpc":"2.0","method":"echo","id":2}')
    assert resp["error"] == {
        "code": ErrorCode.INVALID_PARAMS,
        "message": "failed to unmarshal parameters",
        "data": "unexpected end of JSON input",
    }


def test_method_not_found():
    resp = Handler().handle('{"jsonrpc":"2.0","method":"nope","id":3}')
    assert resp == {
        "jsonrpc": "2.0",
        "error": {"code": -32601, "message": "method not found: nope"},
        "id": 3,
    }


def test_invalid_version():
    resp = Handler().handle('{"jsonrpc":"1.0","method":"x","id":3}')
    assert resp == {
        "jsonrpc": "2.0",
        "error": {"code": -32600, "message": 'invalid jsonrpc value: "1.0"'},
        "id": None,
    }


def test_parse_error():
    resp = Handler().handle(b"{not json")
    assert resp["error"]["code"] == ErrorCode.PARSE_ERROR
    assert resp["error"]["message"].startswith("failed to unmarshal request:")


def test_app_error_code_is_reported():
    def fails(_):
        raise code_error(5, ValueError("disk full"))

    handler = Handler()
    handler.add("boom", fails)
    resp = handler.handle('{"jsonrpc":"2.0","method":"boom","id":1}')
    assert resp["error"] == {"code": 5, "message": "disk full"}


def test_plain_error_is_internal():
    def fails(_):
        raise RuntimeError("kaput")

    handler = Handler()
    handler.add("boom", fails)
    resp = handler.handle('{"jsonrpc":"2.0","method":"boom","id":1}')
    assert resp["error"] == {"code": -32603, "message": "operation failed", "data": "kaput"}


def test_app_error():
    err = AppError(4, "too big")
    assert err.app_err_code() == 4
    assert str(err) == "too big"
    wrapped = code_error(2, err)
    assert wrapped.app_err_code() == 2
    assert wrapped.__cause__ is err


def test_no_output_type_gives_null_result():
    handler = Handler()
    handler.add("noop", lambda _: None)
    resp = handler.handle('{"jsonrpc":"2.0","method":"noop","id":9}')
    assert resp == {"jsonrpc": "2.0", "result": None, "id": 9}


def test_bytes_and_lists_round_trip():
    handler = Handler()
    handler.add("blob", lambda b: b, Blob, Blob)
    resp = handler.handle('{"jsonrpc":"2.0","method":"blob","params":{"data":"aGk=","tags":["x"]},"id":1}')
    assert resp["result"] == {"data": "aGk=", "tags": ["x"]}


def test_unencodable_result():
    handler = Handler()
    handler.add("bad", lambda _: {1, 2})
    resp = handler.handle('{"jsonrpc":"2.0","method":"bad","id":1}')
    assert resp["error"]["code"] == -32603
    assert resp["error"]["message"].startswith("failed to marshal result:")


def test_add_requires_name():
    with pytest.raises(ValueError):
        Handler().add("", _echo, Inp, Out)


def test_wsgi_call(counted):
    handler, _ = counted
    body = b'{"jsonrpc":"2.0","method":"echo","params":{"a":"z","b":1},"id":1}'
    start = _StartResponse()
    out = handler({"CONTENT_LENGTH": str(len(body)), "wsgi.input": io.BytesIO(body)}, start)
    assert start.status == "200 OK"
    assert json.loads(b"".join(out)) == {"jsonrpc": "2.0", "result": {"a": "z", "b": 1}, "id": 1}


def test_openapi_collect():
    api = OpenAPI(
        title="JSON-RPC Example",
        version="v1.2.3",
        description="This app showcases a trivial JSON-RPC API.",
    )
    handler = Handler(openapi=api)
    handler.add(
        "nameLength",
        lambda inp: NameOutput(len=len(inp.name)),
        NameInput,
        NameOutput,
        title="Test",
        description="Test Description",
    )

    assert api.spec() == {
        "openapi": "3.0.3",
        "info": {
            "title": "JSON-RPC Example",
            "description": "This app showcases a trivial JSON-RPC API.",
            "version": "v1.2.3",
        },
        "paths": {
            "nameLength": {
                "post": {
                    "summary": "Test",
                    "description": "Test Description",
                    "security": [{"api-key": []}],
                    "operationId": "nameLength",
                    "requestBody": {
                        "content": {
                            "application/json": {"schema": {"$ref": "#/components/schemas/NameInput"}}
                        }
                    },
                    "responses": {
                        "200": {
                            "description": "OK",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/NameOutput"}
                                }
                            },
                        }
                    },
                }
            }
        },
        "components": {
            "schemas": {
                "NameInput": {"type": "object", "properties": {"name": {"type": "string"}}},
                "NameOutput": {"type": "object", "properties": {"len": {"type": "integer"}}},
            }
        },
        "x-envelope": "jsonrpc-2.0",
    }

    resp = handler.handle('{"jsonrpc":"2.0","method":"nameLength","params":{"name":"abcd"},"id":1}')
    assert resp["result"] == {"len": 4}


def test_openapi_document_and_wsgi():
    api = OpenAPI(title="T", version="1")
    api.collect("m", NameInput, None)
    assert json.loads(api.document()) == api.spec()
    start = _StartResponse()
    out = api({}, start)
    assert start.headers["Content-Type"] == "application/json; charset=utf8"
    assert json.loads(b"".join(out))["paths"]["m"]["post"]["operationId"] == "m"


def test_validation_errors_fields():
    errors = ValidationErrors({"body": ["b", "a"], "path:id": ["z"]})
    assert str(errors) == "validation failed"
    assert errors.fields() == {"body": ["a", "b"], "path:id": ["z"]}


def test_swgui_settings():
    settings = swgui_settings({"keep": "1"}, "/json_rpc")
    assert settings["keep"] == "1"
    assert "request.url = url + '/json_rpc';" in settings["requestInterceptor"]
    assert set(swgui_settings(None, "/rpc")) == {"requestInterceptor"}


def test_json_response():
    start = _StartResponse()
    out = json_response(start, 401, {"a": "é"})
    assert start.status == "200 OK"
    assert start.headers == {"Content-Type": "application/json"}
    assert b"".join(out) == '{"a":"é"}\n'.encode("utf-8")


def test_text_response():
    start = _StartResponse()
    out = text_response(start, 200, ".")
    assert start.headers == {"Content-Type": "plain/text"}
    assert b"".join(out) == b"."