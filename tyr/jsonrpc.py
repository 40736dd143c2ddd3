"""JSON-RPC 2.0 over HTTP (WSGI), with OpenAPI documentation of its methods.

Method parameters and results are described by dataclasses. Field metadata
controls the wire format:

* ``json``: the JSON member name (``"-"`` hides the field),
* ``validate``: comma separated rules; ``required`` rejects zero values,
* ``required``: marks the property as required in the OpenAPI schema,
* ``description``: the property description in the OpenAPI schema.
"""

from __future__ import annotations

import base64
import binascii
import copy
import dataclasses
import enum
import inspect
import json
import threading
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

JSONRPC_VERSION = "2.0"

Interactor = Callable[[Any], Any]
Middleware = Callable[[Interactor], Interactor]

_UNION_ORIGINS = (typing.Union, getattr(types, "UnionType", typing.Union))
_NONE_TYPE = type(None)


class ErrorCode(enum.IntEnum):
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class AppError(Exception):
    """An error that carries its own application error code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message

    def app_err_code(self) -> int:
        return self.code


def code_error(code: int, err: Any) -> AppError:
    """Wrap ``err`` so it is reported to clients with ``code`` and its own message."""
    error = AppError(code, str(err))
    if isinstance(err, BaseException):
        error.__cause__ = err
    return error


class ValidationErrors(Exception):
    """Validation problems keyed by field location, e.g. ``"body"``."""

    def __init__(self, errors: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        super().__init__("validation failed")
        self.errors: Dict[str, List[str]] = {k: list(v) for k, v in (errors or {}).items()}

    def fields(self) -> Dict[str, List[str]]:
        """The problems of each field, sorted."""
        return {key: sorted(issues) for key, issues in self.errors.items()}


# ---------------------------------------------------------------- type helpers

_KNOWN_NAMES: Dict[str, Any] = {
    "int": int,
    "str": str,
    "bool": bool,
    "float": float,
    "bytes": bytes,
    "list": list,
    "dict": dict,
    "object": object,
    "None": _NONE_TYPE,
    "Any": Any,
    "List": typing.List,
    "Dict": typing.Dict,
    "Optional": typing.Optional,
    "Union": typing.Union,
}


def _split_top(text: str, sep: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _resolve_name(name: str, namespace: Mapping[str, Any]) -> Any:
    name = name.strip()
    for prefix in ("typing.", "builtins."):
        if name.startswith(prefix) and name[len(prefix):] in _KNOWN_NAMES:
            return _KNOWN_NAMES[name[len(prefix):]]
    if name in _KNOWN_NAMES:
        return _KNOWN_NAMES[name]
    head, *rest = name.split(".")
    if head not in namespace:
        return Any
    obj = namespace[head]
    for attr in rest:
        obj = getattr(obj, attr, Any)
    return obj


def _parse_annotation(text: str, namespace: Mapping[str, Any]) -> Any:
    text = text.strip()
    alternatives = _split_top(text, "|")
    if len(alternatives) > 1:
        return typing.Union[tuple(_parse_annotation(p, namespace) for p in alternatives)]
    if text.endswith("]") and "[" in text:
        head, _, rest = text.partition("[")
        args = [
            _parse_annotation(a, namespace) for a in _split_top(rest[:-1], ",") if a.strip()
        ]
        base = _resolve_name(head, namespace)
        if base is typing.Optional and args:
            return typing.Optional[args[0]]
        if base is typing.Union and args:
            return typing.Union[tuple(args)]
        if base in (list, typing.List):
            return typing.List[args[0]] if args else list
        if base in (dict, typing.Dict):
            return typing.Dict[args[0], args[1]] if len(args) == 2 else dict
        return base
    return _resolve_name(text, namespace)


def _field_types(cls: Any) -> Dict[str, Any]:
    module = inspect.getmodule(cls)
    namespace: Dict[str, Any] = dict(vars(module)) if module is not None else {}
    namespace.setdefault(cls.__name__, cls)
    result: Dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        annotation = f.type
        if isinstance(annotation, str):
            annotation = _parse_annotation(annotation, namespace)
        result[f.name] = annotation
    return result


def _unwrap_optional(tp: Any) -> Tuple[Any, bool]:
    if typing.get_origin(tp) in _UNION_ORIGINS:
        all_args = typing.get_args(tp)
        args = [a for a in all_args if a is not _NONE_TYPE]
        nullable = len(args) != len(all_args)
        if len(args) == 1:
            return args[0], nullable
        return Any, nullable
    return tp, False


def _is_dataclass_type(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def _is_dataclass_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _field_names(cls: Any) -> Iterator[Tuple[dataclasses.Field, str]]:
    for f in dataclasses.fields(cls):
        name = f.metadata.get("json", f.name)
        if name != "-":
            yield f, name


def _has_default(f: dataclasses.Field) -> bool:
    return f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING


def _zero(tp: Any) -> Any:
    inner, nullable = _unwrap_optional(tp)
    if nullable:
        return None
    origin = typing.get_origin(inner) or inner
    if origin is bool:
        return False
    if origin is int:
        return 0
    if origin is float:
        return 0.0
    if origin is str:
        return ""
    if origin is bytes:
        return b""
    if origin is list:
        return []
    if origin is dict:
        return {}
    if _is_dataclass_type(inner):
        return _decode_object(inner, {}, None)
    return None


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


# ---------------------------------------------------------------- decoding


class _DecodeError(ValueError):
    pass


def _decode(tp: Any, value: Any, path: Optional[str]) -> Any:
    inner, _ = _unwrap_optional(tp)
    if value is None:
        return _zero(tp)
    if inner is Any or inner is object:
        return value

    origin = typing.get_origin(inner) or inner
    args = typing.get_args(inner)
    where = f"field {path}" if path else "value"
    type_name = getattr(inner, "__name__", None) or str(inner)

    def mismatch() -> _DecodeError:
        return _DecodeError(f"cannot unmarshal {_kind(value)} into {where} of type {type_name}")

    if origin is bool:
        if isinstance(value, bool):
            return value
        raise mismatch()
    if origin is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise mismatch()
    if origin is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise mismatch()
    if origin is str:
        if isinstance(value, str):
            return value
        raise mismatch()
    if origin is bytes:
        if not isinstance(value, str):
            raise mismatch()
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise _DecodeError(f"illegal base64 data in {where}: {exc}") from None
    if origin is list:
        if not isinstance(value, list):
            raise mismatch()
        item_type = args[0] if args else Any
        return [_decode(item_type, item, path) for item in value]
    if origin is dict:
        if not isinstance(value, dict):
            raise mismatch()
        value_type = args[1] if len(args) == 2 else Any
        return {k: _decode(value_type, v, path) for k, v in value.items()}
    if _is_dataclass_type(inner):
        if not isinstance(value, dict):
            raise mismatch()
        return _decode_object(inner, value, path)
    return value


def _decode_object(cls: Any, obj: Mapping[str, Any], path: Optional[str]) -> Any:
    base = path or cls.__name__
    hints = _field_types(cls)
    kwargs: Dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        name = f.metadata.get("json", f.name)
        hint = hints.get(f.name, Any)
        if name != "-" and obj.get(name) is not None:
            kwargs[f.name] = _decode(hint, obj[name], f"{base}.{name}")
        elif not _has_default(f):
            kwargs[f.name] = _zero(hint)
    return cls(**kwargs)


def _validate(obj: Any, path: str, problems: List[str]) -> None:
    for f, name in _field_names(type(obj)):
        value = getattr(obj, f.name)
        rules = [rule.strip() for rule in str(f.metadata.get("validate", "")).split(",")]
        where = f"{path}.{name}"
        if "required" in rules and not (_is_dataclass_instance(value) or value):
            problems.append(
                f"Key: '{where}' Error:Field validation for '{name}' failed on the 'required' tag"
            )
        elif _is_dataclass_instance(value):
            _validate(value, where, problems)


def _encode(value: Any) -> Any:
    if _is_dataclass_instance(value):
        return {name: _encode(getattr(value, f.name)) for f, name in _field_names(type(value))}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, Mapping):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


# ---------------------------------------------------------------- OpenAPI


class OpenAPI:
    """Collects OpenAPI 3 documentation for JSON-RPC methods."""

    def __init__(self, title: str = "", version: str = "", description: str = "") -> None:
        self.title = title
        self.version = version
        self.description = description
        self._paths: Dict[str, Dict[str, Any]] = {}
        self._schemas: Dict[str, Dict[str, Any]] = {}
        self._envelope = False
        self._lock = threading.Lock()

    def collect(
        self,
        name: str,
        input_type: Any = None,
        output_type: Any = None,
        title: str = "",
        description: str = "",
    ) -> None:
        """Document method ``name`` taking ``input_type`` and returning ``output_type``."""
        with self._lock:
            try:
                operation: Dict[str, Any] = {}
                if title:
                    operation["summary"] = title
                if description:
                    operation["description"] = description
                operation["operationId"] = name
                if input_type is not None:
                    operation["requestBody"] = {
                        "content": {"application/json": {"schema": self._schema(input_type)}}
                    }
                if output_type is not None:
                    operation["responses"] = {
                        "200": {
                            "description": "OK",
                            "content": {"application/json": {"schema": self._schema(output_type)}},
                        }
                    }
                else:
                    operation["responses"] = {"204": {"description": "No Content"}}
            except Exception as exc:
                raise ValueError(f"failed to reflect API schema for {name}: {exc}") from exc
            self._paths[name] = {"post": operation}
            self._envelope = True

    def _add_security(self, name: str, scheme: str) -> None:
        with self._lock:
            operation = self._paths[name]["post"]
            operation.setdefault("security", []).append({scheme: []})

    def _schema(self, tp: Any) -> Dict[str, Any]:
        inner, nullable = _unwrap_optional(tp)
        schema = self._inner_schema(inner)
        if nullable:
            schema = {**schema, "nullable": True}
        return schema

    def _inner_schema(self, inner: Any) -> Dict[str, Any]:
        if inner is Any or inner is object:
            return {}
        origin = typing.get_origin(inner) or inner
        args = typing.get_args(inner)
        if origin is bool:
            return {"type": "boolean"}
        if origin is int:
            return {"type": "integer"}
        if origin is float:
            return {"type": "number"}
        if origin is str:
            return {"type": "string"}
        if origin is bytes:
            return {"type": "string", "format": "base64"}
        if origin is list:
            return {"type": "array", "items": self._schema(args[0]) if args else {}}
        if origin is dict:
            if len(args) == 2:
                return {"type": "object", "additionalProperties": self._schema(args[1])}
            return {"type": "object"}
        if _is_dataclass_type(inner):
            return self._component(inner)
        return {}

    def _component(self, cls: Any) -> Dict[str, Any]:
        name = cls.__name__[:1].upper() + cls.__name__[1:]
        if name not in self._schemas:
            self._schemas[name] = {}
            hints = _field_types(cls)
            properties: Dict[str, Any] = {}
            required: List[str] = []
            for f, json_name in _field_names(cls):
                prop = self._schema(hints.get(f.name, Any))
                desc = f.metadata.get("description")
                if desc and "$ref" not in prop:
                    prop = {**prop, "description": desc}
                properties[json_name] = prop
                if f.metadata.get("required"):
                    required.append(json_name)
            component: Dict[str, Any] = {"type": "object"}
            if properties:
                component["properties"] = properties
            if required:
                component["required"] = required
            self._schemas[name] = component
        return {"$ref": f"#/components/schemas/{name}"}

    def spec(self) -> Dict[str, Any]:
        """A copy of the current OpenAPI document."""
        with self._lock:
            info: Dict[str, Any] = {"title": self.title}
            if self.description:
                info["description"] = self.description
            info["version"] = self.version
            spec: Dict[str, Any] = {"openapi": "3.0.3", "info": info, "paths": self._paths}
            if self._schemas:
                spec["components"] = {"schemas": self._schemas}
            if self._envelope:
                spec["x-envelope"] = "jsonrpc-2.0"
            return copy.deepcopy(spec)

    def document(self) -> str:
        """The OpenAPI document as indented JSON."""
        return json.dumps(self.spec(), indent=" ")

    def __call__(self, environ: Mapping[str, Any], start_response: Callable) -> List[bytes]:
        body = self.document().encode("utf-8")
        start_response(
            "200 OK",
            [("Content-Type", "application/json; charset=utf8"), ("Content-Length", str(len(body)))],
        )
        return [body]


# ---------------------------------------------------------------- handler


@dataclass(frozen=True)
class _Method:
    use_case: Interactor
    failing: Interactor
    input_type: Any
    output_type: Any


class _ParamsError(Exception):
    def __init__(self, message: str, error: Exception) -> None:
        super().__init__(message)
        self.message = message
        self.error = error


def _fail_with(error: Any) -> Any:
    """Interactor that reports its input, a parameter error, by raising it."""
    if not isinstance(error, BaseException):
        error = ValueError(str(error))
    raise error


def _error(code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return error


def _error_response(message: str, code: int, err: BaseException) -> Dict[str, Any]:
    app_code = getattr(err, "app_err_code", None)
    if callable(app_code):
        return _error(app_code(), str(err))
    return _error(code, message, str(err))


class Handler:
    """Serves registered JSON-RPC 2.0 methods; also a WSGI application.

    A method's interactor receives the decoded parameters (or None when it
    has no input type) and returns its result. Middlewares take an
    interactor and return one; the first middleware is the outermost.
    Parameter errors are passed through the middlewares as well, as the
    input of an interactor that raises them.
    """

    def __init__(
        self,
        openapi: Optional[OpenAPI] = None,
        validate: bool = True,
        middlewares: Optional[Iterable[Middleware]] = None,
    ) -> None:
        self.openapi = openapi
        self.validate = validate
        self.middlewares: List[Middleware] = list(middlewares or ())
        self._methods: Dict[str, _Method] = {}

    def _wrap(self, interact: Interactor) -> Interactor:
        for middleware in reversed(self.middlewares):
            interact = middleware(interact)
        return interact

    def add(
        self,
        name: str,
        interact: Interactor,
        input_type: Any = None,
        output_type: Any = None,
        title: str = "",
        description: str = "",
    ) -> None:
        """Register ``interact`` as method ``name``."""
        if not name:
            raise ValueError("use case name is required")
        self._methods[name] = _Method(
            use_case=self._wrap(interact),
            failing=self._wrap(_fail_with),
            input_type=input_type,
            output_type=output_type,
        )
        if self.openapi is not None:
            self.openapi.collect(name, input_type, output_type, title, description)
            self.openapi._add_security(name, "api-key")

    def handle(self, body: Any) -> Dict[str, Any]:
        """Process one request body and return the response object."""
        try:
            request = json.loads(body)
        except ValueError as exc:
            return self._fail(f"failed to unmarshal request: {exc}", ErrorCode.PARSE_ERROR)
        if not isinstance(request, dict):
            return self._fail(
                f"failed to unmarshal request: cannot unmarshal {_kind(request)} into request",
                ErrorCode.PARSE_ERROR,
            )

        version = request.get("jsonrpc", "")
        method = request.get("method", "")
        if version is None:
            version = ""
        if method is None:
            method = ""
        if not isinstance(version, str) or not isinstance(method, str):
            return self._fail(
                "failed to unmarshal request: jsonrpc and method must be strings",
                ErrorCode.PARSE_ERROR,
            )
        if version != JSONRPC_VERSION:
            return self._fail(
                f"invalid jsonrpc value: {json.dumps(version)}", ErrorCode.INVALID_REQUEST
            )

        response: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
        response.update(self._invoke(method, request))
        response["id"] = request.get("id")
        return response

    @staticmethod
    def _fail(message: str, code: int) -> Dict[str, Any]:
        return {"jsonrpc": JSONRPC_VERSION, "error": _error(code, message), "id": None}

    def _parse_input(self, method: _Method, request: Mapping[str, Any]) -> Any:
        if "params" not in request:
            raise _ParamsError(
                "failed to unmarshal parameters", _DecodeError("unexpected end of JSON input")
            )
        try:
            value = _decode(method.input_type, request["params"], None)
        except _DecodeError as exc:
            raise _ParamsError("failed to unmarshal parameters", exc) from None
        if self.validate and _is_dataclass_instance(value):
            problems: List[str] = []
            _validate(value, type(value).__name__, problems)
            if problems:
                raise _ParamsError("invalid parameters", ValueError("\n".join(problems)))
        return value

    def _invoke(self, name: str, request: Mapping[str, Any]) -> Dict[str, Any]:
        method = self._methods.get(name)
        if method is None:
            return {"error": _error(ErrorCode.METHOD_NOT_FOUND, f"method not found: {name}")}

        value = None
        if method.input_type is not None:
            try:
                value = self._parse_input(method, request)
            except _ParamsError as exc:
                error: BaseException = exc.error
                try:
                    method.failing(exc.error)
                except Exception as passed:
                    error = passed
                return {"error": _error_response(exc.message, ErrorCode.INVALID_PARAMS, error)}

        try:
            result = method.use_case(value)
        except Exception as exc:
            return {"error": _error_response("operation failed", ErrorCode.INTERNAL_ERROR, exc)}

        if result is None and method.output_type is not None:
            result = _zero(method.output_type)
        try:
            encoded = _encode(result)
            json.dumps(encoded)
        except (TypeError, ValueError) as exc:
            return {"error": _error(ErrorCode.INTERNAL_ERROR, f"failed to marshal result: {exc}")}
        return {"result": encoded}

    def __call__(self, environ: Mapping[str, Any], start_response: Callable) -> List[bytes]:
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""
        response = self.handle(body)
        data = (
            json.dumps(response, ensure_ascii=False, separators=(",", ":")) + "\n"
        ).encode("utf-8")
        start_response(
            "200 OK",
            [("Content-Type", "application/json; charset: utf-8"), ("Content-Length", str(len(data)))],
        )
        return [data]


def swgui_settings(settings: Optional[Dict[str, str]], rpc_path: str) -> Dict[str, str]:
    """Add a Swagger UI request interceptor that wraps calls in JSON-RPC envelopes."""
    if settings is None:
        settings = {}
    settings["requestInterceptor"] = (
        "function(request) {\n"
        "\t\t\t\tif (request.loadSpec) {\n"
        "\t\t\t\t\treturn request;\n"
        "\t\t\t\t}\n"
        "\n"
        "\t\t\t\tconsole.log(JSON.parse(JSON.stringify(request)));\n"
        "\n"
        "\t\t\t\tvar url = window.location.protocol + '//'+ window.location.host;\n"
        "\t\t\t\tvar method = request.url.substring(url.length);\n"
        "\t\t\t\trequest.url = url + '" + rpc_path + "';\n"
        "\t\t\t\trequest.body = '{\"jsonrpc\": \"2.0\", \"method\": \"' + method + "
        "'\", \"id\": 1, \"params\": ' + request.body + '}';\n"
        "\t\t\t\treturn request;\n"
        "\t\t\t}"
    )
    return settings


def json_response(start_response: Callable, code: int, value: Any) -> List[bytes]:
    """Start a JSON response and return its WSGI body.

    The status line is always ``200 OK``; ``code`` is the caller's intended
    status and is not sent.
    """
    body = (json.dumps(value, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")
    start_response("200 OK", [("Content-Type", "application/json")])
    return [body]


def text_response(start_response: Callable, code: int, value: str) -> List[bytes]:
    """Start a plain text response and return its WSGI body; the status is always 200 OK."""
    start_response("200 OK", [("Content-Type", "plain/text")])
    return [value.encode("utf-8")]