"""API Contract — loads an OpenAPI document and validates traffic against it.

Invariants:
    - load() either returns a fully resolved contract or raises ContractConfigurationError
    - Local $refs are inlined at load time; remote refs are rejected
    - match() raises RouteNotFoundError (404) / MethodNotAllowedError (405)
    - validate_request() raises RequestValidationFailed (400) or UnsupportedMediaTypeError (415)
    - validate_response() raises ResponseContractError (500)
    - Literal path segments win over templated ones (/users/me before /users/{id})
    - The router's mount prefix is stripped first, then a `servers` base path;
      trailing slashes are significant (/users/ does not match /users)

Design Decisions:
    - OpenAPI 3.0 schemas are validated with jsonschema Draft 4 (the dialect 3.0 extends)
      plus the date-time format checker backed by rfc3339-validator
    - Parameter values arrive as strings and are coerced per schema type before validation
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx
import yaml
from jsonschema import Draft4Validator
from openapi_spec_validator import validate as validate_openapi_document

from userservice.core.errors import (
    ContractConfigurationError, FieldViolation, MethodNotAllowedError,
    RequestValidationFailed, ResponseContractError, RouteNotFoundError,
    UnsupportedMediaTypeError, stringify_value,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
JSON_MEDIA_TYPE = "application/json"
_TEMPLATE_SEGMENT = re.compile(r"\{([^}/]+)\}")


@dataclass
class Operation:
    """One method on one contract path, with its resolved schemas."""
    method: str
    path_template: str
    parameters: list[dict] = field(default_factory=list)
    request_body: dict | None = None
    responses: dict[str, dict] = field(default_factory=dict)
    operation_id: str | None = None


@dataclass
class OperationMatch:
    """An operation plus the path parameters extracted from the request URL."""
    operation: Operation
    path_params: dict[str, str]


@dataclass
class _PathEntry:
    template: str
    pattern: re.Pattern
    param_names: list[str]
    operations: dict[str, Operation]

    @property
    def literal_weight(self) -> tuple[int, int]:
        # fewer templated segments first, then longer literal text first
        return (len(self.param_names), -len(_TEMPLATE_SEGMENT.sub("", self.template)))


class ApiContract:
    """Resolved OpenAPI document with request/response validation."""

    def __init__(self, document: dict, location: str = "<memory>"):
        self.location = location
        self.document = document
        self.base_paths = _server_base_paths(document)
        self._paths = sorted(
            (_build_path_entry(t, item) for t, item in document.get("paths", {}).items()),
            key=lambda entry: entry.literal_weight,
        )

    # ─── Loading ─────────────────────────────────────────────────

    @classmethod
    def load(cls, location: str | Path) -> "ApiContract":
        """Read, parse, structurally validate and resolve a contract. Fails fast."""
        location = str(location)
        if not location:
            raise ContractConfigurationError(location, "no contract location configured")
        raw = _read_document(location)
        try:
            document = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ContractConfigurationError(location, f"unparseable document: {e}") from e
        if not isinstance(document, dict):
            raise ContractConfigurationError(location, "document is not a mapping")
        try:
            validate_openapi_document(document)
        except Exception as e:
            raise ContractConfigurationError(
                location, f"not a valid OpenAPI document: {e}",
            ) from e
        resolved = _resolve_refs(document, document, location, ())
        logger.info(
            f"Loaded API contract {location}",
            extra={"event_name": "contract.loaded"},
        )
        return cls(resolved, location)

    # ─── Matching ────────────────────────────────────────────────

    def match(self, method: str, path: str, mount_prefix: str = "") -> OperationMatch:
        """Find the operation for a request path served under mount_prefix."""
        mounted = strip_path_prefix(path, mount_prefix)
        relative = self._strip_base_path(mounted) if mounted is not None else None
        if relative is None:
            raise RouteNotFoundError(path)
        path_matched = False
        for entry in self._paths:
            found = entry.pattern.fullmatch(relative)
            if not found:
                continue
            path_matched = True
            operation = entry.operations.get(method.lower())
            if operation is None:
                continue
            return OperationMatch(
                operation=operation,
                path_params=dict(zip(entry.param_names, found.groups())),
            )
        if path_matched:
            raise MethodNotAllowedError(method.upper(), path)
        raise RouteNotFoundError(path)

    def _strip_base_path(self, path: str) -> str | None:
        for base in self.base_paths:
            relative = strip_path_prefix(path, base)
            if relative is not None:
                return relative
        return None

    # ─── Requests ────────────────────────────────────────────────

    def validate_request(
        self,
        matched: OperationMatch,
        query_string: str,
        content_type: str,
        body: bytes,
    ) -> None:
        operation = matched.operation
        violations: list[FieldViolation] = []
        query = {k: v[-1] for k, v in parse_qs(query_string, keep_blank_values=True).items()}

        for param in operation.parameters:
            location = param.get("in")
            if location == "path":
                raw_value = matched.path_params.get(param["name"])
            elif location == "query":
                raw_value = query.get(param["name"])
            else:
                continue
            violations.extend(_check_parameter(param, location, raw_value))

        if operation.request_body is not None:
            violations.extend(
                _check_request_body(operation.request_body, content_type, body),
            )

        if violations:
            raise RequestValidationFailed(violations)

    # ─── Responses ───────────────────────────────────────────────

    def validate_response(
        self,
        matched: OperationMatch,
        status: int,
        content_type: str,
        body: bytes,
    ) -> None:
        operation = matched.operation
        declared = _declared_response(operation.responses, status)
        if declared is None:
            raise ResponseContractError(
                f"{operation.method.upper()} {operation.path_template}: "
                f"no response declared for status {status}",
            )
        content = declared.get("content") or {}
        if not content:
            return
        media = _media_type(content_type)
        media_object = content.get(media) if media else None
        if media_object is None:
            if not body:
                raise ResponseContractError(
                    f"{operation.method.upper()} {operation.path_template}: "
                    f"status {status} must have a body",
                )
            raise ResponseContractError(
                f"{operation.method.upper()} {operation.path_template}: "
                f"undeclared response media type {media or '(none)'}",
            )
        schema = media_object.get("schema")
        if schema is None or media != JSON_MEDIA_TYPE:
            return
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise ResponseContractError(f"response body is not JSON: {e}") from e
        errors = list(_validator(schema).iter_errors(payload))
        if errors:
            detail = "; ".join(
                f"{_json_pointer('response', e.absolute_path)}: {e.message}"
                for e in errors
            )
            raise ResponseContractError(
                f"{operation.method.upper()} {operation.path_template} {status}: {detail}",
            )


def strip_path_prefix(path: str, prefix: str) -> str | None:
    """Path relative to prefix ('' = root), or None when it lies outside it.

    Trailing slashes are kept: /users/ is not /users, same as the router.
    """
    if not prefix:
        return path
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix):]
    return None


# ─── Loading helpers ─────────────────────────────────────────────

def _read_document(location: str) -> str:
    if urlparse(location).scheme in ("http", "https"):
        try:
            response = httpx.get(location, timeout=10.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ContractConfigurationError(location, f"cannot fetch: {e}") from e
        return response.text
    try:
        return Path(location).read_text(encoding="utf-8")
    except OSError as e:
        raise ContractConfigurationError(location, f"cannot read: {e}") from e


def _resolve_refs(node: Any, root: dict, location: str, trail: tuple[str, ...]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            if not ref.startswith("#/"):
                raise ContractConfigurationError(location, f"unsupported $ref {ref}")
            if ref in trail:
                raise ContractConfigurationError(location, f"cyclic $ref {ref}")
            target = _lookup_pointer(root, ref, location)
            return _resolve_refs(target, root, location, trail + (ref,))
        return {k: _resolve_refs(v, root, location, trail) for k, v in node.items()}
    if isinstance(node, list):
        return [_resolve_refs(item, root, location, trail) for item in node]
    return node


def _lookup_pointer(root: dict, ref: str, location: str) -> Any:
    target: Any = root
    for token in ref[2:].split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if not isinstance(target, dict) or token not in target:
            raise ContractConfigurationError(location, f"unresolvable $ref {ref}")
        target = target[token]
    return target


def _server_base_paths(document: dict) -> list[str]:
    paths = {
        urlparse(server.get("url", "")).path.rstrip("/")
        for server in document.get("servers") or []
        if "{" not in server.get("url", "")
    }
    # longest first so /v1/api is tried before /v1
    return sorted(paths, key=len, reverse=True) or [""]


def _build_path_entry(template: str, item: dict) -> _PathEntry:
    names = _TEMPLATE_SEGMENT.findall(template)
    regex = _TEMPLATE_SEGMENT.sub("([^/]+)", re.escape(template).replace(r"\{", "{").replace(r"\}", "}"))
    shared = item.get("parameters", [])
    operations = {}
    for method in HTTP_METHODS:
        spec = item.get(method)
        if spec is None:
            continue
        operations[method] = Operation(
            method=method,
            path_template=template,
            parameters=_merge_parameters(shared, spec.get("parameters", [])),
            request_body=spec.get("requestBody"),
            responses={str(k): v for k, v in spec.get("responses", {}).items()},
            operation_id=spec.get("operationId"),
        )
    return _PathEntry(
        template=template,
        pattern=re.compile(regex.rstrip("/") or "/"),
        param_names=names,
        operations=operations,
    )


def _merge_parameters(shared: list[dict], own: list[dict]) -> list[dict]:
    merged = {(p["name"], p["in"]): p for p in shared}
    merged.update({(p["name"], p["in"]): p for p in own})
    return list(merged.values())


# ─── Validation helpers ──────────────────────────────────────────

def _validator(schema: dict) -> Draft4Validator:
    return Draft4Validator(schema, format_checker=Draft4Validator.FORMAT_CHECKER)


def _check_parameter(param: dict, location: str, raw_value: str | None) -> list[FieldViolation]:
    name = f"{location}.{param['name']}"
    if raw_value is None:
        if param.get("required") or location == "path":
            return [FieldViolation(name, f"must have required property '{param['name']}'")]
        return []
    schema = param.get("schema") or {}
    value = _coerce(raw_value, schema)
    return [
        FieldViolation(_json_pointer(name, e.absolute_path), e.message, raw_value)
        for e in _validator(schema).iter_errors(value)
    ]


def _coerce(raw: str, schema: dict) -> Any:
    kind = schema.get("type")
    try:
        if kind == "integer":
            return int(raw)
        if kind == "number":
            return float(raw)
    except ValueError:
        return raw
    if kind == "boolean" and raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    if kind == "array":
        items = schema.get("items") or {}
        return [_coerce(part, items) for part in raw.split(",")]
    return raw


def _check_request_body(request_body: dict, content_type: str, body: bytes) -> list[FieldViolation]:
    if not body:
        if request_body.get("required"):
            return [FieldViolation("body", "request body is required")]
        return []
    content = request_body.get("content") or {}
    media = _media_type(content_type)
    if media not in content:
        raise UnsupportedMediaTypeError(media)
    schema = content[media].get("schema")
    if schema is None or media != JSON_MEDIA_TYPE:
        return []
    try:
        payload = json.loads(body)
    except ValueError as e:
        return [FieldViolation("body", f"malformed JSON: {e.msg}")]
    return [_violation_from(e) for e in _validator(schema).iter_errors(payload)]


def _violation_from(error) -> FieldViolation:
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = next(
            (p for p in error.validator_value
             if p not in error.instance and repr(p) in error.message),
            None,
        )
        if missing is not None:
            return FieldViolation(
                _json_pointer("body", list(error.absolute_path) + [missing]),
                f"must have required property '{missing}'",
            )
    return FieldViolation(
        _json_pointer("body", error.absolute_path),
        error.message,
        stringify_value(error.instance),
    )


def _json_pointer(prefix: str, path) -> str:
    return ".".join([prefix, *(str(p) for p in path)])


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _declared_response(responses: dict[str, dict], status: int) -> dict | None:
    code = str(status)
    if code in responses:
        return responses[code]
    range_key = f"{code[0]}XX"
    for key, value in responses.items():
        if key.upper() == range_key:
            return value
    return responses.get("default")
