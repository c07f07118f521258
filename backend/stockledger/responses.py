# Overview: JSON envelope shared by every inventory endpoint.

from __future__ import annotations

from typing import Any

from flask import jsonify

from .errors import LedgerError


def ok(data: Any = None, status: int = 200, meta: dict | None = None):
    body = {"ok": True, "data": data, "error": None}
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def fail(message: str, status: int, code: str | None = None, details: dict | None = None):
    body = {"ok": False, "data": None, "error": message}
    if code:
        body["code"] = code
    if details:
        body["details"] = details
    return jsonify(body), status


def from_error(exc: LedgerError):
    return fail(str(exc), exc.http_status, code=exc.code, details=exc.details)
