"""Helpers shared by the JSON route handlers."""

import math

from flask import jsonify, request


def json_body():
    """The request's JSON object, or an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def validation_error(e):
    """400 response for a pydantic ValidationError."""
    return jsonify({
        'error': 'Validasi gagal',
        'details': e.errors(include_url=False, include_context=False),
    }), 400


def page_args(default_limit=50):
    """Read `page` and `limit` from the query string (both at least 1)."""
    page = request.args.get('page', 1, type=int) or 1
    limit = request.args.get('limit', default_limit, type=int) or default_limit
    return max(page, 1), max(limit, 1)


def paginate(items, page, limit):
    """Slice a list and return (page_items, total, total_pages)."""
    total = len(items)
    total_pages = math.ceil(total / limit) if total else 0
    start = (page - 1) * limit
    return items[start:start + limit], total, total_pages


def sort_newest(items, key='createdAt'):
    """Sort documents newest first on an ISO timestamp field."""
    return sorted(items, key=lambda d: d.get(key) or '', reverse=True)
