"""Request Builder - Resolves URL and body templates into a RequestSpec.

Both templates are evaluated against the work item's attributes and trimmed.
The URL must be an absolute http(s) URL and the body must be parseable JSON;
both checks are local, so an invalid request never reaches the network.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Mapping

import httpx

from jsonpost.expression import evaluate as default_evaluate
from jsonpost.models import RequestSpec

Evaluator = Callable[[str, Mapping[str, str]], str]

SUPPORTED_SCHEMES = ("http", "https")


class BuildError(Exception):
    """Base class for request building errors."""


class InvalidUrlError(BuildError):
    """Raised when the resolved URL is not an absolute http(s) URL."""


class InvalidJsonError(BuildError):
    """Raised when the resolved body is not JSON text."""


def parse_url(text: str) -> httpx.URL:
    """Parse an absolute http(s) URL.

    Raises:
        InvalidUrlError: If the text is not a URL, is relative, has no host,
            or uses a scheme other than http/https.
    """
    try:
        url = httpx.URL(text)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidUrlError(f"Invalid URL '{text}': {e}") from e

    if not url.scheme:
        raise InvalidUrlError(f"Invalid URL '{text}': no scheme")
    if url.scheme not in SUPPORTED_SCHEMES:
        raise InvalidUrlError(
            f"Invalid URL '{text}': unsupported scheme '{url.scheme}' "
            f"(expected one of: {', '.join(SUPPORTED_SCHEMES)})"
        )
    if not url.host:
        raise InvalidUrlError(f"Invalid URL '{text}': no host")
    return url


def _load_json(text: str) -> Any:
    if not text:
        raise InvalidJsonError("Request body is empty")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidJsonError(f"Request body is not valid JSON: {e}") from e
    except RecursionError as e:
        raise InvalidJsonError("Request body is nested too deeply to parse") from e


def validate_json(text: str) -> str:
    """Check that text is a JSON document and return it unchanged.

    Raises:
        InvalidJsonError: If the text is empty, not valid JSON, or nested
            beyond the parser's recursion limit.
    """
    _load_json(text)
    return text


def minify_json(text: str) -> str:
    """Return the minified form of a JSON document, preserving key order.

    Non-ASCII text is kept as is, unless the document holds a lone surrogate
    escape (e.g. ``"\\ud800"``) with no UTF-8 form; then every non-ASCII
    character is written as a ``\\u`` escape.

    Raises:
        InvalidJsonError: If the text is empty or not valid JSON.
    """
    document = _load_json(text)
    try:
        minified = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
    except RecursionError as e:
        raise InvalidJsonError("Request body is nested too deeply to minify") from e

    try:
        minified.encode("utf-8")
    except UnicodeEncodeError:
        return json.dumps(document, separators=(",", ":"), ensure_ascii=True)
    return minified


def check_encodable(body: str) -> str:
    """Return the body unchanged if it can be sent UTF-8 encoded.

    Raises:
        InvalidJsonError: If the body holds characters with no UTF-8 form,
            such as a lone surrogate substituted from an attribute.
    """
    try:
        body.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidJsonError(f"Request body cannot be encoded as UTF-8: {e}") from e
    return body


def resolve(
    url_template: str,
    body_template: str | None,
    attributes: Mapping[str, str],
    evaluate: Evaluator = default_evaluate,
    minify: bool = False,
) -> RequestSpec:
    """Resolve templates against attributes into a concrete request.

    Args:
        url_template: URL with optional ``{name}`` placeholders.
        body_template: JSON body with optional placeholders. None resolves to
            an empty body, which fails validation.
        attributes: Work item attributes used for substitution.
        evaluate: Placeholder resolver.
        minify: Send the minified body instead of the resolved text.

    Returns:
        RequestSpec with the resolved URL and validated JSON body.

    Raises:
        InvalidUrlError: If the resolved URL is not an absolute http(s) URL.
        InvalidJsonError: If the resolved body is empty, not JSON, or cannot
            be encoded as UTF-8.
    """
    url = evaluate(url_template, attributes).strip()
    parse_url(url)

    body = evaluate(body_template, attributes).strip() if body_template is not None else ""
    body = minify_json(body) if minify else validate_json(body)
    check_encodable(body)
    return RequestSpec(url=url, body=body)
