"""Router - Maps an exchange outcome to a routing decision.

A ResponseRecord yields the full set of response attributes; an error yields
a single error.message attribute. The two are never combined.
"""

from __future__ import annotations

from jsonpost.models import ResponseRecord, RoutingDecision, RoutingOutcome

ATT_STATUS_CODE = "status.code"
ATT_STATUS_MESSAGE = "status.message"
ATT_HOST_URL = "host.url"
ATT_MIME_TYPE = "mime.type"
ATT_RESPONSE_BODY = "response.body"
ATT_ERROR_MESSAGE = "error.message"

SUCCESS_STATUS_CODES = frozenset({200, 201})


def outcome_for_status(status_code: int) -> RoutingOutcome:
    """Success for 200 and 201, Failure for everything else."""
    if status_code in SUCCESS_STATUS_CODES:
        return RoutingOutcome.SUCCESS
    return RoutingOutcome.FAILURE


def response_attributes(record: ResponseRecord) -> dict[str, str]:
    """Attributes describing a response. mime.type is omitted when unknown."""
    attributes = {
        ATT_STATUS_CODE: str(record.status_code),
        ATT_STATUS_MESSAGE: record.status_message,
        ATT_HOST_URL: record.host_url,
        ATT_RESPONSE_BODY: record.body,
    }
    if record.content_type is not None:
        attributes[ATT_MIME_TYPE] = record.content_type
    return attributes


def route(source: ResponseRecord | BaseException) -> RoutingDecision:
    """Decide destination, attributes, and new content for a work item.

    Args:
        source: The captured response, or the error that stopped the exchange.

    Returns:
        RoutingDecision. content is None when the item's content should be
        left as it is (error, or a response without body).
    """
    if isinstance(source, BaseException):
        return RoutingDecision(
            destination=RoutingOutcome.FAILURE,
            attributes={ATT_ERROR_MESSAGE: str(source)},
        )

    return RoutingDecision(
        destination=outcome_for_status(source.status_code),
        attributes=response_attributes(source),
        content=source.body or None,
    )
