"""Processor - Posts a JSON body per work item and routes the item.

One trigger takes one work item from the session (creating one when there is
no input), resolves the request, posts it, and transfers the item to Success
or Failure with the response attached as attributes.

Errors that stop the exchange (invalid URL, invalid JSON, transport failure,
unusable TLS settings) are reported twice: the item is transferred to Failure
with an error.message attribute, and ProcessingError is raised afterwards so
the host sees the failure too.
"""

from __future__ import annotations

import logging

from jsonpost.exchange import ExchangeError, HTTPExchange
from jsonpost.expression import evaluate as default_evaluate
from jsonpost.models import ProcessorConfig, RoutingOutcome, WorkItem
from jsonpost.request_builder import BuildError, Evaluator, resolve
from jsonpost.router import route
from jsonpost.session import Session
from jsonpost.tls import StandardTlsContextProvider, TlsConfigError, TlsContextProvider

logger = logging.getLogger(__name__)

# Failures that still leave the item routable.
ROUTABLE_ERRORS = (BuildError, ExchangeError, TlsConfigError)


class ProcessingError(Exception):
    """Raised to the host after a failed item has been routed."""


def build_tls_provider(config: ProcessorConfig) -> TlsContextProvider | None:
    """Provider for the configured TLS settings, or None when there are none."""
    if config.tls is None:
        return None
    return StandardTlsContextProvider(config.tls)


class PostJsonProcessor:
    """Posts JSON built from templates and routes work items by response status.

    Usage:
        processor = PostJsonProcessor(config)
        item = processor.on_trigger(session)
    """

    def __init__(
        self,
        config: ProcessorConfig,
        exchange: HTTPExchange | None = None,
        evaluate: Evaluator = default_evaluate,
    ) -> None:
        """Initialize the processor.

        Args:
            config: Templates, TLS settings, and timeouts. Read-only here.
            exchange: Exchange to post with. Built from config when None.
            evaluate: Placeholder resolver for the templates.
        """
        self._config = config
        self._exchange = exchange or HTTPExchange(
            tls_provider=build_tls_provider(config),
            timeout=config.timeout,
        )
        self._evaluate = evaluate

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    def on_trigger(self, session: Session) -> WorkItem:
        """Process one work item.

        Args:
            session: Host session providing and receiving the item.

        Returns:
            The item as transferred.

        Raises:
            ProcessingError: After routing the item to Failure, when the
                request could not be built or the exchange failed.
        """
        item = session.get()
        if item is None:
            item = session.create()

        try:
            request = resolve(
                self._config.url,
                self._config.body,
                item.attributes,
                evaluate=self._evaluate,
                minify=self._config.minify_body,
            )
            record = self._exchange.post(request.url, request.body)
        except ROUTABLE_ERRORS as e:
            decision = route(e)
            item = item.with_attributes(decision.attributes)
            session.transfer(item, decision.destination)
            logger.error("POST failed for work item %s: %s", item.id, e)
            raise ProcessingError(str(e)) from e

        decision = route(record)
        item = item.with_attributes(decision.attributes)
        if decision.content is not None:
            item = item.with_content(decision.content.encode("utf-8"))

        if decision.destination is RoutingOutcome.FAILURE:
            logger.error(
                "There was an error with POST request, status: %s, response message: '%s'",
                record.status_code,
                record.status_message,
            )

        session.transfer(item, decision.destination)
        return item
