"""Normalization of vendor streaming formats into plain text fragments."""

import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Mapping

from .constants import HTML_DOCUMENT_END_MARKER
from .errors import MalformedStreamLineError, UnsupportedProviderError
from .providers.base import VendorAdapter
from .providers.cloud import CLOUD_ADAPTERS

logger = logging.getLogger(__name__)

StopPredicate = Callable[[str], bool]


def html_document_closed(accumulated: str) -> bool:
    """Default stop predicate: responses are expected to be single HTML documents."""
    return HTML_DOCUMENT_END_MARKER in accumulated


def never_stop(accumulated: str) -> bool:
    return False


async def normalize_stream(
    lines: AsyncIterable[str],
    adapter: VendorAdapter,
    *,
    should_stop: StopPredicate = html_document_closed,
) -> AsyncIterator[str]:
    """Yield text fragments from vendor stream lines, in upstream order.

    Iteration ends when the upstream lines run out, when the adapter sees an
    in-band end marker, or as soon as ``should_stop`` accepts the text emitted
    so far. No further lines are pulled after that point.
    """
    accumulated = ""
    async for line in lines:
        if not line.strip():
            continue
        if adapter.is_stream_end(line):
            return
        try:
            fragment = adapter.extract_stream_fragment(line)
        except MalformedStreamLineError:
            logger.warning(
                "Skipping malformed stream line",
                extra={"vendor": adapter.vendor, "line_length": len(line)},
            )
            continue
        if not fragment:
            continue

        yield fragment
        accumulated += fragment
        if should_stop(accumulated):
            return


def iter_fragments(
    lines: AsyncIterable[str],
    vendor: str,
    *,
    adapters: Mapping[str, VendorAdapter] = CLOUD_ADAPTERS,
    should_stop: StopPredicate = html_document_closed,
) -> AsyncIterator[str]:
    adapter = adapters.get(vendor)
    if adapter is None:
        raise UnsupportedProviderError(vendor)
    return normalize_stream(lines, adapter, should_stop=should_stop)
