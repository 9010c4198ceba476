"""Host-to-address rewriting for decoders that cannot follow stream redirects."""

from __future__ import annotations

import logging
import socket
from urllib.parse import urlsplit, urlunsplit

from tz_radio.utils.async_utils import run_blocking_bounded

logger = logging.getLogger(__name__)

LOOKUP_TIMEOUT_S = 5.0


async def resolve_playable_uri(uri: str) -> str:
    """Replace the host of `uri` with its numeric address.

    Raises `OSError` when the lookup fails or takes longer than
    `LOOKUP_TIMEOUT_S`.
    """
    parts = urlsplit(uri)
    host = parts.hostname
    if not host:
        return uri
    address = await run_blocking_bounded(LOOKUP_TIMEOUT_S, socket.gethostbyname, host)
    resolved = urlunsplit(parts._replace(netloc=parts.netloc.replace(host, address, 1)))
    logger.info("%s => %s", uri, resolved)
    return resolved
