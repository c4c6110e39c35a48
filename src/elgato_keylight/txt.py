"""Parsing of DNS-SD TXT metadata strings."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# A quoted token, or a run of non-space characters (which may hold a stray quote)
_TOKEN = re.compile(r'"([^"]*)"|(\S+)')


def parse_txt(raw: str) -> dict[str, str]:
    """Parse ``"pv=1.0" "md=Elgato Key Light 20GAK9901"`` into a mapping.

    Tokens are separated by whitespace and usually quoted, so values may
    contain spaces.  Tokens without ``=`` or with an unmatched quote are
    skipped one by one; the rest of the record is still returned.  Keys keep
    their original spelling and a repeated key keeps its last value.
    """
    result: dict[str, str] = {}
    for match in _TOKEN.finditer(raw):
        quoted, bare = match.groups()
        token = quoted if quoted is not None else bare
        if bare is not None and '"' in bare:
            logger.debug("Skipping TXT token with unmatched quote: %r", bare)
            continue
        key, sep, value = token.partition("=")
        if not sep or not key:
            logger.debug("Skipping TXT token without key=value: %r", token)
            continue
        result[key] = value
    return result


def parse_txt_records(records: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Merge several raw TXT strings into one mapping, in order."""
    result: dict[str, str] = {}
    for raw in records:
        result.update(parse_txt(raw))
    return result
