# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Query-string filtering.

Works on raw bytes only: segments are never decoded or re-encoded, so
``%2B``, ``+`` and any other octets come out exactly as they went in.
"""

from typing import Callable, Iterator, Tuple

SEPARATOR = b"&"
ASSIGN = b"="


def split_key(segment: bytes) -> bytes:
    """Key of ``key=value`` (bytes before the first ``=``), or the whole segment."""
    return segment.partition(ASSIGN)[0]


def iter_segments(query: bytes) -> Iterator[Tuple[bytes, bytes]]:
    """Yield (key, segment) for every non-empty segment, in order."""
    for segment in query.split(SEPARATOR):
        if segment:
            yield split_key(segment), segment


def filter_query(query: bytes, keep: Callable[[bytes], bool]) -> bytes:
    """
    Rebuild ``query`` from the segments whose key ``keep`` accepts.

    Empty segments are dropped without leaving stray separators; kept
    segments keep their original order and bytes.

    Example:
        >>> filter_query(b"&&a&&b=2&c&&", lambda k: k in (b"a", b"c"))
        b'a&c'
    """
    output = bytearray()

    for key, segment in iter_segments(query):
        if not keep(key):
            continue

        if output:
            output += SEPARATOR
        output += segment

    return bytes(output)
