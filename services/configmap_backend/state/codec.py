"""
Encoding applied to Terraform state before it is written to a ConfigMap.

Writes optionally minify the JSON and then gzip it at maximum compression;
reads gunzip. Minification is not undone on read: the returned state is
parse-equivalent to what was written, not byte-identical.
"""

import gzip
import json
import re
import zlib

from configmap_backend.protocol import CodecError


class StateCodec:
    """Static compress/minify transform shared by every request."""

    def __init__(self, compress: bool = True, minify: bool = False) -> None:
        self.compress = compress
        self.minify = minify

    def encode(self, raw: bytes) -> bytes:
        data = raw
        if self.minify:
            data = minify_json(data)
        if self.compress:
            data = gzip.compress(data, compresslevel=9)
        return data

    def decode(self, stored: bytes) -> bytes:
        if not self.compress:
            return stored
        try:
            return gzip.decompress(stored)
        except (OSError, EOFError, zlib.error) as e:
            raise CodecError(f"failed to read compressed Terraform state: {e}") from e


# Strings are matched whole so whitespace inside them survives
_TOKENS = re.compile(r'("(?:[^"\\]|\\.)*")|[ \t\n\r]+', re.DOTALL)


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid JSON literal {name}")


def minify_json(data: bytes) -> bytes:
    """Remove insignificant whitespace from a JSON document.

    The document is validated first, then whitespace outside strings is
    stripped lexically so number and string text is kept exactly.
    """
    try:
        text = data.decode("utf-8")
        json.loads(text, parse_constant=_reject_constant, parse_float=str, parse_int=str)
    except (UnicodeDecodeError, ValueError) as e:
        raise CodecError(f"failed to minify Terraform state: {e}") from e
    return _TOKENS.sub(lambda m: m.group(1) or "", text).encode("utf-8")
