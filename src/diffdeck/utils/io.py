from __future__ import annotations

from typing import Iterable

from .logger import log

DEFAULT_ENCODINGS: tuple[str, ...] = (
    "utf-8",
    "utf-8-sig",
    "cp1252",
    "latin-1",
)


def decode_bytes(
    data: bytes, encodings: Iterable[str] = DEFAULT_ENCODINGS, ignore_on_last: bool = True
) -> tuple[str, str]:
    """
    Decode raw bytes trying multiple encodings in order.

    Returns (text, used_encoding).
    If all strict attempts fail and ignore_on_last is True, retries the last
    encoding with errors="ignore".
    """
    last_enc = None
    for enc in encodings:
        last_enc = enc
        try:
            return data.decode(enc), enc
        except UnicodeDecodeError:
            continue
    if ignore_on_last and last_enc:
        log.debug(f"[IO] Decoded with ignore ({last_enc})")
        return data.decode(last_enc, errors="ignore"), f"{last_enc}+ignore"
    return ("", last_enc or "")


def read_text(
    path: str, encodings: Iterable[str] = DEFAULT_ENCODINGS, ignore_on_last: bool = True
) -> tuple[str, str]:
    """
    Read a text file trying multiple encodings in order.

    Returns (text, used_encoding). OSError propagates to the caller, which
    decides whether a missing file is fatal.
    """
    with open(path, "rb") as f:
        data = f.read()
    return decode_bytes(data, encodings=encodings, ignore_on_last=ignore_on_last)
