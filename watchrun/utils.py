import codecs
from pathlib import Path


def decode_output(data: bytes) -> str:
    """Decode captured process output; invalid UTF-8 becomes U+FFFD."""
    return data.decode("utf-8", errors="replace")


def stream_decoder() -> codecs.IncrementalDecoder:
    # For output read in chunks, where a multibyte character may be split
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


def prefers_polling(path: Path) -> bool:
    """Auto-poll under /mnt to avoid inotify issues on mounted drives."""
    return str(path).startswith("/mnt/")
