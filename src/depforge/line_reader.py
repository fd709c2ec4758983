"""Line reading shared by the source scanner and the descriptor reader."""

from typing import Iterable, Iterator, Optional, Tuple


def read_lines(stream: Iterable[str]) -> Iterator[Tuple[int, str]]:
    """
    Iterate over logical lines, joining backslash-newline continuations.

    Trailing newline and carriage return characters are removed. Each logical
    line is reported with the number of its last physical line.

    Args:
        stream: Iterable of raw text lines (e.g. an open text file)

    Yields:
        (line number, logical line text) tuples
    """
    line_no = 0
    pending: Optional[str] = None

    for raw in stream:
        line_no += 1
        had_newline = raw.endswith("\n")
        text = raw[:-1] if had_newline else raw
        if had_newline and text.endswith("\r"):
            text = text[:-1]

        buffer = text if pending is None else pending + text
        if had_newline and buffer.endswith("\\"):
            pending = buffer[:-1]
            continue

        pending = None
        yield line_no, buffer

    if pending is not None:
        yield line_no, pending

