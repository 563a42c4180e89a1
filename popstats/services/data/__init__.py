"""
POPSTATS - Data Codecs
"""

from popstats.services.data.csv_codec import (
    format_row,
    iter_chunks,
    iter_lines,
    parse_chunk,
    parse_line,
    render_csv,
    round_half_up,
    write_csv,
)

__all__ = [
    "format_row",
    "iter_chunks",
    "iter_lines",
    "parse_chunk",
    "parse_line",
    "render_csv",
    "round_half_up",
    "write_csv",
]
