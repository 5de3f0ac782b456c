"""Internal FlareCert display utilities."""
import textwrap
from typing import List
from typing import Sequence
from typing import TextIO

from tabulate import tabulate


def wrap_lines(msg: str) -> str:
    """Format lines nicely to 80 chars.

    :param str msg: Original message

    :returns: Formatted message respecting newlines in message
    :rtype: str

    """
    lines = msg.splitlines()
    fixed_l = []

    for line in lines:
        fixed_l.append(textwrap.fill(
            line,
            80,
            break_long_words=False,
            break_on_hyphens=False))

    return '\n'.join(fixed_l)


def read_line(infile: TextIO) -> str:
    """Read one line from ``infile``.

    :raises EOFError: if the stream is closed

    """
    line = infile.readline()
    if not line:
        raise EOFError
    return line.rstrip('\n')


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[str]:
    """Left-align ``rows`` under ``headers`` in columns.

    A dashed rule is placed under the header line. Cells are never parsed
    as numbers, so zone IDs and dates keep their text alignment.

    """
    table = tabulate(rows, headers=list(headers), tablefmt="simple",
                     disable_numparse=True, stralign="left")
    return [line.rstrip() for line in table.splitlines()]
