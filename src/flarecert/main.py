"""FlareCert main public entry point."""
from typing import List
from typing import Optional

from flarecert._internal import main as internal_main


def main(cli_args: Optional[List[str]] = None) -> int:
    """Run FlareCert.

    :param cli_args: command line to FlareCert, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit` about the exit status of FlareCert
    :rtype: int

    """
    return internal_main.main(cli_args)
