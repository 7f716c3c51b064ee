"""Run the checker as ``python -m whatsapp_checker check|reconcile ...``.

Without arguments the usage text is printed and the exit status is 2, the
same status argparse uses for usage errors.
"""
from __future__ import annotations

import sys

from . import cli


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if args:
        return cli.main(args)

    cli.build_parser(prog="python -m whatsapp_checker").print_help()
    return 2


if __name__ == "__main__":  # pragma: no cover - module entry point
    sys.exit(main())
