"""Entry point: python -m loreweave [report [TURN] | reset]

- "report": Winners stored for TURN (default: the latest cached turn)
- "reset":  Clear the turn cache
"""

from __future__ import annotations

import sys

from loreweave.config import load_config, setup_logging


def _run_report(args: list[str]) -> None:
    config = load_config()
    setup_logging(config.log_level)

    from loreweave.core import Loreweave

    weave = Loreweave(config)
    turns = weave.cache.turns
    if args:
        turn = int(args[0])
    elif turns:
        turn = turns[-1]
    else:
        turn = 0
    print(weave.report(turn))


def _run_reset() -> None:
    config = load_config()
    setup_logging(config.log_level)

    from loreweave.core import Loreweave

    Loreweave(config).reset()
    print("Turn cache cleared.")


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else "report"

    if cmd == "report":
        _run_report(args[1:])
    elif cmd == "reset":
        _run_reset()
    else:
        print("Usage: python -m loreweave [report [TURN] | reset]")
        print("  report  Winners stored for TURN (default: the latest cached turn)")
        print("  reset   Clear the turn cache")
        sys.exit(1)


if __name__ == "__main__":
    main()
