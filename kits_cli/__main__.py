"""Package entry point for ``python -m kits_cli``.

WHY: Users run the client as ``python -m kits_cli <command>`` when the
``kits-cli`` console script is not on PATH.

HOW: Delegates to the CLI's main() function.
"""

from kits_cli.cli import main

if __name__ == "__main__":
    main()
