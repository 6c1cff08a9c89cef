"""Script de ejecución.

Permite lanzar el servidor con `python -m main` desde `src/` además del
script `strapi-mcp` instalado por pip.
"""

from __future__ import annotations

import sys

# Los logs van a stderr; en Windows la consola puede no ser UTF-8.
if sys.platform == "win32":
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
