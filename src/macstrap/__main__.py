"""Allow ``python -m macstrap`` (used by the elevated job re-invocation)."""
from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main()
