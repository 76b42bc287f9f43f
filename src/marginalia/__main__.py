"""Allow ``python -m marginalia``."""

from .app import main

raise SystemExit(main())
