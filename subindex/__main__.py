"""Allow ``python -m subindex``."""

from subindex.main import main

raise SystemExit(main())
