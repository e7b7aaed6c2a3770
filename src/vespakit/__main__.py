"""Allow ``python -m vespakit``."""

from vespakit.cli.main import run

run()
