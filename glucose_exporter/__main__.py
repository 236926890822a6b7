"""Allow ``python -m glucose_exporter``."""

from .main import run

run()
