"""reqflow: staged requirements document pipeline."""

__version__ = "0.1.0"

from reqflow.main import create_app  # noqa: E402

__all__ = ["create_app", "__version__"]
