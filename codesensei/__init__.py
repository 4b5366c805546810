"""CodeSensei: ask questions about a GitHub repository or uploaded project."""

__version__ = "0.1.0"

from .app import create_app
from .context_store import ContextStore

__all__ = ["create_app", "ContextStore", "__version__"]
