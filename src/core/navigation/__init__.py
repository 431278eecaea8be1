# src/core/navigation/__init__.py
from .context import AppContext, build_context
from .controller import NavigationController
from .events import LoggingObserver, NavigationObserver, NullObserver, ObserverGroup
from .surfaces import ContentSurface, HttpSurface

__all__ = [
    "AppContext",
    "build_context",
    "NavigationController",
    "NavigationObserver",
    "NullObserver",
    "LoggingObserver",
    "ObserverGroup",
    "ContentSurface",
    "HttpSurface",
]
