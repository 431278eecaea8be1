# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import FakeStrategy, FakeSurface, make_sites
"""

from .utils import FakeStrategy, FakeSurface, RecordingObserver, make_settings, make_site, make_sites

__all__ = ["FakeStrategy", "FakeSurface", "RecordingObserver", "make_settings", "make_site", "make_sites"]
