"""
FF Blog: a small Flask blog/CMS.

The web layer lives in :mod:`ffblog.app`; the supporting services
(model layer, cache, events, validation, migrations) are plain modules
beside it so they can be used from the CLI and from tests without an
application context.
"""

__version__ = "1.0.0"
