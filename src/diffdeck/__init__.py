"""diffdeck package initialization.

Textual's App._print can raise OSError when the original stdout handle is
invalid (headless test runs, detached terminals). The wrapper below drops
those writes so the app keeps running.
"""

from __future__ import annotations

from textual.app import App

from diffdeck.utils.logger import log

__version__ = "0.1.0"

_orig_print = getattr(App, "_print", None)

if callable(_orig_print):

    def _safe_print(self: App, text: str, stderr: bool = False):
        try:
            return _orig_print(self, text, stderr)
        except (OSError, RuntimeError) as e:
            log.debug(f"[INIT] App._print failed: {e}")
            return None

    App._print = _safe_print
