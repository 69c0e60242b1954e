"""Release orchestration for a Sparkle-updated macOS application.

- patterns / version / changelog / feed: pure text parsing and splicing
- keychain / sparkle / build / git / publish: external tool drivers
- pipeline: stage sequencing over a ReleaseContext
"""

from __future__ import annotations
