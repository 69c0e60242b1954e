from __future__ import annotations

# Local git operations (tag lookup, add, commit, tag)
GIT_TIMEOUT_SECONDS = 30.0

# Network-bound git operations (push)
GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

# gh release create uploads the archive
GH_PUBLISH_TIMEOUT_SECONDS = 15 * 60.0

# security / Sparkle tools
KEYCHAIN_TIMEOUT_SECONDS = 60.0

# xcodebuild and pod install have no fixed upper bound
BUILD_TIMEOUT_SECONDS: float | None = None

# notarytool --wait blocks until Apple finishes processing
NOTARIZE_TIMEOUT_SECONDS = 2 * 60 * 60.0
