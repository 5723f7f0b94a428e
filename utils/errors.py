class ManifestError(Exception):
    """Base class for failures while producing an ad-free manifest."""


class FetchError(ManifestError):
    """Network failure or non-2xx status from the origin."""

    def __init__(self, url, status=None, cause=None, timed_out=False):
        self.url = url
        self.status = status
        self.cause = cause
        self.timed_out = timed_out
        if status is not None:
            message = f"Failed to fetch playlist: {url} (Status: {status})"
        else:
            message = f"Failed to fetch playlist: {url} ({cause})"
        super().__init__(message)


class ParseError(ManifestError):
    """A URI line that cannot be resolved. Always recovered by the rewriter."""


class ResolutionError(ManifestError):
    """Master -> variant resolution failed."""

    NO_VARIANT = "no_variant"
    TOO_DEEP = "too_deep"

    def __init__(self, url, reason):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not resolve variant playlist for {url}: {reason}")


class CacheCorruption(Exception):
    """A stored value failed its shape check."""

    def __init__(self, key, value=None):
        self.key = key
        self.value = value
        super().__init__(f"Corrupted cache entry: {key}")
