from utils.origin_policy import OriginPolicy

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


class EdgeCachePolicy:
    """Cache-Control for proxied manifests. Header policy only, nothing is stored."""

    def __init__(self, policy: OriginPolicy, max_age: int = 300):
        self.policy = policy
        self.max_age = max_age

    def cache_control(self, manifest_url: str) -> str:
        if self.policy.is_immutable(manifest_url):
            return IMMUTABLE_CACHE_CONTROL
        return f"public, max-age={self.max_age}"
