import logging

logger = logging.getLogger(__name__)

# Every contactable host is listed explicitly; there is no suffix or
# parent-domain matching.
DEFAULT_ALLOWED_HOSTS = frozenset({
    # GitHub
    "github.com",
    "raw.githubusercontent.com",
    "gist.githubusercontent.com",
    "codeload.github.com",
    "api.github.com",
    # GitLab
    "gitlab.com",
    "gitlab.io",
    # Hugging Face
    "huggingface.co",
    "hf.co",
    "cdn-lfs.huggingface.co",
    "cas-bridge.xethub.hf.co",
    "cdn-lfs.hf.co",
})


def host_of(url):
    """``host[:port]`` of a split URL, without any userinfo."""
    return url.netloc.rpartition("@")[2]


class DomainGuard:
    def __init__(self, allowed_hosts=DEFAULT_ALLOWED_HOSTS):
        self.allowed_hosts = frozenset(allowed_hosts)

    def allowed(self, host):
        ok = host in self.allowed_hosts
        if not ok:
            logger.debug("host not allowed: %r", host)
        return ok
