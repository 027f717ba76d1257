"""Per-platform rewriting of browse URLs into direct-content URLs.

Browsing UIs wrap files in an HTML page at their "blob" URLs; only the
raw/resolve shape returns the literal bytes that wget, curl and git need.
Every rule is a no-op on a URL that is already in direct-content form, since
callers often paste links that were converted before.
"""

import logging

from ghproxy.errors import UnsupportedPath

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
GITHUB_RAW_HOST = "raw.githubusercontent.com"
GITLAB_HOST = "gitlab.com"
HUGGINGFACE_HOST = "huggingface.co"

GIT_SERVICE_SUFFIXES = ("/info/refs", "/git-upload-pack", "/git-receive-pack")


def rewrite_github(url):
    # /user/repo/blob/main/file -> raw.githubusercontent.com/user/repo/main/file
    if "/blob/" in url.path:
        return url._replace(netloc=GITHUB_RAW_HOST, path=url.path.replace("/blob/", "/", 1))
    return url


def rewrite_gitlab(url):
    # /user/repo/-/blob/main/file -> /user/repo/-/raw/main/file
    if "/-/blob/" in url.path and "/-/raw/" not in url.path:
        return url._replace(path=url.path.replace("/-/blob/", "/-/raw/", 1))
    return url


def rewrite_huggingface(url):
    path = url.path
    if "/resolve/" in path or "/raw/" in path:
        return url

    if "/blob/" in path:
        return url._replace(path=path.replace("/blob/", "/resolve/", 1))

    # Bare file path without a marker: /model/main/file or /datasets/name/main/file.
    # The namespace depth is guessed from the segment count and can be wrong
    # for unusual layouts.
    parts = path.strip("/").split("/")
    if len(parts) < 3:
        return url
    if parts[0] == "datasets" and len(parts) >= 4:
        parts = parts[:2] + ["resolve"] + parts[2:]
    else:
        parts = parts[:1] + ["resolve"] + parts[1:]
    return url._replace(path="/" + "/".join(parts))


RULES = {
    GITHUB_HOST: rewrite_github,
    GITLAB_HOST: rewrite_gitlab,
    HUGGINGFACE_HOST: rewrite_huggingface,
}


def rewrite(url):
    """Return ``url`` converted to its platform's direct-content form.

    URLs of hosts without a rule, and clone-root paths, come back unchanged.
    """
    rule = RULES.get(url.netloc)
    if rule is None:
        return url
    converted = rule(url)
    if converted != url:
        logger.debug("rewrote %s -> %s", url.geturl(), converted.geturl())
    return converted


def is_clone_path(path, nested=False):
    """Whether ``path`` names a repository (optionally a Git smart-HTTP endpoint of one).

    ``nested`` allows group/subgroup/repo paths without a ``.git`` suffix.
    """
    trimmed = path.rstrip("/")
    for suffix in GIT_SERVICE_SUFFIXES:
        if trimmed.endswith(suffix):
            trimmed = trimmed[: -len(suffix)]
            break
    parts = [p for p in trimmed.split("/") if p]
    if trimmed.endswith(".git") or nested:
        return len(parts) >= 2
    return len(parts) == 2


def _has_marker(path, markers):
    return any(marker in path for marker in markers)


def check_path_shape(url):
    """Reject platform URLs that are neither a file download nor a clone target.

    Applied to rewritten URLs, so "blob" markers have already been converted.
    """
    path = url.path
    if url.netloc == GITHUB_HOST:
        if not (_has_marker(path, ("/raw/", "/tree/", "/archive/", "/releases/", "/gist/")) or is_clone_path(path)):
            raise UnsupportedPath(
                "GitHub links must be a repository root (git clone) or a file path (/blob/, /raw/, /tree/, /archive/, /releases/)"
            )
    elif url.netloc == GITLAB_HOST:
        # "/-/" separates the project path from its pages
        if "/-/" in path:
            valid = _has_marker(path, ("/-/raw/", "/-/tree/", "/-/archive/"))
        else:
            valid = is_clone_path(path, nested=True)
        if not valid:
            raise UnsupportedPath(
                "GitLab links must be a repository root (git clone) or a file path (/-/blob/, /-/raw/, /-/tree/)"
            )
    elif url.netloc == HUGGINGFACE_HOST:
        if not _has_marker(path, ("/resolve/", "/raw/")):
            raise UnsupportedPath("Hugging Face links must name a file (/blob/ or /resolve/)")
