"""Accelerated link and download command generation for the web page."""

from ghproxy.errors import ProxyError
from ghproxy.extractor import parse_target
from ghproxy.guard import DomainGuard, host_of
from ghproxy.rewriter import GIT_SERVICE_SUFFIXES, GITHUB_HOST, GITLAB_HOST, check_path_shape, rewrite

CLONE_HOSTS = (GITHUB_HOST, GITLAB_HOST)
NOT_CLONABLE_MARKERS = ("/archive/", "/releases/", "/tarball/", "/zipball/", "/raw/", "/gist/")


def _failure(error):
    return {"success": False, "error": error}


def git_clone_command(url, base_url):
    if url.netloc not in CLONE_HOSTS:
        return "git clone is only available for GitHub and GitLab repositories"
    if any(marker in url.path for marker in NOT_CLONABLE_MARKERS):
        return "git clone is not available for archive, release and raw file links, use the download commands"

    path = url.path
    if url.netloc == GITLAB_HOST:
        # group/subgroup/repo: everything before "/-/" is the project
        path = path.split("/-/")[0]
    for marker in ("/blob/", "/tree/"):
        path = path.split(marker)[0]
    for suffix in GIT_SERVICE_SUFFIXES:
        if path.endswith(suffix):
            path = path[: -len(suffix)]
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return "git clone needs a repository URL"

    repo = "/".join(parts if url.netloc == GITLAB_HOST else parts[:2])
    if not repo.endswith(".git"):
        repo += ".git"
    return f"git clone {base_url}/{url.scheme}://{url.netloc}/{repo}"


def generate_links(original_url, base_url, guard=None):
    """Build browser, wget, curl and git commands that go through this proxy."""
    guard = guard or DomainGuard()
    if not isinstance(original_url, str):
        original_url = ""
    original_url = original_url.strip()
    if not original_url:
        return _failure("the original URL must not be empty")
    if not original_url.startswith(("http://", "https://")):
        return _failure("please enter a complete URL (including http:// or https://)")

    try:
        url = parse_target(original_url)
        converted = rewrite(url)
        if not guard.allowed(host_of(converted)):
            return _failure("only GitHub, GitLab and Hugging Face hosts are supported")
        check_path_shape(converted)
    except ProxyError as e:
        return _failure(e.message)

    accelerated = f"{base_url}/{original_url}"
    return {
        "success": True,
        "browser_link": accelerated,
        "wget_command": f'wget "{accelerated}"',
        "curl_command": f'curl -L "{accelerated}"',
        "git_command": git_clone_command(url, base_url),
    }
