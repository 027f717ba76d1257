import logging

import pytest

RAW_URL = "https://raw.githubusercontent.com/user/repo/main/file.txt"


def test_root_serves_usage_page(client, upstream):
    response = client.get("/")
    assert response.status_code == 200
    assert b"/api/generate" in response.data
    assert upstream.requests == []


def test_blob_url_with_collapsed_separator(client, upstream):
    upstream.add(RAW_URL, headers={"Content-Type": "text/plain", "ETag": '"v1"'}, body=b"file body")
    response = client.get("/https:/github.com/user/repo/blob/main/file.txt")
    assert response.status_code == 200
    assert response.data == b"file body"
    assert response.headers["ETag"] == '"v1"'
    assert upstream.urls == [RAW_URL]


def test_percent_encoded_target(client, upstream):
    upstream.add(RAW_URL, body=b"encoded")
    response = client.get("/https%3A%2F%2Fgithub.com%2Fuser%2Frepo%2Fblob%2Fmain%2Ffile.txt")
    assert response.status_code == 200
    assert response.data == b"encoded"


def test_clone_root_is_forwarded_verbatim(client, upstream):
    url = "https://gitlab.com/user/repo"
    upstream.add(url, body=b"repo page")
    response = client.get("/https://gitlab.com/user/repo")
    assert response.status_code == 200
    assert upstream.urls == [url]


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/mrdoob/three.js",
        "https://github.com/mrdoob/three.js/info/refs?service=git-upload-pack",
        "https://gitlab.com/group/sub/repo",
        "https://gitlab.com/group/sub/repo/info/refs?service=git-upload-pack",
    ],
)
def test_clone_paths_are_forwarded(client, upstream, url):
    upstream.add(url, body=b"refs")
    response = client.get("/" + url)
    assert response.status_code == 200
    assert upstream.urls == [url]


def test_git_smart_http_round_trip(client, upstream):
    refs = "https://github.com/user/repo.git/info/refs?service=git-upload-pack"
    pack = "https://github.com/user/repo.git/git-upload-pack"
    upstream.add(refs, headers={"Content-Type": "application/x-git-upload-pack-advertisement"}, body=b"001e# service")
    upstream.add(pack, headers={"Content-Type": "application/x-git-upload-pack-result"}, body=b"PACK")

    response = client.get("/https://github.com/user/repo.git/info/refs?service=git-upload-pack")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/x-git-upload-pack-advertisement"

    response = client.post(
        "/https://github.com/user/repo.git/git-upload-pack",
        data=b"0032want abc",
        headers={"Content-Type": "application/x-git-upload-pack-request"},
    )
    assert response.data == b"PACK"
    assert upstream.requests[-1].method == "POST"
    assert upstream.requests[-1].body == b"0032want abc"


def test_repeated_upstream_headers_reach_the_client(client, upstream):
    upstream.add(RAW_URL, headers=[("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")], body=b"x")
    response = client.get("/" + RAW_URL)
    assert response.headers.getlist("Set-Cookie") == ["a=1", "b=2"]


def test_resolve_url_is_passed_unchanged(client, upstream):
    url = "https://huggingface.co/org/model/resolve/main/config.json"
    upstream.add(url, body=b"{}")
    response = client.get("/" + url)
    assert response.status_code == 200
    assert upstream.urls == [url]


def test_upstream_status_is_mirrored(client, upstream):
    upstream.add(RAW_URL, status=404, body=b"404: Not Found")
    response = client.get("/https://github.com/user/repo/blob/main/file.txt")
    assert response.status_code == 404
    assert response.data == b"404: Not Found"


@pytest.mark.parametrize("path", ["/favicon.ico", "/github.com/user/repo", "/ftp://github.com/x"])
def test_malformed_target(client, upstream, path):
    response = client.get(path)
    assert response.status_code == 400
    assert upstream.requests == []


def test_unparseable_url(client, upstream):
    response = client.get("/https://github.com:port/user/repo")
    assert response.status_code == 400
    assert upstream.requests == []


def test_disallowed_host(client, upstream):
    response = client.get("/https://evil.example/user/repo/blob/main/file.txt")
    assert response.status_code == 403
    assert upstream.requests == []


def test_disallowed_subdomain(client, upstream):
    response = client.get("/https://api.gitlab.com/user/repo")
    assert response.status_code == 403
    assert upstream.requests == []


def test_unsupported_path_shape(client, upstream):
    response = client.get("/https://github.com/user/repo/issues/1")
    assert response.status_code == 400
    assert upstream.requests == []


def test_redirect_to_disallowed_host(client, upstream):
    start = "https://github.com/user/repo/raw/main/file.txt"
    upstream.redirect(start, "https://evil.example/file.txt")
    response = client.get("/" + start)
    assert response.status_code == 403
    assert b"evil.example" in response.data
    assert upstream.urls == [start]


def test_too_many_redirects(client, upstream):
    urls = [f"https://github.com/user/repo/raw/hop{i}" for i in range(12)]
    for current, following in zip(urls, urls[1:]):
        upstream.redirect(current, following)
    upstream.add(urls[-1], body=b"end")
    response = client.get("/" + urls[0])
    assert response.status_code == 500


def test_upstream_failure_reports_error_text(client):
    response = client.get("/https://github.com/user/repo/blob/main/file.txt")
    assert response.status_code == 500
    assert b"connection refused" in response.data


def test_response_too_large(client, upstream):
    upstream.add(RAW_URL, headers={"Content-Length": str(2 * 1024 * 1024)}, body=b"")
    response = client.get("/https://github.com/user/repo/blob/main/file.txt")
    assert response.status_code == 413
    assert b"exceeds the limit of 1 MB" in response.data


def test_inbound_identity_headers_are_not_forwarded(client, upstream):
    upstream.add(RAW_URL, body=b"")
    client.get(
        "/https://github.com/user/repo/blob/main/file.txt",
        headers={"X-Forwarded-For": "10.1.1.1", "X-Real-IP": "10.1.1.1", "User-Agent": "curl/8.0", "Range": "bytes=0-9"},
    )
    sent = upstream.requests[0].headers
    assert "X-Forwarded-For" not in sent
    assert "X-Real-IP" not in sent
    assert sent["User-Agent"].startswith("Mozilla/5.0")
    assert sent["Range"] == "bytes=0-9"


def test_access_log_line(client, upstream, caplog):
    upstream.add(RAW_URL, body=b"logged")
    with caplog.at_level(logging.INFO, logger="ghproxy"):
        response = client.get("/https://github.com/user/repo/blob/main/file.txt")
        assert response.data == b"logged"
    assert f"/https://github.com/user/repo/blob/main/file.txt -> {RAW_URL} (Status: 200)" in caplog.text


def test_generate_links(client):
    response = client.post("/api/generate", json={"original_url": "https://github.com/user/repo/blob/main/file.txt"})
    data = response.get_json()
    assert data["success"] is True
    assert data["browser_link"] == "http://localhost/https://github.com/user/repo/blob/main/file.txt"
    assert data["git_command"] == "git clone http://localhost/https://github.com/user/repo.git"
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_generate_links_preflight(client):
    response = client.options("/api/generate")
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"


def test_generate_links_requires_post(client):
    data = client.get("/api/generate").get_json()
    assert data == {"success": False, "error": "only POST requests are supported"}


def test_generate_links_malformed_body(client):
    data = client.post("/api/generate", data="not json", content_type="application/json").get_json()
    assert data["success"] is False


def test_api_prefix_belongs_to_link_generator(client, upstream):
    response = client.post("/api/generate/v1", json={"original_url": "https://github.com/user/repo"})
    assert response.status_code == 200
    assert response.get_json()["success"] is True
    assert upstream.requests == []

    data = client.put("/api/generate/v1").get_json()
    assert data["success"] is False
