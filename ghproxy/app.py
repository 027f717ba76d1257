import argparse
import logging
import os
from dataclasses import replace

from flask import Flask, Response, jsonify, request, send_from_directory, stream_with_context

from ghproxy.config import ConfigError, load_config
from ghproxy.errors import DisallowedHost, ProxyError
from ghproxy.extractor import extract_target, parse_target, raw_request_target
from ghproxy.forwarder import Forwarder
from ghproxy.guard import DomainGuard, host_of
from ghproxy.linkgen import generate_links
from ghproxy.logs import setup_logging
from ghproxy.rewriter import check_path_shape, rewrite

logger = logging.getLogger(__name__)

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def access_log(target, upstream_url, status):
    logger.info("[%s] %s -> %s (Status: %d)", request.remote_addr, target, upstream_url, status)


def create_app(config, session_factory=None):
    app = Flask(__name__, static_folder=None)
    # keep the "//" of an embedded "https://"
    app.url_map.merge_slashes = False

    guard = DomainGuard(config.allowed_hosts)
    forwarder = Forwarder(config, guard, session_factory=session_factory)

    @app.errorhandler(ProxyError)
    def proxy_error(e):
        logger.warning("%s: %s", type(e).__name__, e.message)
        target = raw_request_target(request.environ)
        access_log(target, "-", e.status_code)
        return Response(e.message + "\n", e.status_code, mimetype="text/plain")

    def index():
        return send_from_directory(STATIC_DIR, "index.html")

    @app.route("/api/generate", methods=METHODS)
    @app.route("/api/generate/<path:rest>", methods=METHODS)
    def api_generate(rest=None):
        if request.method == "OPTIONS":
            return Response(status=200, headers=CORS_HEADERS)
        if request.method != "POST":
            return jsonify(success=False, error="only POST requests are supported"), 200, CORS_HEADERS

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify(success=False, error="malformed request body"), 200, CORS_HEADERS

        base_url = request.host_url.rstrip("/")
        result = generate_links(data.get("original_url"), base_url, guard)
        return jsonify(result), 200, CORS_HEADERS

    # Catch ALL other routes: /<absolute upstream URL>
    @app.route("/", defaults={"path": ""}, methods=METHODS)
    @app.route("/<path:path>", methods=METHODS)
    def proxy(path):
        raw_target = raw_request_target(request.environ)
        target = extract_target(raw_target)
        if target is None:
            return index()

        url = rewrite(parse_target(target))
        host = host_of(url)
        if not guard.allowed(host):
            raise DisallowedHost(f"only GitHub, GitLab and Hugging Face hosts are supported: {host}")
        check_path_shape(url)

        upstream_url = url.geturl()
        logger.info("target URL: %s", upstream_url)

        upstream = forwarder.fetch(
            request.method,
            upstream_url,
            forwarder.build_headers(request.headers.items()),
            request.get_data(),
        )

        def body():
            try:
                yield from forwarder.stream(upstream)
            finally:
                access_log(raw_target, upstream.url, upstream.status_code)

        return Response(
            stream_with_context(body()),
            upstream.status_code,
            forwarder.response_headers(upstream),
            direct_passthrough=True,
        )

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="Git file acceleration proxy. Usage: http://<host>:<port>/<full file URL>")
    parser.add_argument("config", nargs="?", default="config.toml", help="Config file (default: config.toml)")
    parser.add_argument("--host", help="Host to bind (overrides the config file)")
    parser.add_argument("--port", type=int, help="Port to listen on (overrides the config file)")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        parser.error(str(e))
    overrides = {k: v for k, v in (("host", args.host), ("port", args.port)) if v is not None}
    if overrides:
        config = replace(config, **overrides)

    setup_logging(config)

    print("Git file acceleration proxy")
    print(f"Listening on: {config.host}:{config.port}")
    print(f"File size limit: {config.size_limit_mb} MB")
    print("Platforms: GitHub, GitLab, Hugging Face")
    print(f"Usage: http://{config.host}:{config.port}/<full file URL>")
    print("=" * 51)

    app = create_app(config)
    app.run(host=config.host, port=config.port, threaded=True)


if __name__ == "__main__":
    main()
