"""Login agent: main entry point.

HTTP front end for the browser-driven login orchestrator, plus the thin
direct-API pass-throughs and the diagnostic snapshot viewer.

Endpoints:
  POST /auth/login-new               - browser-automated login, returns session cookies
  POST /auth/login                   - direct API login relay
  GET  /fetch-profile                - profile fetch relay (Bearer token required)
  PUT  /update-profile               - profile update relay (Bearer token required)
  GET  /health                       - liveness check
  GET  /debug/system                 - environment and snapshot directory status
  GET  /debug/browser-test           - launch a browser, render a test page, snapshot it
  GET  /debug/screenshots/{session}  - list one session's snapshots
  GET  /debug/screenshot/{filename}  - serve one snapshot PNG
  GET  /debug/view/{session}         - HTML index of one session's snapshots

Up to MAX_CONCURRENT_LOGINS browser logins run at once; each owns its own
browser, so nothing is shared between them except the snapshot directory.
"""

from __future__ import annotations

import asyncio
import html
import logging
import os
import platform
import signal
import subprocess
import sys

import httpx
from aiohttp import web

from login_agent.config import AgentConfig
from login_agent.errors import InvalidSnapshotName, LoginValidationError, OverallDeadlineExceeded
from login_agent.orchestrator import LoginOrchestrator, check_credentials
from login_agent.upstream import UpstreamClient, UpstreamResponse, is_bearer

log = logging.getLogger(__name__)

try:
    GIT_HASH = subprocess.run(
        ["git", "rev-parse", "--short", "HEAD"],
        capture_output=True,
        text=True,
        timeout=5,
    ).stdout.strip() or "unknown"
except Exception:
    GIT_HASH = "unknown"

_IMAGE_HEADERS = {
    "Content-Type": "image/png",
    "Cache-Control": "public, max-age=3600",
}


class Agent:
    """HTTP server wrapping one LoginOrchestrator and one UpstreamClient."""

    def __init__(
        self,
        config: AgentConfig,
        orchestrator: LoginOrchestrator | None = None,
        upstream: UpstreamClient | None = None,
    ) -> None:
        self._config = config
        self._orchestrator = orchestrator or LoginOrchestrator(config)
        self._store = self._orchestrator.diagnostics
        self._upstream = upstream or UpstreamClient(config.upstream_base_url)
        self._max_logins = config.max_concurrent_logins

        self._runner: web.AppRunner | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        """Application with all routes; the upstream client follows its lifecycle."""
        app = web.Application()
        app.router.add_post("/auth/login-new", self._handle_login_new)
        app.router.add_post("/auth/login", self._handle_direct_login)
        app.router.add_get("/fetch-profile", self._handle_fetch_profile)
        app.router.add_put("/update-profile", self._handle_update_profile)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/debug/system", self._handle_debug_system)
        app.router.add_get("/debug/browser-test", self._handle_browser_test)
        app.router.add_get("/debug/screenshots/{session_id}", self._handle_list_snapshots)
        app.router.add_get("/debug/screenshot/{filename}", self._handle_snapshot_file)
        app.router.add_get("/debug/view/{session_id}", self._handle_snapshot_view)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, _app: web.Application) -> None:
        await self._upstream.start()

    async def _on_cleanup(self, _app: web.Application) -> None:
        await self._upstream.close()

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        log.info(
            "Login agent listening on %s:%d (env=%s, max_logins=%d)",
            self._config.host, self._config.port,
            self._config.environment, self._max_logins,
        )

    async def stop(self) -> None:
        """Graceful shutdown: let running logins finish (bounded by their deadline)."""
        tasks = [t for t in self._in_flight if not t.done()]
        if tasks:
            grace = self._config.overall_deadline + 5.0
            log.info("Waiting for %d active login(s) to complete...", len(tasks))
            _, pending = await asyncio.wait(tasks, timeout=grace)
            for t in pending:
                log.warning("Login %s did not finish in %.0fs, cancelling", t.get_name(), grace)
                t.cancel()

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        log.info("Login agent stopped")

    # ------------------------------------------------------------------
    # Browser login
    # ------------------------------------------------------------------

    async def _handle_login_new(self, request: web.Request) -> web.Response:
        """POST /auth/login-new

        Body: {"username": str, "password": str}
        """
        data = await _json_body(request)
        if data is None:
            return web.json_response({"error": "Invalid JSON"}, status=400)

        username = data.get("username")
        password = data.get("password")
        try:
            check_credentials(username, password)
        except LoginValidationError as exc:
            return web.json_response({"error": str(exc)}, status=400)

        task = asyncio.current_task()
        async with self._lock:
            if len(self._in_flight) >= self._max_logins:
                log.warning(
                    "Rejected login: at capacity (%d/%d)",
                    len(self._in_flight), self._max_logins,
                )
                return web.json_response(
                    {"error": f"At capacity ({len(self._in_flight)}/{self._max_logins})"},
                    status=409,
                )
            self._in_flight.add(task)
            log.info("Accepted login [%d/%d slots]", len(self._in_flight), self._max_logins)

        try:
            result = await self._orchestrator.login(username, password)
        except LoginValidationError as exc:
            return web.json_response({"error": str(exc)}, status=400)
        finally:
            self._in_flight.discard(task)

        if result.success:
            status = 200
        elif result.error_kind == OverallDeadlineExceeded.kind:
            status = 504
        else:
            status = 500
        return web.json_response(result.to_dict(), status=status)

    # ------------------------------------------------------------------
    # Direct API pass-through
    # ------------------------------------------------------------------

    async def _handle_direct_login(self, request: web.Request) -> web.Response:
        """POST /auth/login

        Body: {"username": str, "password": str}
        """
        data = await _json_body(request)
        if not data or not data.get("username") or not data.get("password"):
            return web.json_response(
                {"error": "username and password are required"}, status=400,
            )
        try:
            resp = await self._upstream.login(data["username"], data["password"])
        except httpx.HTTPError as exc:
            return _upstream_failure("Login request failed", exc)
        return _relay(resp)

    async def _handle_fetch_profile(self, request: web.Request) -> web.Response:
        """GET /fetch-profile (Authorization: Bearer ...)"""
        authorization = request.headers.get("Authorization")
        if not is_bearer(authorization):
            return web.json_response(
                {"error": "Authorization Bearer token header is required"}, status=400,
            )
        try:
            resp = await self._upstream.fetch_profile(authorization)
        except httpx.HTTPError as exc:
            return _upstream_failure("Fetch profile failed", exc)
        return _relay(resp)

    async def _handle_update_profile(self, request: web.Request) -> web.Response:
        """PUT /update-profile

        Body: {"profile": dict, "profileId": str}, Authorization: Bearer ...
        """
        data = await _json_body(request) or {}
        profile = data.get("profile")
        profile_id = data.get("profileId")
        if not isinstance(profile, dict) or not profile or not profile_id:
            return web.json_response(
                {"error": "profile (object) and profileId (string) are required"}, status=400,
            )
        authorization = request.headers.get("Authorization")
        if not is_bearer(authorization):
            return web.json_response(
                {"error": "Authorization Bearer token header is required"}, status=400,
            )
        try:
            resp = await self._upstream.update_profile(authorization, profile, str(profile_id))
        except httpx.HTTPError as exc:
            return _upstream_failure("Update profile failed", exc)
        return _relay(resp)

    # ------------------------------------------------------------------
    # Health and debug
    # ------------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "ok": True,
            "version": GIT_HASH,
            "active_logins": len(self._in_flight),
            "max_logins": self._max_logins,
        })

    async def _handle_debug_system(self, request: web.Request) -> web.Response:
        executable = self._config.browser_executable
        info = {
            "environment": self._config.environment,
            "platform": platform.platform(),
            "pythonVersion": sys.version.split()[0],
            "headless": self._config.headless,
            "browserExecutable": executable or "playwright-managed",
            "browserExecutableExists": bool(executable) and os.path.exists(executable),
            "targetUrl": self._config.target_url,
        }
        try:
            info.update(self._store.status())
        except OSError as exc:
            return web.json_response(
                {"error": "Failed to get system info", "details": str(exc)}, status=500,
            )
        return web.json_response(info)

    async def _handle_browser_test(self, request: web.Request) -> web.Response:
        try:
            body = await self._orchestrator.browser_test()
        except Exception as exc:
            log.exception("Browser test failed")
            return web.json_response({"success": False, "error": str(exc)}, status=500)
        return web.json_response(body)

    async def _handle_list_snapshots(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        try:
            snapshots = self._store.list(session_id)
        except InvalidSnapshotName:
            return web.json_response({"error": "Invalid session id"}, status=400)
        except OSError as exc:
            return web.json_response(
                {"error": "Failed to list screenshots", "details": str(exc)}, status=500,
            )

        if not snapshots:
            message = "No screenshots found for this session"
        else:
            message = f"Found {len(snapshots)} screenshots"
        return web.json_response({
            "sessionId": session_id,
            "message": message,
            "screenshots": [s.to_dict() for s in snapshots],
        })

    async def _handle_snapshot_file(self, request: web.Request) -> web.StreamResponse:
        filename = request.match_info["filename"]
        try:
            path = self._store.path_for(filename)
        except InvalidSnapshotName:
            return web.json_response({"error": "Invalid filename"}, status=400)
        except FileNotFoundError:
            return web.json_response({"error": "Screenshot not found"}, status=404)
        return web.FileResponse(path, headers=_IMAGE_HEADERS)

    async def _handle_snapshot_view(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        try:
            snapshots = self._store.list(session_id)
        except InvalidSnapshotName:
            return web.json_response({"error": "Invalid session id"}, status=400)
        except OSError as exc:
            return web.json_response(
                {"error": "Failed to generate debug view", "details": str(exc)}, status=500,
            )
        return web.Response(text=_render_view(session_id, snapshots), content_type="text/html")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _json_body(request: web.Request) -> dict | None:
    try:
        data = await request.json()
    except Exception:
        return None
    return data if isinstance(data, dict) else None


def _relay(resp: UpstreamResponse) -> web.Response:
    return web.Response(body=resp.body, status=resp.status, content_type=resp.content_type)


def _upstream_failure(message: str, exc: Exception) -> web.Response:
    log.warning("%s: %s", message, exc)
    return web.json_response({"error": message, "details": str(exc)}, status=502)


def _render_view(session_id: str, snapshots) -> str:
    sid = html.escape(session_id)
    if not snapshots:
        items = "<p>No screenshots found for this session.</p>"
    else:
        parts = []
        for s in snapshots:
            step = html.escape(s.step_name)
            name = html.escape(s.filename)
            parts.append(
                '<div class="screenshot">'
                f"<h3>Step: {step}</h3>"
                f"<p>Filename: {name} ({s.captured_at.isoformat()})</p>"
                f'<img src="/debug/screenshot/{name}" alt="{step}" />'
                "</div>"
            )
        items = "\n".join(parts)
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        f"<title>Debug Screenshots - Session {sid}</title>\n"
        "<style>\n"
        "body { font-family: Arial, sans-serif; margin: 20px; }\n"
        ".screenshot { margin: 20px 0; padding: 20px; border: 1px solid #ddd; }\n"
        ".screenshot h3 { margin-top: 0; }\n"
        ".screenshot img { max-width: 100%; border: 1px solid #ccc; }\n"
        "</style>\n</head>\n<body>\n"
        f"<h1>Debug Screenshots - Session: {sid}</h1>\n"
        f"{items}\n"
        "</body>\n</html>"
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

async def run(config: AgentConfig) -> None:
    """Start the agent and run until shutdown."""
    agent = Agent(config)
    await agent.start()

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        log.info("Shutdown signal received")
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    log.info(
        "Login agent %s running (port=%d, profile=%s, deadline=%.0fs, snapshots=%s)",
        GIT_HASH,
        config.port,
        config.profile_name,
        config.overall_deadline,
        config.diagnostic_dir,
    )

    await shutdown.wait()
    log.info("Shutting down...")
    await agent.stop()
    log.info("Shutdown complete")


def main() -> None:
    """Entry point: load env, configure logging, run the agent."""
    config = AgentConfig.load()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
