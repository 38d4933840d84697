"""
OAuth Callback Server for the Slack installer.

Exposes the install and redirect endpoints as a FastAPI application and maps
callback results to HTML responses. CallbackServer runs the app with uvicorn
in a background thread for local or single-process deployments.
"""

import asyncio
import html
import logging
import socket
import threading
import time
from typing import Callable, Optional, Tuple
from urllib.parse import urlparse

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from .callback import CallbackFailure, CallbackSuccess
from .install_provider import InstallProvider
from ..models import InstallUrlOptions
from ..utils.constants import INSTALL_PATH, REDIRECT_PATH
from ..utils.errors import (
    AuthorizationError,
    MissingCodeError,
    MissingStateError,
    StateVerificationError,
    format_error,
)

logger = logging.getLogger(__name__)

SuccessHandler = Callable[[CallbackSuccess, Request], Response]
FailureHandler = Callable[[CallbackFailure, Request], Response]

# Failures caused by the incoming redirect rather than by this server
_CLIENT_ERRORS = (
    AuthorizationError,
    MissingCodeError,
    MissingStateError,
    StateVerificationError,
)

_PAGE_STYLE = """
            body {
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                display: flex;
                justify-content: center;
                align-items: center;
                min-height: 100vh;
                margin: 0;
                background: #f4ede4;
            }
            .container {
                background: white;
                padding: 40px;
                border-radius: 12px;
                box-shadow: 0 10px 40px rgba(0,0,0,0.2);
                text-align: center;
                max-width: 420px;
            }
            h1 { color: #333; margin-bottom: 10px; }
            p { color: #666; line-height: 1.6; }
            .error-message {
                color: #e01e5a;
                background: #fff5f7;
                padding: 15px;
                border-radius: 8px;
                margin: 20px 0;
            }
"""


def _page(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>{title}</title>
        <style>{_PAGE_STYLE}</style>
    </head>
    <body>
        <div class="container">
{body}
        </div>
    </body>
    </html>
    """


def _create_install_html(install_url: str) -> str:
    """Create the page holding the "Add to Slack" button."""
    href = html.escape(install_url, quote=True)
    return _page(
        "Install App",
        f"""            <h1>Install this app</h1>
            <p>Add the app to your Slack workspace to get started.</p>
            <a href="{href}"><img alt="Add to Slack" height="40" width="139"
                src="https://platform.slack-edge.com/img/add_to_slack.png"
                srcset="https://platform.slack-edge.com/img/add_to_slack.png 1x, https://platform.slack-edge.com/img/add_to_slack@2x.png 2x" /></a>""",
    )


def _create_success_html(workspace: str) -> str:
    """Create a success HTML page after installation."""
    return _page(
        "Installation Successful",
        f"""            <h1>Installation Successful!</h1>
            <p>The app was installed to:</p>
            <p><strong>{html.escape(workspace)}</strong></p>
            <p>You can close this window and return to Slack.</p>""",
    )


def _create_error_html(error_message: str) -> str:
    """Create an error HTML page."""
    return _page(
        "Installation Failed",
        f"""            <h1>Installation Failed</h1>
            <div class="error-message">{html.escape(error_message)}</div>
            <p>Please try again or contact support if the issue persists.</p>""",
    )


def default_success_response(result: CallbackSuccess, request: Request) -> Response:
    installation = result.installation
    if installation.team is not None:
        workspace = installation.team.name or installation.team.id
    else:
        workspace = installation.enterprise.name or installation.enterprise.id
    return HTMLResponse(content=_create_success_html(workspace))


def default_failure_response(result: CallbackFailure, request: Request) -> Response:
    status_code = 400 if isinstance(result.error, _CLIENT_ERRORS) else 500
    return HTMLResponse(
        content=_create_error_html(format_error("Installation", result.error)),
        status_code=status_code,
    )


def create_oauth_app(
    provider: InstallProvider,
    install_options: InstallUrlOptions,
    direct_install: bool = False,
    success_handler: Optional[SuccessHandler] = None,
    failure_handler: Optional[FailureHandler] = None,
) -> FastAPI:
    """
    Build the FastAPI application serving the installation flow.

    Args:
        provider: The configured InstallProvider.
        install_options: Options used to generate install URLs.
        direct_install: Redirect straight to the consent screen instead of
            rendering an "Add to Slack" page.
        success_handler: Replaces the default success page.
        failure_handler: Replaces the default error page.
    """
    app = FastAPI()
    on_success = success_handler or default_success_response
    on_failure = failure_handler or default_failure_response

    @app.get(INSTALL_PATH)
    async def install(request: Request) -> Response:
        """Start an installation."""
        try:
            url = await provider.generate_install_url(install_options)
        except Exception as e:
            logger.error(f"Failed to generate install URL: {e}", exc_info=True)
            return HTMLResponse(
                content=_create_error_html(format_error("Install URL generation", e)),
                status_code=500,
            )

        if direct_install:
            return RedirectResponse(url=url, status_code=302)
        return HTMLResponse(content=_create_install_html(url))

    @app.get(REDIRECT_PATH)
    async def oauth_redirect(request: Request) -> Response:
        """Handle the OAuth redirect from Slack."""
        result = await provider.handle_callback(str(request.url))
        if isinstance(result, CallbackSuccess):
            return on_success(result, request)
        return on_failure(result, request)

    return app


class CallbackServer:
    """
    Minimal HTTP server for the installation endpoints.
    Runs uvicorn in a background thread.
    """

    def __init__(
        self, app: FastAPI, port: int = 3000, base_uri: str = "http://localhost"
    ) -> None:
        self.app = app
        self.port = port
        self.base_uri = base_uri
        self.server: Optional[uvicorn.Server] = None
        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False

    def _hostname(self) -> str:
        return urlparse(self.base_uri).hostname or "localhost"

    def start(self) -> Tuple[bool, str]:
        """
        Start the callback server.

        Returns:
            Tuple of (success: bool, error_message: str)
        """
        if self.is_running:
            logger.info("Callback server is already running")
            return True, ""

        hostname = self._hostname()

        # Check if port is available
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((hostname, self.port))
        except OSError:
            error_msg = f"Port {self.port} is already in use"
            logger.error(error_msg)
            return False, error_msg

        def run_server() -> None:
            """Run the server in a separate thread."""
            try:
                config = uvicorn.Config(
                    self.app,
                    host=hostname,
                    port=self.port,
                    log_level="warning",
                    access_log=False,
                )
                self.server = uvicorn.Server(config)
                asyncio.run(self.server.serve())
            except Exception as e:
                logger.error(f"Callback server error: {e}", exc_info=True)
                self.is_running = False

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()

        # Wait for server to start
        max_wait = 3.0
        start_time = time.time()
        while time.time() - start_time < max_wait:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                if s.connect_ex((hostname, self.port)) == 0:
                    self.is_running = True
                    logger.info(f"Callback server started on {hostname}:{self.port}")
                    return True, ""
            time.sleep(0.1)

        error_msg = f"Failed to start callback server on {hostname}:{self.port}"
        logger.error(error_msg)
        return False, error_msg

    def stop(self) -> None:
        """Stop the callback server."""
        if not self.is_running:
            return

        if self.server is not None:
            self.server.should_exit = True
        if self.server_thread and self.server_thread.is_alive():
            self.server_thread.join(timeout=3.0)

        self.is_running = False
        logger.info("Callback server stopped")
