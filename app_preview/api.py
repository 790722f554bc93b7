# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# APP PREVIEW - WEBHOOK INTERFACE (FastAPI)
# -----------------------------------------------------------------------------
# Endpoints:
# - GET  /health           : Health check
# - POST /github/webhooks  : GitHub pull_request events -> preview up/down
#
# Lifecycle work runs as a background task after the request is answered;
# the Project methods are synchronous and run in the worker thread pool.
# -----------------------------------------------------------------------------

import hashlib
import hmac
import json

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, status
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from app_preview import __version__
from app_preview.core.dispatcher import (
    LifecycleCommand,
    LifecycleDispatcher,
    PullRequestEvent,
    plan_pull_request,
)
from app_preview.settings import ServerConfig, load_server_config

console = Console()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check an X-Hub-Signature-256 header against the raw request body."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={expected}", signature)


def dispatch_logged(dispatcher: LifecycleDispatcher, command: LifecycleCommand) -> None:
    """Background task: run a lifecycle command and record any failure."""
    try:
        dispatcher.dispatch(command)
    except Exception as e:
        console.print(f"[red][API] {command.verb} {command.app_name} failed: {escape(str(e))}[/red]")
        console.print_exception()


def create_app(
    server_config: ServerConfig | None = None,
    dispatcher: LifecycleDispatcher | None = None,
) -> FastAPI:
    """
    Build the webhook application.

    Args:
        server_config: Host configuration (loaded from disk if None)
        dispatcher: Lifecycle dispatcher (tests inject a mock)
    """
    app = FastAPI(title="App Preview", version=__version__)
    app.state.server_config = server_config or load_server_config()
    app.state.dispatcher = dispatcher or LifecycleDispatcher()

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.post("/github/webhooks", status_code=status.HTTP_202_ACCEPTED)
    async def github_webhooks(request: Request, background_tasks: BackgroundTasks):
        secret = app.state.server_config.webhook_secret
        if not secret:
            console.print("[red][API] No webhook secret configured[/red]")
            raise HTTPException(status_code=500, detail="Webhooks not configured")

        body = await request.body()
        if not verify_signature(secret, body, request.headers.get("x-hub-signature-256")):
            raise HTTPException(status_code=401, detail="Invalid signature")

        event_name = request.headers.get("x-github-event")
        if event_name != "pull_request":
            return {"status": "ignored", "event": event_name}

        try:
            event = PullRequestEvent.model_validate(json.loads(body))
        except (json.JSONDecodeError, ValidationError) as e:
            raise HTTPException(status_code=422, detail=f"Invalid pull_request payload: {e}")

        command = plan_pull_request(event, app.state.server_config)
        if command is None:
            return {"status": "ignored", "event": event_name, "action": event.action}

        background_tasks.add_task(dispatch_logged, app.state.dispatcher, command)
        console.print(f"[cyan][API] Queued {command.verb} for {command.app_name}[/cyan]")
        return {"status": "accepted", "app_name": command.app_name, "verb": command.verb}

    return app
