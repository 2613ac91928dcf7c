"""FastAPI application for managing mailferry rules."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from mailferry import __version__
from mailferry.exceptions import RuleNotFoundError, RuleValidationError
from mailferry.rule_manager import RuleManager

logger = logging.getLogger(__name__)


def _manager_from_config(config_path: str | Path) -> RuleManager:
    from mailferry.app import create_repository
    from mailferry.config import load_config

    return RuleManager(create_repository(load_config(config_path)))


def create_app(
    config_path: str | Path | None = None,
    manager: RuleManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The rule manager is taken from the argument, else built from
    config_path or the MAILFERRY_CONFIG environment variable.
    """
    if manager is None:
        config_path = config_path or os.environ.get("MAILFERRY_CONFIG", "config.yml")
        manager = _manager_from_config(config_path)

    app = FastAPI(
        title="mailferry",
        description="Rules for routing email attachments to Google Drive",
        version=__version__,
    )

    # CORS for the rule editor UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app, manager)
    return app


def register_routes(app: FastAPI, manager: RuleManager) -> None:
    """Register all API routes."""

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    @app.get("/api/rules")
    async def get_rules():
        """List all rules."""
        return {"rules": [rule.to_dict() for rule in manager.get_rules()]}

    @app.post("/api/rules", status_code=201)
    async def add_rule(data: dict[str, Any] = Body(...)):
        """Create a rule. The id is generated by the server."""
        try:
            rule = manager.add_rule(data)
        except RuleValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return rule.to_dict()

    @app.put("/api/rules")
    async def save_rules(rules: list[dict[str, Any]] = Body(...)):
        """Replace the whole rule set."""
        try:
            saved = manager.save_rules(rules)
        except RuleValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"rules": [rule.to_dict() for rule in saved]}

    @app.delete("/api/rules/{rule_id}")
    async def delete_rule(rule_id: str):
        """Delete a rule."""
        return {"deleted": manager.delete_rule(rule_id)}

    @app.post("/api/rules/{rule_id}/actions", status_code=201)
    async def add_attachment_action(rule_id: str, data: dict[str, Any] = Body(...)):
        """Append an attachment action to a rule."""
        try:
            action = manager.add_attachment_action(rule_id, data)
        except RuleNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except RuleValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return action.model_dump(by_alias=True)

    @app.delete("/api/rules/{rule_id}/actions/{action_id}")
    async def delete_attachment_action(rule_id: str, action_id: str):
        """Remove an attachment action from a rule."""
        return {"deleted": manager.delete_attachment_action(rule_id, action_id)}
