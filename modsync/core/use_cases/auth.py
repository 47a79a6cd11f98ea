"""
Authentication use cases — log instances in and out.

A login first tries the token the instance's modules already hold,
then falls back to credentials. The registry is only touched once the
remote session has returned a token: a failed or cancelled login
leaves every module exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from modsync.core.context import WorkspaceContext
from modsync.core.services.remote_session import AuthenticationError, Credentials, LoginResult

logger = logging.getLogger(__name__)

# Asked for credentials when no valid token is available; None cancels.
CredentialsPrompt = Callable[[str], Credentials | None]


@dataclass
class AuthResult:
    """Outcome of one login or logout."""

    instance_url: str | None = None
    login: str = ""
    message: str = ""
    modules_updated: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"instance_url": self.instance_url, "ok": self.ok}
        if self.error:
            result["error"] = self.error
            return result
        result["login"] = self.login
        result["message"] = self.message
        result["modules_updated"] = self.modules_updated
        return result


def _authenticate(
    ctx: WorkspaceContext,
    instance_url: str,
    prompt: CredentialsPrompt | None,
) -> AuthResult:
    session = ctx.sessions.get(instance_url)
    outcome: LoginResult | None = None

    token = ctx.registry.get_token_for_instance_url(instance_url)
    if token:
        try:
            outcome = session.login(token=token)
            logger.info("Token connection to %s succeeded", instance_url)
        except AuthenticationError as e:
            if e.invalid_token:
                logger.warning("Token for %s is invalid, asking for credentials", instance_url)
            else:
                logger.warning("Token connection to %s failed: %s", instance_url, e)

    if outcome is None:
        credentials = prompt(instance_url) if prompt else None
        if credentials is None:
            return AuthResult(instance_url=instance_url, error="Authentication cancelled")
        try:
            outcome = session.login(credentials=credentials)
            logger.info("Credentials connection to %s succeeded", instance_url)
        except AuthenticationError as e:
            ctx.sessions.drop(instance_url)
            logger.error("Login to %s failed: %s", instance_url, e)
            return AuthResult(instance_url=instance_url, error=str(e))

    updated = ctx.registry.propagate_token(instance_url, outcome.token)
    return AuthResult(
        instance_url=instance_url,
        login=outcome.login,
        message=f"Logged in as {outcome.login or '?'} at: {instance_url}",
        modules_updated=updated,
    )


def login_instance(
    ctx: WorkspaceContext,
    name_or_url: str,
    prompt: CredentialsPrompt | None = None,
) -> AuthResult:
    """Log in the instance named directly or through one of its modules."""
    instance_url = ctx.registry.resolve_instance_url(name_or_url)
    if instance_url is None:
        return AuthResult(error=f"There is no module {name_or_url} in your current workspace")
    return _authenticate(ctx, instance_url, prompt)


def login_all(ctx: WorkspaceContext, prompt: CredentialsPrompt | None = None) -> list[AuthResult]:
    """Log in every instance that has no connected module yet."""
    if ctx.registry.count() == 0:
        return [AuthResult(error="No module has been found")]

    connected = ctx.registry.get_connected_instance_urls()
    return [
        _authenticate(ctx, url, prompt)
        for url in ctx.registry.instance_urls()
        if url not in connected
    ]


def logout_instance(ctx: WorkspaceContext, name_or_url: str) -> AuthResult:
    """Log one instance out and clear its modules' tokens.

    The local tokens are cleared even when the remote refuses the
    logout (an expired token is as good as logged out).
    """
    instance_url = ctx.registry.resolve_instance_url(name_or_url)
    if instance_url is None:
        return AuthResult(error=f"There is no module {name_or_url} in your current workspace")

    token = ctx.registry.get_token_for_instance_url(instance_url)
    if token is None:
        return AuthResult(instance_url=instance_url, error=f"You are not connected to {name_or_url}")

    message = "Logged out"
    try:
        message = ctx.sessions.get(instance_url).logout(token=token)
    except AuthenticationError as e:
        logger.warning("Remote logout from %s failed: %s", instance_url, e)

    updated = ctx.registry.propagate_token(instance_url, None)
    ctx.sessions.drop(instance_url)
    logger.info("%s from: %s", message, instance_url)
    return AuthResult(
        instance_url=instance_url,
        message=f"{message} from: {instance_url}",
        modules_updated=updated,
    )


def logout_all(ctx: WorkspaceContext) -> list[AuthResult]:
    """Log out of every connected instance."""
    connected = ctx.registry.get_connected_instance_urls()
    if not connected:
        return [AuthResult(error="You are not connected to any module")]

    results = [logout_instance(ctx, url) for url in connected]
    ctx.registry.clear_tokens()
    ctx.sessions.clear()
    return results
