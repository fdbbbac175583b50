"""
Wiring of concrete adapters for CLI commands
"""
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from ...core.exceptions import ApiError
from ...core.logging import get_logger
from ...core.paths import PathResolver
from ...core.settings import RemoteSettings
from ...domain.connection import RemoteSetup
from ...infrastructure.api.client import HttpWorkspaceApi
from ...infrastructure.binary.provider import LocalBinaryProvider
from ...infrastructure.state.secrets_store import FileSecretsStore
from ..config.loader import ConfigLoader, default_config_path
from .prompts import RichProgressReporter, RichPromptProvider

logger = get_logger(__name__)


def get_config_file(ctx: typer.Context) -> Optional[Path]:
    """``--config`` given to the root command"""
    obj: Dict[str, Any] = ctx.obj or {}
    return obj.get("config_file")


def load_settings(config_file: Optional[Path], cli_overrides: Optional[Dict[str, Any]] = None) -> RemoteSettings:
    """
    Raises:
        ConfigError: If the configuration cannot be loaded
    """
    return ConfigLoader().load_settings(toml_path=config_file, cli_overrides=cli_overrides)


def make_api_factory(settings: RemoteSettings):
    def create(url: str, token: str) -> HttpWorkspaceApi:
        return HttpWorkspaceApi(url, token, verify=not settings.insecure, client_cert=settings.client_cert())

    return create


def make_login_handler(
    settings: RemoteSettings,
    secrets: FileSecretsStore,
    prompts: RichPromptProvider,
):
    """Interactive login: ask for URL and token, validate, store under the label"""

    def login(url: Optional[str], label: str) -> bool:
        if not url:
            url = prompts.prompt("Deployment URL").strip()
        if not url:
            return False

        token = ""
        if settings.needs_token:
            prompts.info(f"Get a session token from {url.rstrip('/')}/cli-auth")
            token = prompts.prompt("Session token", password=True).strip()
            if not token:
                return False

        return store_credentials(settings, secrets, url, token, label, prompts)

    return login


def store_credentials(
    settings: RemoteSettings,
    secrets: FileSecretsStore,
    url: str,
    token: str,
    label: str,
    prompts: RichPromptProvider,
) -> bool:
    """Validate the token against the deployment, then store it"""
    api = HttpWorkspaceApi(url, token, verify=not settings.insecure, client_cert=settings.client_cert())
    try:
        user = api.get_authenticated_user()
    except ApiError as e:
        prompts.error(f"Failed to log in to {url}: {e}")
        return False
    finally:
        api.close()

    secrets.set_session_auth(label, url, token)
    prompts.success(f"Logged in to {url} as {user.get('username', 'unknown')}")
    return True


def build_remote_setup(
    settings: RemoteSettings,
    config_file: Optional[Path] = None,
    interactive: bool = True,
) -> RemoteSetup:
    paths = PathResolver(settings.data_path)
    secrets = FileSecretsStore(paths)
    prompts = RichPromptProvider(interactive=interactive)
    progress = RichProgressReporter()

    watched = config_file
    if watched is None and default_config_path().exists():
        watched = default_config_path()

    return RemoteSetup(
        settings=settings,
        secrets=secrets,
        binary_provider=LocalBinaryProvider(paths),
        prompts=prompts,
        progress=progress,
        api_factory=make_api_factory(settings),
        login=make_login_handler(settings, secrets, prompts) if interactive else None,
        paths=paths,
        config_file=watched,
    )

