"""
Connection domain models
"""
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class DeploymentCredentials:
    """URL and session token stored for one deployment label"""
    url: str
    token: str
    label: str

    def __repr__(self) -> str:
        # Never print the token
        return f"DeploymentCredentials(url={self.url!r}, label={self.label!r})"


def _noop() -> None:
    pass


@dataclass
class RemoteDetails:
    """
    Result of a successful setup.

    Attributes:
        url: Deployment URL
        token: Session token
        dispose: Stops every monitor registered for the connection
    """
    url: str
    token: str
    dispose: Callable[[], None] = field(default=_noop, repr=False)

    def __repr__(self) -> str:
        return f"RemoteDetails(url={self.url!r})"
