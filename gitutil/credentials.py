"""Credential store — load accounts from the configuration document and pick one per repository.

The document is a JSON object keyed by provider name, each provider
keyed by account id, plus an ``application`` section naming the default
account::

    {
      "application": {"defaultProvider": "github", "defaultAccountId": "coolgeek"},
      "github": {
        "coolgeek": {
          "fullName": "Esther Arkin",
          "email": "esther@example.com",
          "token": "ghp_...",
          "commitLogPath": "~/git_ws/commit_log.txt",
          "watchedDirs": ["/home/esther/src/site"]
        }
      }
    }

Resolution walks providers and accounts in document order and takes the
first account whose ``watchedDirs`` contains the repository path (exact
string match).  Directories claimed by several accounts are legal; the
loader warns about them and the first claimant wins.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from gitutil.config import APPLICATION_SECTION, default_config_path
from gitutil.errors import ConfigInvalidError, IdentityMismatchError
from gitutil.models import RepositoryContext
from gitutil.vcs.backend import Credentials, Signature

logger = logging.getLogger(__name__)


class CredentialAccount(BaseModel):
    """One identity usable for commits and pushes."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account_id: str = Field(alias="accountId")
    provider: str
    full_name: str = Field(alias="fullName")
    email: str
    token: str = Field(default="", repr=False)
    commit_log_path: Path | None = Field(default=None, alias="commitLogPath")
    user_name: str | None = Field(default=None, alias="userName")
    """Login used for pushes; defaults to the account id."""

    watched_dirs: frozenset[str] = Field(default_factory=frozenset, alias="watchedDirs")

    @field_validator("commit_log_path")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @property
    def login(self) -> str:
        return self.user_name or self.account_id

    @property
    def signature(self) -> Signature:
        return Signature(name=self.full_name, email=self.email)

    @property
    def credentials(self) -> Credentials:
        return Credentials(username=self.login, token=self.token)

    @property
    def key(self) -> str:
        return f"{self.provider}/{self.account_id}"


class PathRewriteRule(BaseModel):
    """Rewrite ``<file>`` to ``<prefix>/<file>`` for repositories ending in *repo_suffix*."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repo_suffix: str = Field(alias="repoSuffix")
    file_suffix: str = Field(default=".md", alias="fileSuffix")
    prefix: str


class ApplicationSection(BaseModel):
    """The ``application`` section: default account pointer and path rewrites."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    default_provider: str = Field(alias="defaultProvider")
    default_account_id: str = Field(alias="defaultAccountId")
    path_rewrites: tuple[PathRewriteRule, ...] = Field(default=(), alias="pathRewrites")


class ConfigurationRoot(BaseModel):
    """All accounts, ``provider -> account_id -> account``, in document order."""

    model_config = ConfigDict(frozen=True)

    application: ApplicationSection
    providers: dict[str, dict[str, CredentialAccount]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _default_must_resolve(self) -> ConfigurationRoot:
        app = self.application
        if app.default_account_id not in self.providers.get(app.default_provider, {}):
            raise ValueError(
                f"default account '{app.default_provider}/{app.default_account_id}' "
                "does not exist"
            )
        return self

    @classmethod
    def from_document(cls, data: Any) -> ConfigurationRoot:
        """Build from the parsed JSON document.

        Each account inherits its provider and account id from the keys
        it is stored under.
        """
        if not isinstance(data, dict):
            raise ValueError("top level must be an object")
        if APPLICATION_SECTION not in data:
            raise ValueError(f"field '{APPLICATION_SECTION}' missing")

        providers: dict[str, dict[str, Any]] = {}
        for provider, accounts in data.items():
            if provider == APPLICATION_SECTION:
                continue
            if not isinstance(accounts, dict):
                raise ValueError(f"provider '{provider}' must map account ids to accounts")
            providers[provider] = {}
            for account_id, fields in accounts.items():
                if not isinstance(fields, dict):
                    raise ValueError(f"account '{provider}/{account_id}' must be an object")
                providers[provider][account_id] = {
                    **fields,
                    "accountId": account_id,
                    "provider": provider,
                }

        return cls.model_validate(
            {"application": data[APPLICATION_SECTION], "providers": providers}
        )

    @property
    def default_account(self) -> CredentialAccount:
        app = self.application
        return self.providers[app.default_provider][app.default_account_id]

    def accounts(self) -> Iterator[CredentialAccount]:
        """Yield every account, providers then accounts, in document order."""
        for accounts in self.providers.values():
            yield from accounts.values()

    def duplicate_claims(self) -> dict[str, list[str]]:
        """Return directories watched by more than one account, with claimants in order."""
        claims: dict[str, list[str]] = {}
        for account in self.accounts():
            for directory in sorted(account.watched_dirs):
                claims.setdefault(directory, []).append(account.key)
        return {d: keys for d, keys in claims.items() if len(keys) > 1}


def load_configuration(path: str | Path | None = None) -> ConfigurationRoot:
    """Read and validate the configuration document.

    Raises :class:`ConfigInvalidError` when the file is absent, is not
    JSON, or fails validation (including an unresolvable default).
    """
    config_path = Path(path).expanduser() if path is not None else default_config_path()
    if not config_path.is_file():
        raise ConfigInvalidError(
            f"Required config: {config_path} not found! "
            "Please create the config file and run this application again."
        )

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigInvalidError(f"Invalid json config file '{config_path}': {exc}") from exc
    except OSError as exc:
        raise ConfigInvalidError(f"Cannot read config file '{config_path}': {exc}") from exc

    try:
        configuration = ConfigurationRoot.from_document(data)
    except (ValidationError, ValueError) as exc:
        raise ConfigInvalidError(f"Invalid json config file '{config_path}': {exc}") from exc

    for directory, keys in configuration.duplicate_claims().items():
        logger.warning(
            "Directory %s is watched by %s; using the first (%s)",
            directory, ", ".join(keys), keys[0],
        )

    logger.debug("Loaded %s", config_path)
    return configuration


def resolve_account(configuration: ConfigurationRoot, repo_path: str) -> CredentialAccount:
    """Return the account watching *repo_path*, else the default account.

    The first claimant in document order wins when several accounts
    watch the same directory.
    """
    for account in configuration.accounts():
        if repo_path in account.watched_dirs:
            logger.info("Using account %s for %s", account.key, repo_path)
            return account

    account = configuration.default_account
    logger.info("Using default account %s for %s", account.key, repo_path)
    return account


def verify_identity(
    account: CredentialAccount,
    local_name: str | None,
    local_email: str | None,
) -> None:
    """Raise :class:`IdentityMismatchError` unless the repository identity matches *account*."""
    if local_name != account.full_name or local_email != account.email:
        raise IdentityMismatchError(
            f"Invalid user name or email in git config: repository has "
            f"'{local_name} <{local_email}>' but account {account.key} is "
            f"'{account.full_name} <{account.email}>'"
        )


class CredentialStore:
    """Lazily loaded configuration plus per-repository resolution.

    Parameters
    ----------
    config_path:
        Path to the configuration document.  Defaults to
        ``$GITUTIL_CONFIG`` or ``~/.config/gitutil/GitUtilConfig.json``.
    """

    def __init__(self, config_path: str | Path | None = None) -> None:
        self.config_path = config_path
        self._configuration: ConfigurationRoot | None = None

    @property
    def configuration(self) -> ConfigurationRoot:
        if self._configuration is None:
            self._configuration = load_configuration(self.config_path)
        return self._configuration

    def resolve(self, repo_path: str) -> CredentialAccount:
        return resolve_account(self.configuration, repo_path)

    def resolve_for(self, context: RepositoryContext) -> CredentialAccount:
        """Resolve for *context* and verify the repository identity against the account."""
        account = self.resolve(context.path)
        verify_identity(account, context.local_user_name, context.local_user_email)
        return account
