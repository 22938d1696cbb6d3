"""Project-level configuration, path helpers and account resolution."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from .errors import ConfigurationError
from .models import AccountPolicy, DmPolicy, GroupConfig, GroupPolicy, RenderMode

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_ACCOUNT_ID = "default"

API_BASES = {
    "feishu": "https://open.feishu.cn/open-apis",
    "lark": "https://open.larksuite.com/open-apis",
}
WS_URLS = {
    "feishu": "wss://open.feishu.cn/open-apis/ws/v1",
    "lark": "wss://open.larksuite.com/open-apis/ws/v1",
}


PathLike = Union[str, Path]


@dataclass(frozen=True)
class AccountConfig:
    """Resolved settings for one platform account."""

    account_id: str = DEFAULT_ACCOUNT_ID
    name: str | None = None
    enabled: bool = True
    app_id: str | None = None
    app_secret: str | None = None
    domain: str = "feishu"  # "feishu" | "lark"
    connection_mode: str = "websocket"  # "websocket" | "webhook"
    verification_token: str | None = None
    encrypt_key: str | None = None
    render_mode: RenderMode = RenderMode.AUTO
    policy: AccountPolicy = field(default_factory=AccountPolicy)

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)

    @property
    def api_base(self) -> str:
        return API_BASES.get(self.domain, API_BASES["feishu"])

    @property
    def ws_url(self) -> str:
        return WS_URLS.get(self.domain, WS_URLS["feishu"])


def _parse_policy(raw: dict[str, Any]) -> AccountPolicy:
    groups = {
        chat_id: GroupConfig(
            enabled=bool(entry.get("enabled", True)),
            name=entry.get("name"),
        )
        for chat_id, entry in (raw.get("groups") or {}).items()
    }
    try:
        return AccountPolicy(
            dm_policy=DmPolicy(raw.get("dmPolicy", DmPolicy.PAIRING.value)),
            group_policy=GroupPolicy(
                raw.get("groupPolicy", GroupPolicy.ALLOWLIST.value)
            ),
            allow_from=frozenset(
                str(entry).strip() for entry in raw.get("allowFrom") or [] if entry
            ),
            require_mention=bool(raw.get("requireMention", True)),
            groups=groups,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid policy value: {e}") from e


def _build_account(account_id: str, raw: dict[str, Any]) -> AccountConfig:
    domain = raw.get("domain", "feishu")
    if domain not in API_BASES:
        raise ConfigurationError(f"Unknown domain '{domain}' for account {account_id}")

    connection_mode = raw.get("connectionMode", "websocket")
    if connection_mode not in ("websocket", "webhook"):
        raise ConfigurationError(
            f"Unknown connection mode '{connection_mode}' for account {account_id}"
        )

    try:
        render_mode = RenderMode(raw.get("renderMode", RenderMode.AUTO.value))
    except ValueError as e:
        raise ConfigurationError(f"Invalid render mode: {e}") from e

    return AccountConfig(
        account_id=account_id,
        name=raw.get("name"),
        enabled=bool(raw.get("enabled", True)),
        app_id=raw.get("appId"),
        app_secret=raw.get("appSecret"),
        domain=domain,
        connection_mode=connection_mode,
        verification_token=raw.get("verificationToken"),
        encrypt_key=raw.get("encryptKey"),
        render_mode=render_mode,
        policy=_parse_policy(raw),
    )


def resolve_accounts(section: dict[str, Any]) -> list[AccountConfig]:
    """
    Resolve every account described by a channel config section.

    Top-level keys act as the default account and as fallbacks for named
    accounts, except credentials, which named accounts must carry themselves.

    Args:
        section: Mapping shaped like ``{"appId": ..., "accounts": {"ops": {...}}}``

    Returns:
        Resolved accounts, default first when it has credentials
    """
    base = {k: v for k, v in section.items() if k != "accounts"}
    accounts: list[AccountConfig] = []

    if base.get("appId") or base.get("appSecret"):
        accounts.append(_build_account(DEFAULT_ACCOUNT_ID, base))

    inherited = {
        k: v for k, v in base.items() if k not in ("appId", "appSecret", "name")
    }
    for account_id, overrides in (section.get("accounts") or {}).items():
        if account_id == DEFAULT_ACCOUNT_ID and accounts:
            continue
        accounts.append(_build_account(account_id, {**inherited, **(overrides or {})}))

    return accounts


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def load_account_configs(config_path: PathLike | None = None) -> list[AccountConfig]:
    """
    Load account configs from a JSON file or, failing that, FEISHU_* env vars.

    Args:
        config_path: JSON file path. Defaults to FEISHU_CONFIG_PATH env var.
    """
    if config_path is None:
        config_path = os.getenv("FEISHU_CONFIG_PATH")

    if config_path:
        path = Path(config_path)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        try:
            section = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        return resolve_accounts(section)

    env_section: dict[str, Any] = {
        "appId": os.getenv("FEISHU_APP_ID"),
        "appSecret": os.getenv("FEISHU_APP_SECRET"),
        "domain": os.getenv("FEISHU_DOMAIN", "feishu"),
        "connectionMode": os.getenv("FEISHU_CONNECTION_MODE", "websocket"),
        "verificationToken": os.getenv("FEISHU_VERIFICATION_TOKEN"),
        "encryptKey": os.getenv("FEISHU_ENCRYPT_KEY"),
        "renderMode": os.getenv("FEISHU_RENDER_MODE", "auto"),
        "dmPolicy": os.getenv("FEISHU_DM_POLICY", "pairing"),
        "groupPolicy": os.getenv("FEISHU_GROUP_POLICY", "allowlist"),
        "allowFrom": _split_csv(os.getenv("FEISHU_ALLOW_FROM")),
        "requireMention": os.getenv("FEISHU_REQUIRE_MENTION", "true").lower()
        not in ("0", "false", "no"),
    }
    return resolve_accounts(env_section)
