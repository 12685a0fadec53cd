"""Application configuration.

Loads the sync configuration from a JSON file (``config.json`` at the repo
root by default, or the path in ``ORDER_SYNC_CONFIG``) and applies
environment overrides. A ``.env`` file next to the repo root is loaded first.

Both snake_case keys and the PascalCase keys of the desktop-era config file
(``ShopifyShopDomain``, ``CourierAPIs``, ``DetectionUrl`` ...) are accepted.

Usage:
    from core.config import load_config

    config = load_config()
    print(config.sync.batch_size)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = REPO_ROOT / "config.json"


class ConfigurationError(Exception):
    """Configuration is missing or invalid."""
    pass


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class ConfigBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Sub-configurations
# =============================================================================

class CourierApiConfig(ConfigBase):
    """Courier-specific tracking API.

    Attributes:
        name: Display name (e.g., "TCS", "Leopards")
        detection_url: Substring identifying the courier in a tracking URL
        api_endpoint: Endpoint template; ``{tracking_id}`` (or ``{0}``) is replaced
        query_parameters: Query parameter names that may hold the tracking id
        enabled: Disabled entries are never matched
    """
    name: str = Field(default="", validation_alias=_alias("name", "Name"))
    detection_url: str = Field(default="", validation_alias=_alias("detection_url", "DetectionUrl"))
    api_endpoint: str = Field(default="", validation_alias=_alias("api_endpoint", "ApiEndpoint"))
    query_parameters: List[str] = Field(
        default_factory=list,
        validation_alias=_alias("query_parameters", "QueryParameters"),
    )
    enabled: bool = Field(default=True, validation_alias=_alias("enabled", "Enabled"))


class TagVocabulary(ConfigBase):
    """Tag synonyms per lifecycle flag.

    Every flag lists one or more phrases; a flag is set when any phrase
    matches one of the order's tags.
    """
    cancelled: List[str] = Field(default_factory=lambda: ["Cancelled"])
    whatsapp_sent: List[str] = Field(default_factory=lambda: ["WhatsApp Sent"])
    confirmed: List[str] = Field(default_factory=lambda: ["Confirmed"])
    did_not_pick_up: List[str] = Field(default_factory=lambda: ["Did not pick up"])
    invalid_whatsapp: List[str] = Field(default_factory=lambda: ["Invalid WhatsApp"])
    whatsapp_confirmed: List[str] = Field(default_factory=lambda: ["WhatsApp Confirmed"])
    awaiting_call: List[str] = Field(default_factory=lambda: ["Awaiting Call"])
    not_picking_phone: List[str] = Field(default_factory=lambda: ["Did not pick up", "No Answer"])
    call_completed: List[str] = Field(default_factory=lambda: ["Call Completed"])
    size_confirmed: List[str] = Field(default_factory=lambda: ["Size Confirmed"])


class SyncSettings(ConfigBase):
    """Thresholds and limits for a sync pass."""
    batch_size: int = 50
    stale_after_hours: float = 24.0
    in_transit_follow_up_days: float = 5.0
    max_pages: int = 100
    output_ceiling: int = 2000
    tracking_fetch_timeout_seconds: int = 30
    default_range_days: int = 30


class ClassifierConfig(ConfigBase):
    """OpenAI-compatible chat endpoint used to classify tracking text.

    ``base_url`` may point at a local inference server exposing the
    OpenAI API (llama.cpp, Ollama, vLLM ...).
    """
    base_url: Optional[str] = Field(default=None, validation_alias=_alias("base_url", "BaseUrl"))
    api_key: str = Field(default="not-needed", validation_alias=_alias("api_key", "ApiKey"))
    model: str = Field(default="gpt-4o-mini", validation_alias=_alias("model", "Model"))
    temperature: float = 0.3
    max_tokens: int = 150
    timeout_seconds: float = 60.0


class GoogleCredentials(ConfigBase):
    """Google service-account key (the JSON downloaded from the console)."""
    type: str = "service_account"
    project_id: str = ""
    private_key_id: str = ""
    private_key: str
    client_email: str
    client_id: str = ""
    token_uri: str = "https://oauth2.googleapis.com/token"


# =============================================================================
# Application Configuration
# =============================================================================

class AppConfiguration(ConfigBase):
    """Top-level configuration for the order sync service."""
    shopify_shop_domain: str = Field(validation_alias=_alias("shopify_shop_domain", "ShopifyShopDomain"))
    shopify_access_token: str = Field(
        validation_alias=_alias("shopify_access_token", "ShopifyPassword", "ShopifyAccessToken"),
    )
    shopify_api_version: str = Field(
        default="2024-01",
        validation_alias=_alias("shopify_api_version", "ShopifyApiVersion"),
    )
    google_credentials: GoogleCredentials = Field(
        validation_alias=_alias("google_credentials", "GoogleCredentialsJson"),
    )
    spreadsheet_id: str = Field(validation_alias=_alias("spreadsheet_id", "SpreadsheetId"))
    sheet_name: str = Field(default="Sheet1", validation_alias=_alias("sheet_name", "SheetName"))
    sheet_id: int = Field(default=0, validation_alias=_alias("sheet_id", "SheetId"))
    courier_apis: List[CourierApiConfig] = Field(
        default_factory=list,
        validation_alias=_alias("courier_apis", "CourierAPIs"),
    )
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    tag_vocabulary: TagVocabulary = Field(default_factory=TagVocabulary)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    @field_validator("google_credentials", mode="before")
    @classmethod
    def _parse_credentials(cls, value):
        """Accept the service-account key as an object or as a JSON string."""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"google_credentials is not valid JSON: {e}")
        return value


# =============================================================================
# Loading
# =============================================================================

ENV_OVERRIDES = {
    "SHOPIFY_SHOP_DOMAIN": ("shopify_shop_domain",),
    "SHOPIFY_ACCESS_TOKEN": ("shopify_access_token",),
    "SPREADSHEET_ID": ("spreadsheet_id",),
    "SHEET_NAME": ("sheet_name",),
    "GOOGLE_CREDENTIALS_JSON": ("google_credentials",),
    "CLASSIFIER_BASE_URL": ("classifier", "base_url"),
    "CLASSIFIER_API_KEY": ("classifier", "api_key"),
    "CLASSIFIER_MODEL": ("classifier", "model"),
}


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, path in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if not value:
            continue
        target = data
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = value
    return data


def load_config(path: Optional[Path] = None) -> AppConfiguration:
    """Load the application configuration.

    Args:
        path: Config JSON path (default: $ORDER_SYNC_CONFIG or repo config.json)

    Returns:
        Validated AppConfiguration

    Raises:
        ConfigurationError: If no configuration is found or it fails validation
    """
    env_path = REPO_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if path is None:
        env_config = os.getenv("ORDER_SYNC_CONFIG")
        path = Path(env_config) if env_config else DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {e}")

    data = _apply_env_overrides(data)
    if not data:
        raise ConfigurationError(
            f"Configuration not found. Create {path} or set SHOPIFY_SHOP_DOMAIN, "
            "SHOPIFY_ACCESS_TOKEN, SPREADSHEET_ID and GOOGLE_CREDENTIALS_JSON"
        )

    try:
        return AppConfiguration.model_validate(data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")
