"""
Tier resolution from locally stored credentials

Credentials are a JSON file ({tier, email, name, expiresAt}) written by the
login flow. Without credentials the FREE tier applies; expired credentials are
removed and also fall back to FREE.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from esmc.core.config import get_settings
from esmc.core.constants import TIER_FEATURES, TIER_HIERARCHY
from esmc.core.logging_config import LoggingConfig
from esmc.utils.datetime_utils import parse_iso, utc_now

logger = LoggingConfig.get_logger(__name__)


def load_credentials(path: Path) -> Optional[Dict[str, Any]]:
    """Load credentials, returning None when missing or unreadable"""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Credentials at {path} are corrupted: {e}")
        return None
    if not isinstance(data, dict):
        logger.error(f"Credentials at {path} are not a JSON object")
        return None
    return data


def clear_credentials(path: Path) -> None:
    if path.exists():
        path.unlink()


def get_expiry(credentials: Optional[Dict[str, Any]]) -> Optional[str]:
    """Expiry as written by the login flow (expiresAt), or the snake_case spelling"""
    if not credentials:
        return None
    return credentials.get("expiresAt") or credentials.get("expires_at")


def is_expired(credentials: Optional[Dict[str, Any]]) -> bool:
    """Credentials without an expiry, or with an unparseable one, never expire"""
    expiry = get_expiry(credentials)
    if not expiry:
        return False
    try:
        return parse_iso(str(expiry)) < utc_now()
    except ValueError:
        logger.warning(f"Unparseable expiry {expiry!r}, treating as not expired")
        return False


class TierManager:
    """Resolves the active tier and answers feature questions for it"""

    def __init__(self, credentials_path: Optional[Union[str, Path]] = None):
        self.credentials_path = (
            Path(credentials_path) if credentials_path is not None else get_settings().credentials_file
        )
        self.current_tier = "FREE"
        self.credentials: Optional[Dict[str, Any]] = None
        self.features = TIER_FEATURES["FREE"]

    def _set_tier(self, tier: Optional[str]) -> None:
        tier = (tier or "FREE").upper()
        if tier not in TIER_FEATURES:
            logger.warning(f"Unknown tier {tier!r}, using FREE")
            tier = "FREE"
        self.current_tier = tier
        self.features = TIER_FEATURES[tier]

    def initialize(self) -> Dict[str, Any]:
        """
        Resolve the tier from local credentials

        Returns:
            Status dict with tier, source ('default', 'expired' or 'local') and authenticated
        """
        self.credentials = load_credentials(self.credentials_path)

        if not self.credentials:
            self._set_tier("FREE")
            return {
                "tier": "FREE",
                "source": "default",
                "authenticated": False,
                "message": "Not logged in - using FREE tier",
            }

        if is_expired(self.credentials):
            logger.warning("Subscription expired - clearing credentials")
            clear_credentials(self.credentials_path)
            self.credentials = None
            self._set_tier("FREE")
            return {
                "tier": "FREE",
                "source": "expired",
                "authenticated": False,
                "message": "Subscription expired - reverted to FREE tier",
            }

        self._set_tier(self.credentials.get("tier"))
        return {
            "tier": self.current_tier,
            "source": "local",
            "authenticated": True,
            "email": self.credentials.get("email"),
            "name": self.credentials.get("name"),
            "expiresAt": get_expiry(self.credentials),
        }

    def get_tier(self) -> str:
        return self.current_tier

    def get_features(self) -> Dict[str, Any]:
        return self.features

    def is_intelligence_enabled(self, component: str) -> bool:
        return component.upper() in self.features["intelligence"]

    def is_colonel_enabled(self, colonel: str) -> bool:
        return colonel.upper() in self.features["colonels"]

    def is_module_enabled(self, module: str) -> bool:
        return module in self.features["modules"]

    def get_available_colonels(self, required: List[str]) -> List[str]:
        return [colonel for colonel in required if self.is_colonel_enabled(colonel)]

    def get_memory_type(self) -> str:
        return self.features["memory"]

    def validate_access(self, required_tier: str) -> bool:
        """True when the current tier is at or above required_tier"""
        required = required_tier.upper()
        if required not in TIER_HIERARCHY:
            return False
        return TIER_HIERARCHY.index(self.current_tier) >= TIER_HIERARCHY.index(required)

    def get_user_info(self) -> Optional[Dict[str, Any]]:
        if not self.credentials:
            return None
        return {
            "email": self.credentials.get("email"),
            "name": self.credentials.get("name"),
            "tier": self.current_tier,
            "expiresAt": get_expiry(self.credentials),
        }

    def is_max_or_vip(self) -> bool:
        return self.current_tier in ("MAX", "VIP")
