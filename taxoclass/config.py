"""Category configuration and runtime settings.

Provides:
- Category / CategoriesConfig: the static category table and ignore list
- load_categories: YAML or JSON loader for the category table
- Settings: environment-driven wiring options (store, API, timeouts)
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv

from taxoclass.exceptions import ConfigError
from taxoclass.models import DEFAULT_SIZE

logger = logging.getLogger(__name__)

VALID_SIZES = ("S", "M", "L", "XL")

YAML_EXTENSIONS = ('.yaml', '.yml')


@dataclass
class Category:
    """Configuration of one application category.

    Attributes:
        size: Declared size tier (S, M, L, XL)
        sitelinks_min: Minimum sitelink count used by downstream filtering
        qids: Taxonomy roots that belong to this category, QID -> label
    """
    size: str = DEFAULT_SIZE
    sitelinks_min: int = 0
    qids: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        """Create from dictionary."""
        qids = data.get("qids") or {}
        if isinstance(qids, list):
            qids = {qid: "" for qid in qids}
        return cls(
            size=(data.get("size") or DEFAULT_SIZE).upper(),
            sitelinks_min=int(data.get("sitelinks_min", 0) or 0),
            qids={str(k): str(v or "") for k, v in qids.items()},
        )

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "sitelinks_min": self.sitelinks_min,
            "qids": dict(self.qids),
        }


@dataclass
class CategoriesConfig:
    """The static category table plus the "not interesting" list.

    Attributes:
        categories: Category name -> Category
        ignored_categories: QID -> reason it is ignored
    """
    categories: dict[str, Category] = field(default_factory=dict)
    ignored_categories: dict[str, str] = field(default_factory=dict)

    def build_lookup(self) -> dict[str, str]:
        """Create a map of QID -> category name for direct lookups."""
        lookup = {}
        for name, category in self.categories.items():
            for qid in category.qids:
                lookup[qid] = name
        return lookup

    def get_category(self, name: str) -> Optional[Category]:
        category = self.categories.get(name)
        if category is None:
            category = self.categories.get(name.lower())
        return category

    def get_size(self, name: str) -> str:
        """Size tier for a category (default "M")."""
        category = self.get_category(name)
        if category and category.size:
            return category.size
        return DEFAULT_SIZE

    def get_sitelinks_min(self, name: str) -> int:
        category = self.get_category(name)
        return category.sitelinks_min if category else 0

    def is_ignored(self, qid: str) -> bool:
        return qid in self.ignored_categories

    @classmethod
    def from_dict(cls, data: dict) -> "CategoriesConfig":
        """Create from a parsed configuration mapping.

        Category names are normalized to lower case.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"categories config must be a mapping, got {type(data).__name__}")

        categories = {}
        for name, raw in (data.get("categories") or {}).items():
            if not isinstance(raw, dict):
                raise ConfigError(f"category '{name}' must be a mapping")
            category = Category.from_dict(raw)
            if category.size not in VALID_SIZES:
                raise ConfigError(
                    f"category '{name}' has invalid size '{category.size}', "
                    f"expected one of {', '.join(VALID_SIZES)}"
                )
            categories[str(name).lower()] = category

        ignored = {str(k): str(v or "") for k, v in (data.get("ignored_categories") or {}).items()}
        return cls(categories=categories, ignored_categories=ignored)

    def to_dict(self) -> dict:
        return {
            "categories": {name: cat.to_dict() for name, cat in self.categories.items()},
            "ignored_categories": dict(self.ignored_categories),
        }


def load_categories(path: Union[str, Path]) -> CategoriesConfig:
    """Load the category configuration from a YAML or JSON file.

    Args:
        path: Path to a .yaml/.yml or .json file

    Returns:
        The parsed CategoriesConfig

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read categories file: {e}", path=str(path)) from e

    try:
        if path.suffix.lower() in YAML_EXTENSIONS:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"failed to parse categories file: {e}", path=str(path)) from e

    try:
        cfg = CategoriesConfig.from_dict(data)
    except ConfigError as e:
        e.path = str(path)
        raise

    logger.info(
        f"Loaded {len(cfg.categories)} categories and "
        f"{len(cfg.ignored_categories)} ignored roots from {path}"
    )
    return cfg


# Environment variable names
DB_ENV = "TAXOCLASS_DB"
CATEGORIES_ENV = "TAXOCLASS_CATEGORIES"
API_ENDPOINT_ENV = "TAXOCLASS_API_ENDPOINT"
USER_AGENT_ENV = "TAXOCLASS_USER_AGENT"
TIMEOUT_ENV = "TAXOCLASS_TIMEOUT"
MAX_RETRIES_ENV = "TAXOCLASS_MAX_RETRIES"

DEFAULT_API_ENDPOINT = "https://www.wikidata.org/w/api.php"
DEFAULT_USER_AGENT = "taxoclass/0.1 (hierarchy classifier)"


@dataclass
class Settings:
    """Wiring options for create_classifier().

    Attributes:
        db: Hierarchy store locator (SQLite path or postgresql:// URI)
        categories_path: Path to the category configuration file
        api_endpoint: Wikidata API endpoint
        user_agent: User-Agent sent with API requests
        timeout: Per-request timeout in seconds
        max_retries: Attempts per API request
    """
    db: str = "hierarchy.db"
    categories_path: Optional[str] = None
    api_endpoint: str = DEFAULT_API_ENDPOINT
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    max_retries: int = 3

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables (and .env if present)."""
        if dotenv:
            load_dotenv()
        try:
            return cls(
                db=os.environ.get(DB_ENV, "hierarchy.db"),
                categories_path=os.environ.get(CATEGORIES_ENV),
                api_endpoint=os.environ.get(API_ENDPOINT_ENV, DEFAULT_API_ENDPOINT),
                user_agent=os.environ.get(USER_AGENT_ENV, DEFAULT_USER_AGENT),
                timeout=float(os.environ.get(TIMEOUT_ENV, 30.0)),
                max_retries=int(os.environ.get(MAX_RETRIES_ENV, 3)),
            )
        except ValueError as e:
            raise ConfigError(f"invalid numeric setting in environment: {e}") from e
