"""
Configuration loading for the patch reviewer.

Settings come from the environment (optionally a .env file) and an optional
YAML file; environment values win over file values.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

import yaml

from patch_reviewer.custom_exceptions import InvalidConfigurationError, MissingConfigurationError
from patch_reviewer.file_filter import parse_ignore_list
from patch_reviewer.github_client import DEFAULT_API_URL
from patch_reviewer.logging_config import get_logger, with_context
from patch_reviewer.models import CommitRange

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "Korean"
DEFAULT_REQUEST_TIMEOUT = 60.0


@with_context
def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load settings from a YAML file.

    Args:
        config_path: Path to the config file

    Returns:
        Dictionary with optional ``github``, ``model`` and ``review`` sections

    Raises:
        MissingConfigurationError: If the config file does not exist
        InvalidConfigurationError: If the file is not valid YAML or not a mapping
    """
    if not os.path.exists(config_path):
        logger.error(f"Config file not found: {config_path}",
                     context={"config_path": config_path})
        raise MissingConfigurationError("config_file")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML in config file: {e}",
                     context={"config_path": config_path})
        raise InvalidConfigurationError("config_file", f"Invalid YAML format: {e}")

    if not isinstance(config, dict):
        raise InvalidConfigurationError("config_file", "top level must be a mapping")

    for section in ("github", "model", "review"):
        _section(config, section)
    _section(_section(config, "model"), "rate_limiting")

    logger.debug("Successfully loaded configuration", context={"config_path": config_path})
    return config


def _section(config: Mapping[str, Any], key: str) -> Dict[str, Any]:
    """Return a nested mapping; an empty YAML key reads as an empty section."""
    value = config.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidConfigurationError(key, "section must be a mapping")
    return value


def _parse_int(key: str, value: Any, minimum: Optional[int] = None) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidConfigurationError(key, f"expected an integer, got {value!r}")
    if minimum is not None and number < minimum:
        raise InvalidConfigurationError(key, f"must be at least {minimum}")
    return number


def _parse_float(key: str, value: Any) -> float:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidConfigurationError(key, f"expected a number, got {value!r}")
    if number <= 0:
        raise InvalidConfigurationError(key, "must be positive")
    return number


@dataclass
class Settings:
    """Everything one review run needs."""
    github_token: str
    owner: str
    repo: str
    pull_number: int
    base: Optional[str] = None
    head: Optional[str] = None
    max_patch_length: Optional[int] = None  # None means unbounded
    ignore_list: FrozenSet[str] = frozenset()
    language: str = DEFAULT_LANGUAGE
    concurrency: int = 1
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    github_api_url: str = DEFAULT_API_URL
    model: Dict[str, Any] = field(default_factory=dict)

    @property
    def commit_range(self) -> CommitRange:
        if not self.base or not self.head:
            raise MissingConfigurationError("GITHUB_BASE_COMMIT" if not self.base else "GITHUB_HEAD_COMMIT")
        return CommitRange(owner=self.owner, repo=self.repo, base=self.base, head=self.head)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 file_config: Optional[Dict[str, Any]] = None) -> "Settings":
        """
        Build settings from environment variables layered over a config file.

        Raises:
            MissingConfigurationError: If a required variable is absent
            InvalidConfigurationError: If a value cannot be parsed
        """
        env = os.environ if environ is None else environ
        file_config = file_config or {}
        github_section = _section(file_config, "github")
        model_section = _section(file_config, "model")
        review_section = _section(file_config, "review")
        rate_limiting = _section(model_section, "rate_limiting")

        def required(key: str) -> str:
            value = (env.get(key) or "").strip()
            if not value:
                logger.error(f"{key} environment variable is required")
                raise MissingConfigurationError(key)
            return value

        github_token = required("GITHUB_TOKEN")
        owner = required("GITHUB_OWNER")
        repo = required("GITHUB_REPOSITORY_NAME")
        pull_number = _parse_int("GITHUB_PR_NUMBER", required("GITHUB_PR_NUMBER"), minimum=1)

        max_patch_length = None
        raw_max = env.get("MAX_PATCH_LENGTH") or review_section.get("max_patch_length")
        if raw_max not in (None, ""):
            max_patch_length = _parse_int("MAX_PATCH_LENGTH", raw_max, minimum=0)

        file_ignore = review_section.get("ignore") or []
        if isinstance(file_ignore, list):
            file_ignore = "\n".join(str(entry) for entry in file_ignore)
        ignore_list = parse_ignore_list(env.get("IGNORE"), env.get("ignore"), file_ignore)

        request_timeout = _parse_float(
            "REQUEST_TIMEOUT",
            env.get("REQUEST_TIMEOUT") or github_section.get("timeout") or DEFAULT_REQUEST_TIMEOUT
        )

        model = {
            "api_key": env.get("OPENAI_API_KEY") or model_section.get("api_key"),
            "endpoint": env.get("OPENAI_API_ENDPOINT") or model_section.get("endpoint"),
            "model": env.get("OPENAI_MODEL") or model_section.get("model"),
            "max_tokens": _parse_int(
                "MAX_TOKENS", env.get("MAX_TOKENS") or model_section.get("max_tokens") or 1000, minimum=1
            ),
            "timeout": request_timeout,
            "rate_limiting": {
                **rate_limiting,
                "max_retries": _parse_int(
                    "MODEL_MAX_RETRIES",
                    env.get("MODEL_MAX_RETRIES")
                    or rate_limiting.get("max_retries") or 3,
                    minimum=1,
                ),
            },
        }
        if not model["api_key"]:
            logger.error("OPENAI_API_KEY environment variable is required")
            raise MissingConfigurationError("OPENAI_API_KEY")

        settings = cls(
            github_token=github_token,
            owner=owner,
            repo=repo,
            pull_number=pull_number,
            base=(env.get("GITHUB_BASE_COMMIT") or "").strip() or None,
            head=(env.get("GITHUB_HEAD_COMMIT") or "").strip() or None,
            max_patch_length=max_patch_length,
            ignore_list=ignore_list,
            language=env.get("REVIEW_LANGUAGE") or review_section.get("language") or DEFAULT_LANGUAGE,
            concurrency=_parse_int(
                "REVIEW_CONCURRENCY",
                env.get("REVIEW_CONCURRENCY") or review_section.get("concurrency") or 1,
                minimum=1,
            ),
            request_timeout=request_timeout,
            github_api_url=env.get("GITHUB_API_URL") or github_section.get("api_url") or DEFAULT_API_URL,
            model=model,
        )

        logger.debug("Settings loaded",
                     context={"repo": f"{owner}/{repo}", "pr_number": pull_number,
                              "max_patch_length": max_patch_length,
                              "ignore_count": len(ignore_list),
                              "concurrency": settings.concurrency})
        return settings
