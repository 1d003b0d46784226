"""Configuration management for the Content Intel weekly report pipeline.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.

Environment Variables:
    LLM (at least one key required):
        OPENAI_API_KEY: OpenAI API key
        ANTHROPIC_API_KEY: Anthropic API key
        ANALYSIS_MODEL: Model for synthesis, key stories and ideas
        FAST_MODEL: Model for hooks, executive summary and chat

    Research:
        TAVILY_API_KEY: Tavily search API key
        TAVILY_MONTHLY_LIMIT: Maximum billed searches per month
        SEARCH_MODE: 'fast' (parallel) or 'advanced' (sequential, rate-limited)
        SEARCH_CACHE_DIR: Directory for day-keyed search cache files

    Google Docs / Drive:
        GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET: OAuth desktop client
        GOOGLE_TOKEN_PATH: Stored OAuth token file
        GOOGLE_DRIVE_FOLDER: Drive folder that receives weekly reports

    Email:
        EMAIL_USER, EMAIL_PASSWORD: SMTP login (Gmail app password)
        SMTP_HOST, SMTP_PORT: SMTP server
        REPORT_TO_EMAIL, REPORT_CC_EMAIL: Report recipients

    Slack:
        SLACK_BOT_TOKEN, SLACK_CHANNEL_ID: Enabled only when both are set

    Storage:
        DATABASE_PATH: SQLite content store
        MEMORY_FILE: Report memory JSON file
        INSIGHTS_FILE: Derived cumulative insights markdown
        REPORTS_DIR: Directory for generated reports
        ARCHIVE_DIR: Directory for archived research payloads
        STRATEGY_FILE: Brand strategy document fed to synthesis

    Schedule / Server:
        WEEKLY_REPORT_DAY: Cron weekday (0=Sunday ... 6=Saturday, default 1)
        WEEKLY_REPORT_HOUR: Hour of day (default 9)
        TIMEZONE: IANA timezone name for the schedule
        HOST, PORT: HTTP server bind address

    Pipeline Behavior:
        STAGE_TIMEOUT_SECONDS: Upper bound for each LLM stage
        STRICT_SYNTHESIS: Abort the run when an analysis stage fails
        MAX_WORKERS: Maximum concurrent fetches / API calls
        MAX_ARTICLE_AGE_DAYS: Skip feed entries older than this
        REDDIT_USER_AGENT: User-Agent sent to Reddit's JSON API
        TIKTOK_API_KEY, LINKEDIN_API_KEY: Optional social platform keys

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing
        LOGFIRE_TOKEN: Logfire write token

    Logging:
        LOG_DIR: Directory for log files
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _default_model(fast: bool = False) -> str:
    """Pick a default model from whichever provider key is configured."""
    if os.environ.get("ANTHROPIC_API_KEY"):
        return "anthropic:claude-3-5-sonnet-latest"
    return "openai:gpt-4o-mini" if fast else "openai:gpt-4o"


# Newsletters and publications polled every week.
# type='rss' sources need a feed url; type='scraper' sources are parsed as HTML.
DEFAULT_NEWS_SOURCES = [
    # === Newsletters ===
    {"name": "HR Brew", "type": "rss", "url": "https://www.hr-brew.com/feed"},
    {"name": "Harvard Business Review", "type": "rss", "url": "https://feeds.hbr.org/harvardbusiness"},
    {"name": "Morning Brew", "type": "rss", "url": "https://www.morningbrew.com/feed"},
    {"name": "LinkedIn News", "type": "scraper", "url": "https://www.linkedin.com/news/",
     "selector": "article"},

    # === Substacks ===
    {"name": "Joel Uili", "type": "rss", "url": "https://joeluili.substack.com/feed"},
    {"name": "Laetitia@Work", "type": "rss", "url": "https://laetitiawork.substack.com/feed"},
    {"name": "Adam Grant", "type": "rss", "url": "https://adamgrant.substack.com/feed"},
    {"name": "Full Stack HR", "type": "rss", "url": "https://fullstackhr.substack.com/feed"},
]

# Subreddit -> number of hot posts to request
DEFAULT_SUBREDDITS = {
    "AskManagers": 25,
    "careerguidance": 50,
    "jobs": 30,
    "recruitinghell": 20,
    "resumes": 15,
    "negotiation": 20,
    "futureofwork": 25,
}

# Creators tracked for competitor insights
DEFAULT_SOCIAL_CREATORS = [
    # === Primary Competitors ===
    {"handle": "loewhaley", "platforms": ["tiktok", "linkedin"]},
    {"handle": "taylorsandersoncareers", "platforms": ["tiktok", "linkedin"]},
    {"handle": "careerhackerjosh", "platforms": ["tiktok"]},
    {"handle": "madeline_mann", "platforms": ["tiktok", "linkedin"]},
    {"handle": "jerryjhlee", "platforms": ["tiktok", "linkedin"]},
    {"handle": "thewealthychick", "platforms": ["tiktok"]},
    {"handle": "salarytransparentstreet", "platforms": ["tiktok"]},
    {"handle": "careercoachkelly", "platforms": ["tiktok", "linkedin"]},
    {"handle": "lauraberrycareers", "platforms": ["linkedin"]},
    {"handle": "worklifewithjess", "platforms": ["tiktok"]},

    # === Career Focused ===
    {"handle": "annaskinnercoaching", "platforms": ["linkedin"]},
    {"handle": "recruitermaddie", "platforms": ["tiktok"]},
    {"handle": "thecareercloset", "platforms": ["tiktok", "linkedin"]},
    {"handle": "jobsearchjen", "platforms": ["linkedin"]},
]

# Theme keywords watched across all sources
KEYWORD_THEMES = [
    "salary negotiation", "pay transparency", "remote work", "hybrid work",
    "return to office", "layoffs", "job search", "career pivot",
    "personal branding", "linkedin", "networking", "promotion",
    "burnout", "work-life balance", "four day work week", "quiet quitting",
    "ai skills", "upskilling", "leadership", "imposter syndrome",
    "workplace culture", "employee rights", "gen z workers", "side hustle",
    "career clarity", "job market",
]


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables. Use Config.load()
    to create an instance with values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === LLM Providers ===
    openai_api_key: str = ""  # OPENAI_API_KEY
    anthropic_api_key: str = ""  # ANTHROPIC_API_KEY
    # PydanticAI format: provider:model, or openai:model@base_url for local servers
    analysis_model: str = "openai:gpt-4o"  # ANALYSIS_MODEL - Synthesis, stories, ideas
    fast_model: str = "openai:gpt-4o-mini"  # FAST_MODEL - Hooks, summary, chat

    # === Research ===
    tavily_api_key: str = ""  # TAVILY_API_KEY
    tavily_monthly_limit: int = 1000  # TAVILY_MONTHLY_LIMIT - Billed searches per month
    search_mode: str = "fast"  # SEARCH_MODE - 'fast' or 'advanced'
    search_cache_dir: Path = field(default_factory=lambda: Path("data/tavily-cache"))  # SEARCH_CACHE_DIR

    # === Google Docs / Drive ===
    google_client_id: str = ""  # GOOGLE_CLIENT_ID
    google_client_secret: str = ""  # GOOGLE_CLIENT_SECRET
    google_token_path: Path = field(default_factory=lambda: Path("data/google-oauth-token.json"))  # GOOGLE_TOKEN_PATH
    google_drive_folder: str = "Content Intel Weekly Reports"  # GOOGLE_DRIVE_FOLDER

    # === Email ===
    email_user: str = ""  # EMAIL_USER - SMTP login
    email_password: str = ""  # EMAIL_PASSWORD - SMTP app password
    smtp_host: str = "smtp.gmail.com"  # SMTP_HOST
    smtp_port: int = 587  # SMTP_PORT - STARTTLS port
    report_to_email: str = ""  # REPORT_TO_EMAIL
    report_cc_email: str = ""  # REPORT_CC_EMAIL

    # === Slack ===
    slack_bot_token: str = ""  # SLACK_BOT_TOKEN
    slack_channel_id: str = ""  # SLACK_CHANNEL_ID

    # === Sources ===
    news_sources: list[dict] = field(default_factory=lambda: [dict(s) for s in DEFAULT_NEWS_SOURCES])
    subreddits: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SUBREDDITS))
    social_creators: list[dict] = field(default_factory=lambda: [dict(c) for c in DEFAULT_SOCIAL_CREATORS])
    reddit_user_agent: str = "ContentIntel/1.0"  # REDDIT_USER_AGENT
    tiktok_api_key: str = ""  # TIKTOK_API_KEY - Placeholder data when unset
    linkedin_api_key: str = ""  # LINKEDIN_API_KEY - Placeholder data when unset
    max_article_age_days: int = 10  # MAX_ARTICLE_AGE_DAYS

    # === Storage ===
    db_path: Path = field(default_factory=lambda: Path("data/news_agent.db"))  # DATABASE_PATH
    memory_file: Path = field(default_factory=lambda: Path("data/report-memory.json"))  # MEMORY_FILE
    insights_file: Path = field(default_factory=lambda: Path("data/cumulative-insights.md"))  # INSIGHTS_FILE
    reports_dir: Path = field(default_factory=lambda: Path("reports"))  # REPORTS_DIR
    archive_dir: Path = field(default_factory=lambda: Path("data/archive"))  # ARCHIVE_DIR
    strategy_file: Path = field(default_factory=lambda: Path("data/strategy.md"))  # STRATEGY_FILE

    # === Schedule / Server ===
    weekly_report_day: int = 1  # WEEKLY_REPORT_DAY - Cron weekday, 1 = Monday
    weekly_report_hour: int = 9  # WEEKLY_REPORT_HOUR
    timezone: str = "America/Los_Angeles"  # TIMEZONE
    host: str = "0.0.0.0"  # HOST
    port: int = 3000  # PORT

    # === Pipeline Behavior ===
    stage_timeout_seconds: float = 180.0  # STAGE_TIMEOUT_SECONDS - Per LLM stage
    strict_synthesis: bool = False  # STRICT_SYNTHESIS - Fail the run on stage errors
    max_workers: int = 8  # MAX_WORKERS - Concurrent fetches / API calls

    # === Logging Configuration ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @property
    def slack_enabled(self) -> bool:
        return bool(self.slack_bot_token and self.slack_channel_id)

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_user and self.email_password and self.report_to_email)

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            openai_api_key=_env("OPENAI_API_KEY"),
            anthropic_api_key=_env("ANTHROPIC_API_KEY"),
            analysis_model=_env("ANALYSIS_MODEL", _default_model()),
            fast_model=_env("FAST_MODEL", _default_model(fast=True)),
            tavily_api_key=_env("TAVILY_API_KEY"),
            tavily_monthly_limit=_env_int("TAVILY_MONTHLY_LIMIT", 1000),
            search_mode=_env("SEARCH_MODE", "fast").lower(),
            search_cache_dir=Path(_env("SEARCH_CACHE_DIR", "data/tavily-cache")),
            google_client_id=_env("GOOGLE_CLIENT_ID"),
            google_client_secret=_env("GOOGLE_CLIENT_SECRET"),
            google_token_path=Path(_env("GOOGLE_TOKEN_PATH", "data/google-oauth-token.json")),
            google_drive_folder=_env("GOOGLE_DRIVE_FOLDER", "Content Intel Weekly Reports"),
            email_user=_env("EMAIL_USER"),
            email_password=_env("EMAIL_PASSWORD"),
            smtp_host=_env("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=_env_int("SMTP_PORT", 587),
            report_to_email=_env("REPORT_TO_EMAIL"),
            report_cc_email=_env("REPORT_CC_EMAIL"),
            slack_bot_token=_env("SLACK_BOT_TOKEN"),
            slack_channel_id=_env("SLACK_CHANNEL_ID"),
            reddit_user_agent=_env("REDDIT_USER_AGENT", "ContentIntel/1.0"),
            tiktok_api_key=_env("TIKTOK_API_KEY"),
            linkedin_api_key=_env("LINKEDIN_API_KEY"),
            max_article_age_days=_env_int("MAX_ARTICLE_AGE_DAYS", 10),
            db_path=Path(_env("DATABASE_PATH", "data/news_agent.db")),
            memory_file=Path(_env("MEMORY_FILE", "data/report-memory.json")),
            insights_file=Path(_env("INSIGHTS_FILE", "data/cumulative-insights.md")),
            reports_dir=Path(_env("REPORTS_DIR", "reports")),
            archive_dir=Path(_env("ARCHIVE_DIR", "data/archive")),
            strategy_file=Path(_env("STRATEGY_FILE", "data/strategy.md")),
            weekly_report_day=_env_int("WEEKLY_REPORT_DAY", 1),
            weekly_report_hour=_env_int("WEEKLY_REPORT_HOUR", 9),
            timezone=_env("TIMEZONE", "America/Los_Angeles"),
            host=_env("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            stage_timeout_seconds=_env_float("STAGE_TIMEOUT_SECONDS", 180.0),
            strict_synthesis=_env_bool("STRICT_SYNTHESIS", False),
            max_workers=_env_int("MAX_WORKERS", 8),
            log_dir=Path(_env("LOG_DIR", "log")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """Validate configuration for required fields and valid values.

        Checks:
            - OPENAI_API_KEY or ANTHROPIC_API_KEY is set
            - Search mode and schedule values are in range
            - Numeric values are positive

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.openai_api_key and not self.anthropic_api_key:
            return "OPENAI_API_KEY or ANTHROPIC_API_KEY environment variable is required"
        if self.search_mode not in ("fast", "advanced"):
            return f"Invalid SEARCH_MODE '{self.search_mode}' - must be 'fast' or 'advanced'"
        if not 0 <= self.weekly_report_day <= 6:
            return "WEEKLY_REPORT_DAY must be between 0 (Sunday) and 6 (Saturday)"
        if not 0 <= self.weekly_report_hour <= 23:
            return "WEEKLY_REPORT_HOUR must be between 0 and 23"
        if self.tavily_monthly_limit <= 0:
            return "TAVILY_MONTHLY_LIMIT must be positive"
        if self.stage_timeout_seconds <= 0:
            return "STAGE_TIMEOUT_SECONDS must be positive"
        if self.max_workers <= 0:
            return "MAX_WORKERS must be positive"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None

    def validate_research(self) -> str | None:
        """Validate settings needed to generate a report.

        Returns:
            Error message string if invalid, None if valid.
        """
        if error := self.validate():
            return error
        if not self.tavily_api_key:
            return "TAVILY_API_KEY environment variable is required to generate reports"
        return None
