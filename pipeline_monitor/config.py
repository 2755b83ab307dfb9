import os

POLL_INTERVAL_SECONDS: int = int(os.environ.get("POLL_INTERVAL_SECONDS", "10"))
REQUEST_TIMEOUT_SECONDS: int = 10
CONNECTION_LIMIT: int = 50
USER_AGENT: str = "PipelineMonitor/1.0 (build-status)"

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

# JSON array of pipeline records, read once at startup
PIPELINES_FILE: str = os.environ.get("PIPELINES_FILE", "pipelines.json")

# relative paths tried, in this order, when a CCTray server URL has no file extension
CCTRAY_FEED_PATHS: tuple[str, ...] = (
    "/cctray.xml",
    "/dashboard/cctray.xml",
    "/go/cctray.xml",
    "/cc.xml",
    "/hudson/cc.xml",
    "/xml",
    "/XmlStatusReport.aspx",
    "/ccnet/XmlStatusReport.aspx",
)

# GitHub
GITHUB_API_BASE_URL: str = os.environ.get("GITHUB_API_BASE_URL", "https://api.github.com")
GITHUB_BASE_URL: str = os.environ.get("GITHUB_BASE_URL", "https://github.com")
GITHUB_CLIENT_ID: str = "4eafcf49451c588fbeac"
GITHUB_API_VERSION: str = "2022-11-28"
GITHUB_PAGE_SIZE: int = 3          # only the latest run matters
GITHUB_LIST_PAGE_SIZE: int = 100   # repositories and workflows
GITHUB_CREDENTIAL_SERVICE: str = "GitHub"

RATE_LIMIT_REMAINING_HEADER: str = "x-ratelimit-remaining"
RATE_LIMIT_RESET_HEADER: str = "x-ratelimit-reset"
