STATE_DIRNAME = ".graduate"
ENVIRONMENTS_FILENAME = "environments"
HOOKS_DIRNAME = "hooks"
DEFAULT_SENTINEL = "=====> Awaiting graduation decision"
UP_TO_DATE_MARKER = "Everything up-to-date"
TAG_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
