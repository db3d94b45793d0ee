# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep the token and admin password in .env (local, gitignored).

Every TASKBOARD_* name in parentheses also accepts the older unprefixed name.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "TASKBOARD_DATA_DIR": "Local data directory, also holds logs/ (default: .local/taskboard).",
    "TASKBOARD_LOCAL_STORE_PATH": "Key-value JSON file standing in for browser storage (default: <data_dir>/local_storage.json).",
    "TASKBOARD_CACHE_KEY": "Key of the cached task list inside the store (default: tasks_v2).",
    # Remote document (GitHub contents API); sync is off unless owner and repo are set
    "TASKBOARD_REMOTE_OWNER": "Repository owner (GITHUB_OWNER).",
    "TASKBOARD_REMOTE_REPO": "Repository name (GITHUB_REPO).",
    "TASKBOARD_REMOTE_TOKEN": "Access token with contents write scope (GITHUB_TOKEN).",
    "TASKBOARD_REMOTE_PATH": "Path of the JSON document in the repository (GITHUB_PATH, default: data.json).",
    "TASKBOARD_REMOTE_BRANCH": "Branch to read and write (default: repository default branch).",
    "TASKBOARD_REMOTE_API_URL": "API base URL (default: https://api.github.com).",
    "TASKBOARD_REMOTE_TIMEOUT_SECONDS": "HTTP timeout per request (default: 20).",
    # Admin
    "TASKBOARD_ADMIN_USERNAME": "Admin login name (ADMIN_USERNAME). Empty disables login.",
    "TASKBOARD_ADMIN_PASSWORD": "Admin password (ADMIN_PASSWORD).",
    # Notices
    "TASKBOARD_NOTICE_SUCCESS_SECONDS": "How long success notices stay visible (default: 3).",
    "TASKBOARD_NOTICE_ERROR_SECONDS": "How long error notices stay visible (default: 5).",
}
