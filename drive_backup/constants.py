"""
Shared constants for Drive Backup.
"""

# Drive marks folders with this MIME type; they carry no content
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Prefix of Drive-native document types (no byte representation of their own)
NATIVE_MIME_PREFIX = "application/vnd.google-apps."

# Native document types and the formats each one is exported to, in export order.
# RTF is left out for documents: the export endpoint returns internal errors for it.
EXPORT_FORMATS = {
    "application/vnd.google-apps.document": [
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.oasis.opendocument.text",
        "application/zip",
        "text/plain",
    ],
    "application/vnd.google-apps.spreadsheet": [
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/x-vnd.oasis.opendocument.spreadsheet",
        "application/zip",
        "text/csv",
    ],
    "application/vnd.google-apps.presentation": [
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "application/vnd.oasis.opendocument.presentation",
        "text/plain",
    ],
    "application/vnd.google-apps.drawing": [
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/svg+xml",
    ],
    "application/vnd.google-apps.script": [
        "application/vnd.google-apps.script+json",
    ],
}

# File extension used for each export format
EXPORT_EXTENSIONS = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/vnd.oasis.opendocument.text": ".odt",
    "application/x-vnd.oasis.opendocument.spreadsheet": ".ods",
    "application/vnd.oasis.opendocument.presentation": ".odp",
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/svg+xml": ".svg",
    "application/rtf": ".rtf",
    "text/plain": ".txt",
    "text/csv": ".csv",
    "application/zip": ".zip",
    "application/vnd.google-apps.script+json": ".json",
}

# Native types with no exportable byte representation
UNSUPPORTED_MIME_TYPES = {
    "application/vnd.google-apps.form",
    "application/vnd.google-apps.map",
    "application/vnd.google-apps.site",
}

# Export variants live next to a same-named raw file as "<name>.bak<ext>"
EXPORT_BAK_INFIX = ".bak"

# Redirect marker written for every exported document
REDIRECT_SUFFIX = ".html"

# Pointer files naming an external git repository to check out
REPO_LINK_SUFFIX = ".git.json"

# Defaults for a backup run
DEFAULT_WORKER_COUNT = 3
DEFAULT_BATCH_SIZE = 100
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_MAX_WALK_RETRIES = 10
DEFAULT_CACHE_FILE = "gdrive.cache.jsonl"
