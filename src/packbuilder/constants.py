
# --- Log and Debug ---
# Short aliases for module names to keep CLI/env concise
LOG_ALIAS_MAP = {
    "lifecycle": "packbuilder.builder.lifecycle",
    "lc": "packbuilder.builder.lifecycle",
    "phase": "packbuilder.builder.phase",
    "ph": "packbuilder.builder.phase",
    "provider": "packbuilder.builder.provider",
    "prv": "packbuilder.builder.provider",
    "factory": "packbuilder.factories",
    "fct": "packbuilder.factories",
    "runtime": "packbuilder.bases.runtime",
    "rt": "packbuilder.bases.runtime",
    "keychain": "packbuilder.bases.keychains",
    "auth": "packbuilder.auth",
    "conf": "packbuilder.config",
}

# Top-level modules within packbuilder for auto-prefixing
KNOWN_TOP_MODULES = {
    "builder",
    "bases",
    "auth",
    "rules",
    "datacls",
    "utils",
    "exceptions",
    "config",
    "factories",
}

LOG_LEVELS_ENV = "PACKB_LOG_LEVELS"

# --- Lifecycle container filesystem ---
LIFECYCLE_BIN_DIR = "/cnb/lifecycle"
LAYERS_DIR = "/layers"
APP_DIR = "/workspace"
CACHE_DIR = "/cache"
LAUNCH_CACHE_DIR = "/launch-cache"
PLATFORM_DIR = "/platform"

DOCKER_SOCKET_BIND = "/var/run/docker.sock:/var/run/docker.sock"
ROOT_USER = "root"
HOST_NETWORK = "host"

# --- Phase names ---
DETECTOR = "detector"
RESTORER = "restorer"
ANALYZER = "analyzer"
BUILDER = "builder"
EXPORTER = "exporter"

# --- Labels and environment ---
TOOL_NAME = "packbuilder"
AUTHOR_LABEL = "author"
REGISTRY_AUTH_ENV = "CNB_REGISTRY_AUTH"
USER_ID_ENV = "CNB_USER_ID"
GROUP_ID_ENV = "CNB_GROUP_ID"
BUILDER_METADATA_LABEL = "io.buildpacks.builder.metadata"

# (upper-case, lower-case) variable names for each proxy setting
PROXY_ENV = {
    "http_proxy": ("HTTP_PROXY", "http_proxy"),
    "https_proxy": ("HTTPS_PROXY", "https_proxy"),
    "no_proxy": ("NO_PROXY", "no_proxy"),
}

# -log-level debug is understood by lifecycles newer than this
LOG_LEVEL_RULE = ">0.4.0"

# --- Volumes ---
LAYERS_VOLUME_PREFIX = "pack-layers-"
APP_VOLUME_PREFIX = "pack-app-"
CACHE_VOLUME_PREFIX = "pack-cache-"
BUILD_CACHE_SUFFIX = ".build"
LAUNCH_CACHE_SUFFIX = ".launch"

# --- Registries ---
DEFAULT_REGISTRY = "index.docker.io"
DOCKER_HUB_ALIASES = {
    "index.docker.io",
    "docker.io",
    "registry-1.docker.io",
    "https://index.docker.io/v1/",
    "https://index.docker.io/v1",
    "http://index.docker.io/v1/",
}
DOCKER_CONFIG_ENV = "DOCKER_CONFIG"
DOCKER_CONFIG_FILENAME = "config.json"

# Archives copied into phase containers get a fixed timestamp (1980-01-01T00:00:01Z)
NORMALIZED_MTIME = 315532801
