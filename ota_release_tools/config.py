import os
import json
from dataclasses import dataclass

from .exceptions import MissingCredential, MissingFile, StructuralMismatch

# Cloud endpoints
DEFAULT_BASE_URL = "https://cloud1-4gee45pq61cd6f19-1259499058.ap-shanghai.app.tcloudbase.com/task-collection-api"
DEFAULT_UPDATE_SERVICE_URL = "https://cloud1-4gee45pq61cd6f19-1259499058.ap-shanghai.app.tcloudbase.com/app-update-api"
DEFAULT_UPDATE_CHANNEL = "preview"

# Environment variable names, highest priority first
API_KEY_ENV = ("EXPO_PUBLIC_API_KEY", "API_KEY")
BASE_URL_ENV = ("EXPO_PUBLIC_API_BASE_URL", "API_BASE_URL")
UPDATE_SERVICE_URL_ENV = ("UPDATE_SERVICE_URL",)
UPDATE_CHANNEL_ENV = ("EAS_UPDATE_CHANNEL",)
PROJECT_ROOT_ENV = ("OTA_PROJECT_ROOT",)

# App-specific
PACKAGE_NAME = "com.lcy.taskcollection"
CHANNEL_META_NAME = "expo.modules.updates.EXPO_UPDATE_CHANNEL"
ENABLED_META_NAME = "expo.modules.updates.ENABLED"
RUNTIME_VERSION_META_NAME = "expo.modules.updates.RUNTIME_VERSION"

# Project layout, relative to the app root
APP_JSON_FILENAME = "app.json"
MANIFEST_RELPATH = os.path.join("android", "app", "src", "main", "AndroidManifest.xml")
BUNDLE_OUTPUT_DIRNAME = "js-bundles"

REQUEST_TIMEOUT = 30
BUILD_TIMEOUT = 600
DEVICE_TIMEOUT = 3


def first_non_empty(*values, default=None):
    """Return the first value that is neither None nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return default


def mask_secret(value: str) -> str:
    if not value:
        return "(not set)"
    if len(value) <= 12:
        return "****"
    return f"{value[:8]}...{value[-4:]}"


@dataclass(frozen=True)
class VersionInfo:
    version: str
    version_code: int


@dataclass(frozen=True)
class AppConfig:
    """Settings resolved once at process start and handed to each component."""

    api_key: str
    base_url: str
    update_service_url: str
    update_channel: str
    project_root: str
    package_name: str = PACKAGE_NAME
    request_timeout: float = REQUEST_TIMEOUT
    build_timeout: float = BUILD_TIMEOUT
    device_timeout: float = DEVICE_TIMEOUT

    @property
    def app_json_path(self) -> str:
        return os.path.join(self.project_root, APP_JSON_FILENAME)

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.project_root, MANIFEST_RELPATH)

    @property
    def bundle_output_dir(self) -> str:
        return os.path.join(self.project_root, BUNDLE_OUTPUT_DIRNAME)

    def require_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredential(
                "API key not found",
                hint=(
                    f"Set the environment variable: export {API_KEY_ENV[0]}=your-api-key\n"
                    f"or add {API_KEY_ENV[0]}=your-api-key to the .env file"
                ),
            )
        return self.api_key


def _lookup(environ, names) -> str | None:
    return first_non_empty(*(environ.get(n) for n in names))


def resolve_config(environ=None, project_root: str | None = None) -> AppConfig:
    env = os.environ if environ is None else environ
    root = first_non_empty(project_root, _lookup(env, PROJECT_ROOT_ENV), default=os.getcwd())
    return AppConfig(
        api_key=_lookup(env, API_KEY_ENV) or "",
        base_url=first_non_empty(_lookup(env, BASE_URL_ENV), default=DEFAULT_BASE_URL).rstrip("/"),
        update_service_url=first_non_empty(
            _lookup(env, UPDATE_SERVICE_URL_ENV), default=DEFAULT_UPDATE_SERVICE_URL
        ).rstrip("/"),
        update_channel=first_non_empty(_lookup(env, UPDATE_CHANNEL_ENV), default=DEFAULT_UPDATE_CHANNEL),
        project_root=os.path.abspath(root),
    )


def read_app_json(app_json_path: str) -> dict:
    if not os.path.isfile(app_json_path):
        raise MissingFile(f"app.json not found at {app_json_path}")
    with open(app_json_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise StructuralMismatch(f"app.json is not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("expo"), dict):
        raise StructuralMismatch(f"app.json has no 'expo' section: {app_json_path}")
    return data


def read_version_info(app_json_path: str) -> VersionInfo:
    """Return the version name and Android versionCode declared in app.json."""
    expo = read_app_json(app_json_path)["expo"]
    version = expo.get("version")
    version_code = (expo.get("android") or {}).get("versionCode")
    if not version or version_code is None:
        raise StructuralMismatch("app.json is missing expo.version or expo.android.versionCode")
    try:
        return VersionInfo(version=str(version), version_code=int(version_code))
    except (TypeError, ValueError) as e:
        raise StructuralMismatch(f"expo.android.versionCode is not an integer: {version_code!r}") from e
