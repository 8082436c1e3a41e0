import json

from .config import VersionInfo, read_app_json
from .exceptions import StructuralMismatch, ToolError

VERSION_PARTS = ("major", "minor", "patch")


def increment_version(version: str, part: str = "patch") -> str:
    try:
        major, minor, patch = (int(p) for p in version.split("."))
    except ValueError as e:
        raise StructuralMismatch(f"Version is not MAJOR.MINOR.PATCH: {version!r}") from e
    if part == "major":
        return f"{major + 1}.0.0"
    if part == "minor":
        return f"{major}.{minor + 1}.0"
    if part == "patch":
        return f"{major}.{minor}.{patch + 1}"
    raise ToolError(f"Unknown version part: {part}")


def bump_version(app_json_path: str, kind: str, part: str = "patch", github_output: str | None = None) -> VersionInfo:
    """Bump app.json for an APK build ("build") or an OTA release ("update").

    A build always increments versionCode and rolls the patch version every
    tenth build. An update increments `part` of the version and leaves
    versionCode alone.
    """
    app = read_app_json(app_json_path)
    expo = app["expo"]
    current_version = expo.get("version") or "1.0.0"
    raw_code = (expo.get("android") or {}).get("versionCode") or 1
    try:
        current_code = int(raw_code)
    except (TypeError, ValueError) as e:
        raise StructuralMismatch(f"expo.android.versionCode is not an integer: {raw_code!r}") from e

    if kind == "build":
        new_code = current_code + 1
        new_version = increment_version(current_version, "patch") if new_code % 10 == 0 else current_version
        print("[APK build] version update:")
        print(f"  version: {current_version} -> {new_version}")
        print(f"  versionCode: {current_code} -> {new_code}")
    elif kind == "update":
        new_code = current_code
        new_version = increment_version(current_version, part)
        print("[OTA update] version update:")
        print(f"  version: {current_version} -> {new_version} ({part})")
        print(f"  versionCode: {current_code} (unchanged)")
    else:
        raise ToolError(f"Unknown update type: {kind}")

    expo["version"] = new_version
    if not isinstance(expo.get("android"), dict):
        expo["android"] = {}
    expo["android"]["versionCode"] = new_code
    with open(app_json_path, "w", encoding="utf-8") as f:
        f.write(json.dumps(app, indent=2, ensure_ascii=False) + "\n")

    if github_output:
        with open(github_output, "a", encoding="utf-8") as f:
            f.write(f"version={new_version}\n")
            f.write(f"versionCode={new_code}\n")

    return VersionInfo(version=new_version, version_code=new_code)
