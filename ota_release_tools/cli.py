import os
import sys

from dotenv import find_dotenv, load_dotenv

from .api_client import ApiClient
from .bundle_builder import JSBundleBuilder
from .channel_checker import ChannelChecker
from .cloud_function_tester import CloudFunctionTester
from .config import AppConfig, resolve_config
from .device_probe import DeviceProbe
from .exceptions import BuildFailed, MissingCredential, MissingFile, ToolError
from .manifest_utils import inject_update_channel
from .storage_checker import DEFAULT_UPLOAD_ID, StorageChecker
from .version_manager import VERSION_PARTS, bump_version


def load_config() -> AppConfig:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        # Variables already in the environment take precedence over .env
        load_dotenv(dotenv_path)
    return resolve_config()


def _positional(argv) -> list[str]:
    args = list(sys.argv[1:] if argv is None else argv)
    return [a for a in args if a and not a.startswith("-")]


def _run(action) -> int:
    """Run one command; any ToolError becomes exit status 1."""
    try:
        action()
    except MissingCredential as e:
        print(f"❌ Error: {e}")
        if e.hint:
            print(e.hint)
        return 1
    except BuildFailed as e:
        print(f"\n❌ Bundle build failed: {e}")
        if e.output:
            print(e.output.rstrip()[-2000:])
        return 1
    except ToolError as e:
        print(f"❌ {e}")
        if getattr(e, "hint", ""):
            print(e.hint)
        return 1
    return 0


def inject_channel_main(argv=None) -> int:
    config = load_config()

    def action():
        try:
            inject_update_channel(config.manifest_path, config.update_channel)
        except MissingFile as e:
            raise MissingFile(str(e), hint="   Make sure you have run: npx expo prebuild --platform android") from e

    return _run(action)


def check_channel_main(argv=None) -> int:
    config = load_config()
    args = _positional(argv)
    apk_path = args[0] if args else None

    def action():
        print("🔍 Checking the update channel...\n")
        checker = ChannelChecker(config)
        checker.check_manifest()
        if apk_path:
            if os.path.isfile(apk_path):
                checker.check_apk(apk_path)
            else:
                print(f"⚠️  APK not found: {apk_path}\n")
        checker.print_runtime_hint()
        print("📝 If no channel was found:")
        print("   1. the APK was built without injecting the channel")
        print("   2. rebuild the APK after running ota-inject-channel")
        print("   3. or build with EAS Build, which sets the channel itself")

    return _run(action)


def build_bundle_main(argv=None) -> int:
    config = load_config()

    def action():
        artifact = JSBundleBuilder(config).build()
        print("\n" + "=" * 50)
        print("=== BUILD COMPLETE ===")
        print(f"Bundle: {artifact.path}")
        print(f"Version: {artifact.version} (Build {artifact.version_code})")
        print(f"Size: {artifact.size_mb:.2f} MB")
        print("=" * 50)

    return _run(action)


def smoke_test_main(argv=None) -> int:
    config = load_config()

    def action():
        client = ApiClient(config.base_url, config.require_api_key(), timeout=config.request_timeout)
        CloudFunctionTester(client).run()

    return _run(action)


def check_storage_main(argv=None) -> int:
    config = load_config()
    args = _positional(argv)
    upload_id = args[0] if args else DEFAULT_UPLOAD_ID

    def action():
        client = ApiClient(config.base_url, config.require_api_key(), timeout=config.request_timeout)
        StorageChecker(client).check(upload_id)

    return _run(action)


def probe_device_main(argv=None) -> int:
    config = load_config()
    return _run(lambda: DeviceProbe(config).run())


def bump_version_main(argv=None) -> int:
    config = load_config()
    args = _positional(argv)
    if not args or args[0] not in ("build", "update"):
        print("Usage:")
        print("  APK build:  ota-bump-version build")
        print("  OTA update: ota-bump-version update [patch|minor|major]")
        return 1
    kind = args[0]
    part = args[1] if len(args) > 1 else "patch"
    if part not in VERSION_PARTS:
        print(f"❌ Unknown version part: {part}")
        return 1

    def action():
        info = bump_version(config.app_json_path, kind, part, github_output=os.environ.get("GITHUB_OUTPUT"))
        print(f"✅ Version updated: v{info.version} (Build {info.version_code})")

    return _run(action)


COMMANDS = {
    "inject-channel": (inject_channel_main, "Upsert EAS_UPDATE_CHANNEL into AndroidManifest.xml"),
    "check-channel": (check_channel_main, "[apk] Show the update channel of the manifest / an APK"),
    "build-bundle": (build_bundle_main, "Export the unminified Android JS bundle"),
    "smoke-test": (smoke_test_main, "Run the cloud function smoke tests"),
    "check-storage": (check_storage_main, "[uploadId] Check candidate storage paths of an upload"),
    "probe-device": (probe_device_main, "Look for downloaded bundles on the adb device"),
    "bump-version": (bump_version_main, "<build|update> [patch|minor|major] Bump app.json"),
}


def print_usage():
    print("Usage: python main.py <command> [arg] [-h|--help]")
    print("")
    print("Commands:")
    for name, (_fn, description) in COMMANDS.items():
        print(f"  {name:<16}{description}")
    print("")
    print("Configuration comes from the environment (or a .env file):")
    print("  EXPO_PUBLIC_API_KEY / API_KEY       API key for cloud function calls")
    print("  EXPO_PUBLIC_API_BASE_URL / API_BASE_URL")
    print("  UPDATE_SERVICE_URL                  App update service URL")
    print("  EAS_UPDATE_CHANNEL                  Channel to inject (default: preview)")
    print("  OTA_PROJECT_ROOT                    App project root (default: current directory)")


def main(argv=None) -> int:
    args = [a for a in (sys.argv[1:] if argv is None else argv) if a]
    if not args or args[0] in ("-h", "--help") or args[0] not in COMMANDS:
        if args and args[0] not in ("-h", "--help"):
            print(f"Unknown command: {args[0]}\n")
            print_usage()
            return 1
        print_usage()
        return 0
    fn, _description = COMMANDS[args[0]]
    return fn(args[1:])
