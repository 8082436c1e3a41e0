import os
import re
import glob
import shutil
import subprocess

from .config import AppConfig
from .manifest_utils import UpdateSettings, read_manifest, read_update_settings


def _version_key(path: str):
    name = os.path.basename(os.path.dirname(path))
    return tuple(int(x) for x in re.findall(r"\d+", name)) or (0,)


class ChannelChecker:
    """Reports which update channel a manifest or a built APK carries."""

    def __init__(self, config: AppConfig, runner=subprocess.run, environ=None):
        self.config = config
        self.runner = runner
        self.environ = os.environ if environ is None else environ

    def find_aapt(self) -> str | None:
        android_home = self.environ.get("ANDROID_HOME") or self.environ.get("ANDROID_SDK_ROOT")
        if android_home:
            exe = "aapt.exe" if os.name == "nt" else "aapt"
            candidates = glob.glob(os.path.join(android_home, "build-tools", "*", exe))
            if candidates:
                return sorted(candidates, key=_version_key)[-1]
        return shutil.which("aapt")

    def check_manifest(self) -> UpdateSettings | None:
        manifest_path = self.config.manifest_path
        if not os.path.isfile(manifest_path):
            print(f"AndroidManifest.xml not found at {manifest_path}, skipping.")
            return None
        print("📋 Reading AndroidManifest.xml")
        print(f"   File: {manifest_path}\n")
        settings = read_update_settings(read_manifest(manifest_path))
        if settings.channel is not None:
            print(f'✅ Channel: "{settings.channel}"')
        else:
            print("❌ EXPO_UPDATE_CHANNEL meta-data not found")
            print("   The channel has not been injected into AndroidManifest.xml")
        if settings.enabled is not None:
            print(f"📋 Updates enabled: {settings.enabled}")
        if settings.runtime_version is not None:
            print(f"📋 Runtime Version: {settings.runtime_version}")
        print()
        return settings

    def check_apk(self, apk_path: str) -> UpdateSettings | None:
        """Dump the compiled manifest with aapt; None means the check was inconclusive."""
        print("📋 Reading APK")
        print(f"   APK: {apk_path}\n")
        aapt = self.find_aapt()
        if not aapt:
            print("⚠️  aapt not found")
            print("   Install the Android SDK build-tools and set ANDROID_HOME")
            return None
        try:
            result = self.runner(
                [aapt, "dump", "xmltree", apk_path, "AndroidManifest.xml"],
                capture_output=True,
                text=True,
                timeout=60,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            print(f"⚠️  Could not run aapt: {e}")
            return None
        if result.returncode != 0:
            print(f"⚠️  aapt exited with status {result.returncode}")
            if result.stderr:
                print(f"   {result.stderr.strip()}")
            return None

        settings = UpdateSettings(
            channel=_xmltree_value(result.stdout, "EXPO_UPDATE_CHANNEL"),
            enabled=_xmltree_value(result.stdout, "expo.modules.updates.ENABLED"),
            runtime_version=_xmltree_value(result.stdout, "RUNTIME_VERSION"),
        )
        if settings.channel is not None:
            print(f'✅ Channel: "{settings.channel}"')
        else:
            print("❌ EXPO_UPDATE_CHANNEL not found in the APK")
        if settings.runtime_version is not None:
            print(f"📋 Runtime Version: {settings.runtime_version}")
        print()
        return settings

    def print_runtime_hint(self):
        print("📋 Reading the channel at runtime")
        print("   Run this inside the app:\n")
        print('   import * as Updates from "expo-updates";')
        print('   console.log("Channel:", Updates.channel);')
        print('   console.log("Runtime Version:", Updates.runtimeVersion);')
        print('   console.log("Update ID:", Updates.updateId);\n')


def _xmltree_value(dump: str, marker: str) -> str | None:
    """Pull the android:value that follows the named meta-data in `aapt dump xmltree` output."""
    m = re.search(
        re.escape(marker) + r'[^\n]*\n(?:[^\n]*\n){0,3}?[^\n]*android:value[^\n]*="([^"]*)"',
        dump,
    )
    if m:
        return m.group(1)
    m = re.search(re.escape(marker) + r'.*?value="([^"]*)"', dump, re.I)
    return m.group(1) if m else None
