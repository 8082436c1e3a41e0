import subprocess
from dataclasses import dataclass

from .config import AppConfig
from .exceptions import ProbeInconclusive

BUNDLE_FILES = [
    "files/js-bundles/index.android.js",
    "files/js-bundles/index.android.hbc",
]

EXISTS_MARK = "EXISTS"
MISSING_MARK = "MISSING"

# adb / run-as / su output that means the answer is unknown, not "missing"
INCONCLUSIVE_MARKERS = (
    "not debuggable",
    "permission denied",
    "not found",
    "no devices",
    "device offline",
    "unauthorized",
    "unknown package",
)


def root_bundle_paths(package_name: str) -> list[str]:
    return [
        f"/data/data/{package_name}/files/js-bundles/index.android.js",
        f"/data/user/0/{package_name}/files/js-bundles/index.android.js",
    ]


@dataclass
class ProbeResult:
    path: str
    status: str  # "exists" | "missing" | "inconclusive"
    size: int | None = None
    detail: str = ""


class DeviceProbe:
    """Best-effort checks for downloaded bundles on an adb-connected device."""

    def __init__(self, config: AppConfig, runner=subprocess.run):
        self.config = config
        self.package_name = config.package_name
        self.runner = runner

    def shell(self, remote_cmd: str) -> str:
        """Run one command on the device; raises ProbeInconclusive if adb itself fails."""
        try:
            result = self.runner(
                ["adb", "shell", remote_cmd],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.config.device_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProbeInconclusive(f"timed out after {self.config.device_timeout}s") from e
        except OSError as e:
            raise ProbeInconclusive(f"could not run adb: {e}") from e
        output = (result.stdout or "").strip()
        for line in output.splitlines():
            if any(marker in line.lower() for marker in INCONCLUSIVE_MARKERS):
                raise ProbeInconclusive(line.strip())
        if result.returncode != 0:
            last_line = output.splitlines()[-1].strip() if output else "no output"
            raise ProbeInconclusive(f"exit status {result.returncode}: {last_line}")
        return output

    def run_as(self, command: str) -> str:
        return self.shell(f"run-as {self.package_name} {command}")

    def as_root(self, command: str) -> str:
        escaped = command.replace('"', '\\"')
        return self.shell(f'su -c "{escaped}"')

    def check_debuggable(self) -> bool | None:
        """True if run-as works, False if the app is not debuggable, None if unknown."""
        try:
            cwd = self.run_as("pwd")
        except ProbeInconclusive as e:
            if "not debuggable" in str(e).lower():
                return False
            print(f"⚠️  Could not reach the app directory: {e}")
            return None
        if not cwd.startswith("/"):
            print(f"⚠️  Unexpected run-as reply: {cwd or 'no output'}")
            return None
        print(f"✅ App working directory: {cwd}")
        return True

    def probe_path(self, path: str, *, use_root: bool = False) -> ProbeResult:
        execute = self.as_root if use_root else self.run_as
        check = f"test -f '{path}' && echo {EXISTS_MARK} || echo {MISSING_MARK}"
        try:
            # The fallback echo must run inside run-as/su, never after it fails
            output = self.as_root(check) if use_root else self.run_as(f'sh -c "{check}"')
        except ProbeInconclusive as e:
            return ProbeResult(path, "inconclusive", detail=str(e))

        if output == EXISTS_MARK:
            size = None
            try:
                size = int(execute(f"stat -c %s '{path}'").split()[-1])
            except (ProbeInconclusive, ValueError, IndexError):
                pass
            return ProbeResult(path, "exists", size=size)
        if output == MISSING_MARK:
            return ProbeResult(path, "missing")
        return ProbeResult(path, "inconclusive", detail=output or "no output")

    def probe_paths(self, paths: list[str], *, use_root: bool = False) -> list[ProbeResult]:
        results = []
        for path in paths:
            result = self.probe_path(path, use_root=use_root)
            if result.status == "exists":
                print(f"✅ {path}")
                if result.size is not None:
                    print(f"   Size: {result.size} bytes ({result.size / 1024 / 1024:.2f} MB)")
            elif result.status == "missing":
                print(f"❌ {path} - missing")
            else:
                print(f"⚠️  {path} - inconclusive ({result.detail})")
            results.append(result)
        return results

    def list_bundle_dir(self):
        try:
            listing = self.run_as("ls -la files/js-bundles/")
        except ProbeInconclusive as e:
            print(f"⚠️  Could not list js-bundles: {e}")
            return
        if "No such file" in listing:
            print("⚠️  js-bundles directory does not exist")
        else:
            print("js-bundles contents:")
            print(listing)

    def run(self) -> list[ProbeResult]:
        print("=" * 40)
        print("  Checking downloaded bundles on device")
        print("=" * 40)
        print(f"Package: {self.package_name}\n")

        debuggable = self.check_debuggable()
        if debuggable:
            print()
            self.list_bundle_dir()
            print()
            results = self.probe_paths(BUNDLE_FILES)
        else:
            if debuggable is False:
                print("❌ The app is not debuggable, run-as is unavailable")
            print("Trying absolute paths (requires root):")
            results = self.probe_paths(root_bundle_paths(self.package_name), use_root=True)
        print()
        self.print_advice()
        return results

    def print_advice(self):
        pkg = self.package_name
        print("💡 Suggestions:")
        print("   Option 1 (recommended): read the paths from logcat")
        print("     adb logcat | grep MainApplication")
        print("     then restart the app and look for the bundle path lines")
        print("   Option 2: enable debugging")
        print('     add android:debuggable="true" to <application> in AndroidManifest.xml')
        print("     then rebuild and reinstall the APK")
        print("   Option 3: use root (rooted devices only)")
        print("     adb root")
        print(f"     adb shell ls -la /data/user/0/{pkg}/files/")
        print(f"     adb shell ls -la /data/user/0/{pkg}/files/js-bundles/")
