import os
import sys
import platform
import subprocess
from dataclasses import dataclass

from .config import AppConfig, read_version_info
from .exceptions import ArtifactNotFound, BuildFailed

# Where `expo export` drops the Android JS bundle, relative to the output dir
EXPORT_BUNDLE_SUBDIR = os.path.join("_expo", "static", "js", "android")
BUNDLE_EXTENSION = ".js"

# Keep the bundle as plain JS instead of Hermes bytecode
NO_BYTECODE_ENV = {
    "USE_HERMES": "false",
    "EXPO_NO_BYTECODE": "1",
}


@dataclass
class BundleArtifact:
    path: str
    size: int
    version: str
    version_code: int

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)


class JSBundleBuilder:
    """Exports an unminified Android JS bundle with the Expo CLI."""

    def __init__(self, config: AppConfig, runner=subprocess.run):
        self.config = config
        self.runner = runner
        self.output_dir = config.bundle_output_dir
        self.assets_dir = os.path.join(self.output_dir, "assets")
        self.is_windows = platform.system().lower() == "windows"

    def build_command(self) -> list[str]:
        npx = "npx.cmd" if self.is_windows else "npx"
        return [
            npx, "expo", "export",
            "--platform", "android",
            "--output-dir", self.output_dir,
            "--no-minify",
            "--dev",
        ]

    def build_env(self, base_env=None) -> dict:
        env = dict(os.environ if base_env is None else base_env)
        env.update(NO_BYTECODE_ENV)
        return env

    def ensure_output_dirs(self):
        for d in (self.output_dir, self.assets_dir):
            if not os.path.isdir(d):
                os.makedirs(d, exist_ok=True)
                print(f"✅ Created directory: {d}")

    def find_artifact(self) -> str:
        bundle_dir = os.path.join(self.output_dir, EXPORT_BUNDLE_SUBDIR)
        matches = []
        if os.path.isdir(bundle_dir):
            matches = sorted(
                f for f in os.listdir(bundle_dir)
                if f.endswith(BUNDLE_EXTENSION) and os.path.isfile(os.path.join(bundle_dir, f))
            )
        if not matches:
            raise ArtifactNotFound(f"No {BUNDLE_EXTENSION} bundle found in {bundle_dir}")
        if len(matches) > 1:
            print(f"⚠️  {len(matches)} bundles found, using {matches[0]}")
        return os.path.join(bundle_dir, matches[0])

    def _run_bundler(self, cmd: list[str]):
        try:
            result = self.runner(
                cmd,
                cwd=self.config.project_root,
                env=self.build_env(),
                stdout=None,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.config.build_timeout,
            )
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
            raise BuildFailed(f"Bundler timed out after {self.config.build_timeout}s", output=stderr) from e
        except OSError as e:
            raise BuildFailed(f"Could not start bundler: {e}") from e

        if result.stderr:
            sys.stderr.write(result.stderr)
        if result.returncode != 0:
            raise BuildFailed(
                f"Bundler exited with status {result.returncode}",
                output=result.stderr or "",
                returncode=result.returncode,
            )

    def build(self) -> BundleArtifact:
        print("\n=== BUILDING JS BUNDLE ===")
        info = read_version_info(self.config.app_json_path)
        print(f"Version: {info.version} (Build {info.version_code})")
        print(f"Output directory: {self.output_dir}")
        self.ensure_output_dirs()

        cmd = self.build_command()
        print(f"Running: {' '.join(cmd)}\n")
        self._run_bundler(cmd)

        bundle_path = self.find_artifact()
        artifact = BundleArtifact(
            path=bundle_path,
            size=os.path.getsize(bundle_path),
            version=info.version,
            version_code=info.version_code,
        )
        print("\n✅ Bundle built")
        print(f"   Path: {artifact.path}")
        print(f"   Size: {artifact.size_mb:.2f} MB")
        return artifact
