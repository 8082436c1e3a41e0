from dataclasses import dataclass

from .api_client import ApiClient
from .exceptions import NetworkOrParseFailure

CHECK_FILE_PATH = "/storage/check-file"
DEFAULT_UPLOAD_ID = "upload_1762556904994_oggjndlfv"

FOUND = "found"
MISSING = "missing"
INCONCLUSIVE = "inconclusive"


def candidate_paths(upload_id: str) -> list[str]:
    """Spellings of chunk 0's storage path that uploads have used over time."""
    return [
        f"temp_chunks/{upload_id}/chunk_0",
        f"/temp_chunks/{upload_id}/chunk_0",
        f"temp_chunks\\{upload_id}\\chunk_0",
        f"{upload_id}/chunk_0",
        f"/{upload_id}/chunk_0",
        "chunk_0",
    ]


@dataclass
class PathCheck:
    path: str
    status: str
    detail: str = ""


class StorageChecker:
    def __init__(self, client: ApiClient):
        self.client = client

    def check_path(self, path: str) -> PathCheck:
        try:
            response = self.client.post(CHECK_FILE_PATH, {"filePath": path})
        except NetworkOrParseFailure as e:
            return PathCheck(path, INCONCLUSIVE, str(e))
        if not response.succeeded:
            return PathCheck(path, INCONCLUSIVE, f"HTTP {response.status_code}: {response.message}")
        data = response.data if isinstance(response.data, dict) else {}
        if data.get("exists"):
            return PathCheck(path, FOUND, data.get("fileUrl") or data.get("tempFileURL") or "")
        return PathCheck(path, MISSING)

    def check(self, upload_id: str) -> list[PathCheck]:
        print("=" * 60)
        print("🔍 Checking cloud storage paths")
        print("=" * 60)
        print(f"UploadId: {upload_id}")
        print("=" * 60 + "\n")

        results = []
        for path in candidate_paths(upload_id):
            print(f"Path: {path}")
            result = self.check_path(path)
            if result.status == FOUND:
                print(f"   ✅ Exists {result.detail}".rstrip())
            elif result.status == MISSING:
                print("   ❌ Not found")
            else:
                print(f"   ⚠️  Inconclusive: {result.detail}")
            results.append(result)

        self.print_advice(upload_id)
        return results

    def print_advice(self, upload_id: str):
        print("\n💡 Suggestions:")
        print("   1. Look up the actual file path in the cloud storage console")
        print("   2. Check whether the file really exists in cloud storage")
        print("   3. Check the path format (with or without a leading /)")
        print(f'   4. Search for folders containing "{upload_id}"')
