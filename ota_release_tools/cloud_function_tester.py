import datetime
from dataclasses import dataclass

from .api_client import ApiClient
from .config import mask_secret
from .exceptions import NetworkOrParseFailure

SMOKE_TEST_TAG = "[smoke-test]"


@dataclass
class Probe:
    name: str
    method: str
    path: str
    body: dict | None = None


@dataclass
class TestTally:
    passed: int = 0
    failed: int = 0

    # not a test class
    __test__ = False

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def all_passed(self) -> bool:
        return self.failed == 0


def default_probes(now: datetime.datetime | None = None) -> list[Probe]:
    """The fixed battery: list tasks, create one task, read today's stats.

    The create probe writes a real record on every run; its rawText carries
    SMOKE_TEST_TAG so those records can be found afterwards.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return [
        Probe("Test 1: list tasks", "GET", "/tasks"),
        Probe(
            "Test 2: create task",
            "POST",
            "/tasks",
            {
                "rawText": f"{SMOKE_TEST_TAG} finish code review 3 items",
                "taskName": "code review",
                "completionTime": now.isoformat(),
                "quantity": {"items": 3},
                "recordDate": now.date().isoformat(),
                "recordMonth": str(now.month),
                "recordYear": str(now.year),
            },
        ),
        Probe("Test 3: today's stats", "GET", "/stats/today"),
    ]


class CloudFunctionTester:
    """Runs every probe once, in order, and tallies the outcomes."""

    def __init__(self, client: ApiClient, probes: list[Probe] | None = None):
        self.client = client
        self.probes = probes if probes is not None else default_probes()

    def print_config(self):
        print("📋 Test configuration:")
        print(f"  API Key: {mask_secret(self.client.api_key)}")
        print(f"  Base URL: {self.client.base_url}")
        print()

    def run_probe(self, probe: Probe) -> bool:
        print(f"🧪 {probe.name}")
        print(f"   {probe.method} {probe.path}")
        try:
            response = self.client.request(probe.method, probe.path, probe.body)
        except NetworkOrParseFailure as e:
            print(f"   ❌ Error: {e}")
            return False

        if response.succeeded:
            print(f"   ✅ Passed ({response.status_code})")
            print(f"   Response: {response.preview()}")
            return True
        print(f"   ❌ Failed ({response.status_code})")
        print(f"   Error: {response.message}")
        print(f"   Response: {response.preview(limit=2000)}")
        return False

    def run(self) -> TestTally:
        self.print_config()
        tally = TestTally()
        for probe in self.probes:
            if self.run_probe(probe):
                tally.passed += 1
            else:
                tally.failed += 1
            print()
        self.print_summary(tally)
        return tally

    def print_summary(self, tally: TestTally):
        print("📊 Results:")
        print(f"   ✅ Passed: {tally.passed}")
        print(f"   ❌ Failed: {tally.failed}")
        print(f"   Total: {tally.total}")
        if tally.all_passed:
            print("\n🎉 All tests passed! The cloud function is configured correctly.")
        else:
            print("\n⚠️  Some tests failed. Check that:")
            print("   1. the cloud function URL is correct")
            print("   2. the API key is correct")
            print("   3. the cloud function is deployed")
            print("   4. the cloud function environment variables are configured")
