import json

import pytest
import requests

from ota_release_tools.config import AppConfig

MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android" xmlns:tools="http://schemas.android.com/tools">
  <uses-permission android:name="android.permission.INTERNET"/>
  <application android:name=".MainApplication" android:label="@string/app_name" android:allowBackup="true">
    <meta-data android:name="expo.modules.updates.ENABLED" android:value="true"/>
    <meta-data android:name="expo.modules.updates.EXPO_RUNTIME_VERSION" android:value="@string/expo_runtime_version"/>
    <activity android:name=".MainActivity" android:exported="true">
      <intent-filter>
        <action android:name="android.intent.action.MAIN"/>
      </intent-filter>
    </activity>
  </application>
</manifest>
"""


@pytest.fixture
def manifest_text():
    return MANIFEST


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        api_key="sk-test-0123456789abcdef",
        base_url="https://api.example.test/task-collection-api",
        update_service_url="https://api.example.test/app-update-api",
        update_channel="preview",
        project_root=str(tmp_path),
    )


@pytest.fixture
def app_json(tmp_path):
    path = tmp_path / "app.json"
    path.write_text(
        json.dumps({"expo": {"name": "task-collection", "version": "1.2.3", "android": {"versionCode": 17}}}),
        encoding="utf-8",
    )
    return path


def make_response(status_code: int, payload=None, text: str | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    body = text if text is not None else json.dumps(payload)
    response._content = body.encode("utf-8")
    return response


class FakeScraper:
    """Stands in for a cloudscraper session; replays queued responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
