"""Shared fixtures for gateway tests."""

import pytest

SAMPLE_CSV = """Title,URL,Published At,Description,Tags
Dillon Gabriel Touchdown,https://www.youtube.com/watch?v=dg1,2024-01-01T12:00:00Z,"Oregon rivalry highlight!",highlights
Season Recap,https://youtu.be/rec2,2023-06-01,Full season in ten minutes,recap
Mystery Clip,https://example.com/clip,not a date,,misc
"""


@pytest.fixture
def rivalry_csv(tmp_path):
    """Dataset with five rivalry videos among ten unrelated ones."""
    lines = ["title,url,published_at,description,tags"]
    for i in range(10):
        lines.append(f"Practice Day {i},https://youtu.be/p{i},2023-0{i % 9 + 1}-01,training session,practice")
    for i in range(5):
        lines.append(f"Rivalry Game {i},https://youtu.be/r{i},2024-0{i + 1}-01,game day,football")
    path = tmp_path / "rivalry.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def dataset_csv(tmp_path):
    path = tmp_path / "videos.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path


@pytest.fixture
def settings(dataset_csv, tmp_path):
    """Settings with a local dataset, a test secret and auditing off."""
    from shared.config import (
        DatasetSettings,
        KeepaliveSettings,
        ServerSettings,
        Settings,
        YouTubeSettings,
    )

    return Settings(
        environment="test",
        server=ServerSettings(
            auth_token="test-secret",
            enable_audit=False,
            audit_log_path=str(tmp_path / "audit.log"),
        ),
        youtube=YouTubeSettings(api_key="yt-key"),
        dataset=DatasetSettings(csv_url=str(dataset_csv)),
        keepalive=KeepaliveSettings(url=None),
    )
