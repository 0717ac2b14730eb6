"""
Tag Catalog — built-in knowledge about tags and well-known activities.

Holds the default tags seeded on first use and the curated lookup tables
the recommender consults before it has learned anything from the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

# Colour used for tag names that no longer resolve to a stored tag.
FALLBACK_COLOR = "#999999"


@dataclass(frozen=True)
class DefaultTag:
    name: str
    color: str


# Seed order is the tie-break order for recommendations
DEFAULT_TAGS: List[DefaultTag] = [
    DefaultTag("Work", "#007AFF"),
    DefaultTag("Study", "#34C759"),
    DefaultTag("Entertainment", "#FF9500"),
    DefaultTag("Social", "#FF2D92"),
    DefaultTag("Health", "#30D158"),
    DefaultTag("Shopping", "#AC39FF"),
    DefaultTag("Travel", "#64D2FF"),
]

# Well-known activity identifiers → default tag name
KNOWN_ACTIVITIES: Dict[str, str] = {
    # Work / productivity
    "com.microsoft.Office.Word": "Work",
    "com.microsoft.Office.Excel": "Work",
    "com.microsoft.Office.PowerPoint": "Work",
    "com.apple.mail": "Work",
    "com.slack.Slack": "Work",
    "com.microsoft.teams": "Work",
    "com.notion.id": "Work",
    "com.evernote.iPhone": "Work",
    # Study / education
    "com.apple.iBooks": "Study",
    "com.duolingo.DuolingoMobile": "Study",
    "com.khanacademy.Khan-Academy": "Study",
    "com.apple.Keynote": "Study",
    "com.apple.Pages": "Study",
    "com.readdle.PDFExpert7": "Study",
    # Entertainment
    "com.netflix.Netflix": "Entertainment",
    "com.tencent.QQMusic": "Entertainment",
    "com.apple.tv": "Entertainment",
    "com.spotify.client": "Entertainment",
    "com.youku.YouKu": "Entertainment",
    "com.bilibili.app": "Entertainment",
    "com.tencent.xin.game": "Entertainment",
    # Social
    "com.tencent.xin": "Social",
    "com.sina.weibo": "Social",
    "com.zhihu.ios": "Social",
    "com.tencent.mqq": "Social",
    "com.facebook.Facebook": "Social",
    "com.instagram.Instagram": "Social",
    "com.twitter.twitter": "Social",
    # Health / fitness
    "com.apple.Health": "Health",
    "com.nike.nikeplus-gps": "Health",
    "com.myfitnesspal.MyFitnessPal": "Health",
    "com.apple.Fitness": "Health",
    "com.strava.stravarun": "Health",
    "com.calm.ios": "Health",
    # Shopping
    "com.taobao.taobao4iphone": "Shopping",
    "com.tmall.tmall": "Shopping",
    "com.jingdong.app.mall": "Shopping",
    "com.apple.AppStore": "Shopping",
    "com.amazon.Amazon": "Shopping",
    "com.meituan.imeituan": "Shopping",
    # Travel / transportation
    "com.autonavi.amap": "Travel",
    "com.baidu.map": "Travel",
    "com.didi.passenger": "Travel",
    "com.uber.Uber": "Travel",
    "com.apple.Maps": "Travel",
    "com.ctrip.wireless": "Travel",
}

# Platform-reported activity categories → default tag name
SYSTEM_CATEGORIES: Dict[str, str] = {
    "productivity": "Work",
    "business": "Work",
    "developer": "Work",
    "education": "Study",
    "reference": "Study",
    "entertainment": "Entertainment",
    "games": "Entertainment",
    "social": "Social",
    "health": "Health",
    "lifestyle": "Health",
    "shopping": "Shopping",
    "finance": "Shopping",
    "travel": "Travel",
    "navigation": "Travel",
}


def known_tag_for(activity_identifier: str) -> Optional[str]:
    return KNOWN_ACTIVITIES.get(activity_identifier)


def tag_for_category(category_hint: Optional[str]) -> Optional[str]:
    if not category_hint:
        return None
    return SYSTEM_CATEGORIES.get(category_hint.strip().lower())


def default_color(name: str) -> Optional[str]:
    for entry in DEFAULT_TAGS:
        if entry.name == name:
            return entry.color
    return None
