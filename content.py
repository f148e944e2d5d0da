import os
import json
import calendar

basedir = os.path.abspath(os.path.dirname(__file__))
CONTENT_FILE = os.path.join(basedir, "content.json")

# ── Declarations (one per day) ────────────────────────────────────────────────
DECLARATIONS = [
    "나는 하나님의 사랑받는 자녀입니다",
    "나는 하나님의 형상입니다",
    "나는 하늘나라 상속자입니다",
    "나는 하늘나라 시민권자입니다",
    "나는 하나님께 시선을 두는 자녀입니다",
    "나는 그리스도의 심판대에서 생각합니다",
    "나는 하나님 보시기에 심히 좋은 존재입니다",
    "나는 예수님만큼 가치 있는 존재입니다",
    "나는 주안에서 기뻐하는 자입니다",
    "나는 새사람의 정체성으로 살아갑니다",
    "나는 감사로 문을 열어갑니다",
    "나는 이기며 승리하는 권세가 있습니다",
    "나는 말과 혀로 가정을 살리는 자입니다",
    "나는 그리스도와 연합된 존재입니다",
    "나는 삶을 인도하시는 하나님을 신뢰합니다",
    "나는 영혼이 잘됨 같이 범사도 잘됩니다",
    "나는 믿음을 선포하는 자입니다",
    "나는 감사로 상황을 돌파합니다",
    "나는 어떤 상황에서도 하나님을 찬양합니다",
    "나는 누구보다 존귀한 자녀입니다",
    "나는 예수님과 함께 걸어갑니다",
    "나는 어둠을 몰아내는 빛입니다",
    "나는 기도하며 낙심하지 않는 자입니다",
    "나는 빛 가운데 걸어가는 자녀입니다",
    "나는 기도 응답을 풍성히 누립니다",
    "나는 소망 가운데 인내합니다",
    "나는 내 생각보다 크신 하나님의 계획을 신뢰합니다",
    "나는 하나님의 말씀에 삶의 기준을 두는 자녀입니다",
    "나는 하나님의 평강을 누리는 자녀입니다",
    "나는 예수님처럼 용서하는 자녀입니다",
    "나는 가정의 영적 제사장입니다.",
]

# ── Prayer topics: five-day rotation, overridden on special days ──────────────
PRAYER_TOPICS = [
    "담임목사님을 위해",
    "특새를 위해",
    "청장년을 위해",
    "가정을 위해",
    "교회를 위해",
]

SPECIAL_PRAYER_TOPICS = {
    21: "청년부 부흥을 위해 특별히 기도합니다",
}


class ChallengeContent:
    def __init__(self, declarations=None, prayer_topics=None, special_prayer_topics=None):
        self.declarations = list(declarations or DECLARATIONS)
        self.prayer_topics = list(prayer_topics or PRAYER_TOPICS)
        if special_prayer_topics is None:
            special_prayer_topics = SPECIAL_PRAYER_TOPICS
        self.special_prayer_topics = dict(special_prayer_topics)

    @property
    def day_count(self):
        return len(self.declarations)

    def declaration_for(self, day):
        return self.declarations[day - 1]

    def prayer_topic_for(self, day):
        if day in self.special_prayer_topics:
            return self.special_prayer_topics[day]
        return self.prayer_topics[(day - 1) % len(self.prayer_topics)]

    def to_json(self):
        return {
            "declarations": self.declarations,
            "prayerTopics": self.prayer_topics,
            "specialPrayerTopics": {str(k): v for k, v in self.special_prayer_topics.items()},
        }

    @classmethod
    def from_json(cls, data):
        special = data.get("specialPrayerTopics")
        if special is not None:
            special = {int(k): v for k, v in special.items()}
        return cls(
            declarations=data.get("declarations"),
            prayer_topics=data.get("prayerTopics"),
            special_prayer_topics=special,
        )


def load_content(path=CONTENT_FILE):
    """Load content.json when present, otherwise the built-in content."""
    if not os.path.exists(path):
        return ChallengeContent()
    with open(path, "r", encoding="utf-8") as f:
        return ChallengeContent.from_json(json.load(f))


def leading_blank_days(year, month):
    """Number of empty cells before day 1 in a Sunday-first calendar grid."""
    # calendar.weekday() is Monday=0; shift so Sunday=0
    return (calendar.weekday(year, month, 1) + 1) % 7
