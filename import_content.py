import os
import re
import sys
import json
import difflib

import requests

from content import CONTENT_FILE, ChallengeContent

# ----------------------------
# CONFIG
# ----------------------------
CONTENT_URL = os.environ.get("CONTENT_URL", "")
OUTPUT_FILE = CONTENT_FILE
SIMILARITY_THRESHOLD = 0.95  # adjust between 0.90–0.98
REQUEST_TIMEOUT = 30
MAX_DAYS = 31


class ContentError(Exception):
    pass


# ----------------------------
# Normalize spacing
# ----------------------------
def normalize_text(text):
    text = text.strip()
    text = re.sub(r'\s+', ' ', text)
    return text


# ----------------------------
# Fetch the content sheet
# ----------------------------
def fetch_content(url):
    print(f"Downloading challenge content from {url}...")
    response = requests.get(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return response.json()


# ----------------------------
# Remove duplicates & near duplicates
# ----------------------------
def deduplicate_lines(lines):
    print("Removing duplicates...")
    unique = []

    for line in lines:
        is_duplicate = False
        for existing in unique:
            similarity = difflib.SequenceMatcher(None, line, existing).ratio()
            if similarity >= SIMILARITY_THRESHOLD:
                is_duplicate = True
                break
        if not is_duplicate:
            unique.append(line)

    return unique


# ----------------------------
# Clean and validate
# ----------------------------
def build_content(data):
    if not isinstance(data, dict):
        raise ContentError("Content sheet must be a JSON object.")

    declarations = [normalize_text(d) for d in data.get("declarations", []) if d and d.strip()]
    print(f"Total declarations before dedupe: {len(declarations)}")
    declarations = deduplicate_lines(declarations)
    if not declarations:
        raise ContentError("Content sheet has no declarations.")
    if len(declarations) > MAX_DAYS:
        raise ContentError(f"{len(declarations)} declarations will not fit in one month.")

    topics = [normalize_text(t) for t in data.get("prayerTopics", []) if t and t.strip()]
    if not topics:
        raise ContentError("Content sheet has no prayer topics.")

    special = {}
    for key, topic in (data.get("specialPrayerTopics") or {}).items():
        try:
            day = int(key)
        except (TypeError, ValueError):
            raise ContentError(f"Special prayer topic key {key!r} is not a day number.")
        if not 1 <= day <= len(declarations):
            raise ContentError(f"Special prayer topic for day {day} is outside the challenge.")
        special[day] = normalize_text(topic)

    return ChallengeContent(declarations, topics, special)


# ----------------------------
# Main
# ----------------------------
def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    url = argv[0] if argv else CONTENT_URL
    if not url:
        print("Usage: import_content.py <url>  (or set CONTENT_URL)")
        return 2

    data = fetch_content(url)

    content = build_content(data)

    print(f"Total declarations after dedupe: {content.day_count}")

    with open(OUTPUT_FILE, "w", encoding="utf-8") as f:
        json.dump(content.to_json(), f, ensure_ascii=False, indent=2)

    print(f"Saved challenge content to {OUTPUT_FILE}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
