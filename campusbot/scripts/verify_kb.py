import json
import os
import sys

import pandas as pd

from campusbot.chatbot.config import KB_DEFAULT
from campusbot.chatbot.knowledge import KnowledgeBase, normalize_name

# Fields each KB section is expected to carry
EXPECTED_FIELDS = {
    "deadlines": ["term", "category", "description", "date"],
    "professors": ["name", "department", "rating", "courses"],
    "courses": ["code", "title", "department"],
    "faq": ["q", "a"],
    "majors": ["campus", "program", "lower_division", "upper_division"],
}


def section_report(name: str, rows: list) -> None:
    if not rows:
        print(f"\n⚠️ {name}: empty")
        return

    df = pd.json_normalize(rows)
    print(f"\n✅ {name}: {len(df)} rows")

    missing_cols = [c for c in EXPECTED_FIELDS[name] if c not in df.columns]
    if missing_cols:
        print(f"⚠️ Missing fields: {missing_cols}")

    present = [c for c in EXPECTED_FIELDS[name] if c in df.columns]
    missing_values = df[present].isnull().sum()
    if missing_values.any():
        print("⚠️ Missing values detected:")
        print(missing_values[missing_values > 0].to_string())


def ranking_report(kb: KnowledgeBase) -> None:
    known = {normalize_name(p.name) for p in kb.professors}
    for code, entries in sorted(kb.rankings.items()):
        unknown = [r.name for r in entries if normalize_name(r.name) not in known]
        status = "✅" if not unknown else "⚠️"
        print(f"{status} {code}: {len(entries)} ranked" + (f", not in professors: {unknown}" if unknown else ""))


def main() -> None:
    # --- Step 1: which file? (argument, or the packaged default) ---
    path = sys.argv[1] if len(sys.argv) > 1 else str(KB_DEFAULT)
    if not os.path.exists(path):
        print(f"⚠️ File not found: {path}")
        sys.exit(1)

    # --- Step 2: load JSON ---
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Failed to read KB: {e}")
        sys.exit(1)

    print(f"📚 {path}: {(data.get('school') or {}).get('name', 'Unknown School')}")

    # --- Step 3: per-section structure and missing values ---
    for name in EXPECTED_FIELDS:
        section_report(name, data.get(name) or [])

    # --- Step 4: what the loader makes of it ---
    kb = KnowledgeBase.from_dict(data)
    raw_profs = len(data.get("professors") or [])
    if raw_profs != len(kb.professors):
        print(f"\nℹ️ {raw_profs} professor records merged into {len(kb.professors)}")
    print(f"\n🔎 Valid course codes: {', '.join(sorted(kb.valid_codes)) or '(none)'}")

    print("\n🏆 Rankings:")
    ranking_report(kb)


if __name__ == "__main__":
    main()
