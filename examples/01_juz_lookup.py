"""
Juz Lookup Example for Tilawa

This example shows the reference lookups that need no database:
1. Find the juz that contains a verse
2. Print the span of a juz
3. Walk the verses of a juz
4. Work out the rotation week
"""

from datetime import date

from tilawa.core import iter_juz_verses, juz_of, juz_range, total_ayahs_in_juz, week_start
from tilawa.models import Surah


def main():
    # Step 1: Which juz holds a verse?
    print("Step 1: Juz of a few well-known verses...")
    for surah, ayah in [(1, 1), (2, 142), (2, 255), (18, 75), (114, 6)]:
        print(f"  {Surah.from_id(surah).name_arabic} {surah}:{ayah} -> juz {juz_of(surah, ayah)}")
    print()

    # Step 2: Span of every juz
    print("Step 2: Juz boundaries")
    print("-" * 48)
    total = 0
    for juz_number in range(1, 31):
        span = juz_range(juz_number)
        count = total_ayahs_in_juz(juz_number)
        total += count
        print(f"Juz {juz_number:2d}: {str(span.start):>7} - {str(span.last_verse):<7} ({count} ayahs)")
    print(f"Total: {total} ayahs\n")

    # Step 3: First verses of juz 30
    print("Step 3: Opening verses of juz 30...")
    for i, verse in enumerate(iter_juz_verses(30)):
        if i == 5:
            break
        print(f"  {verse}")
    print()

    # Step 4: Rotation weeks run Friday to Thursday
    print("Step 4: Rotation week")
    today = date.today()
    print(f"  Today {today.isoformat()} belongs to the week starting {week_start(today)}")


if __name__ == "__main__":
    main()
