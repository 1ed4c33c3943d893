"""
Community Rotation Example for Tilawa

This example walks a small community through one khatmah:
1. Create a database and a community
2. Members join and receive the lowest free juz
3. One member asks another for their juz, and the holder accepts
4. Members report progress
5. Print the juz table
"""

import tempfile
from pathlib import Path

from tilawa import TilawaContext, TilawaSettings
from tilawa.exceptions import TilawaError
from tilawa.logging_utils import setup_logging


def main():
    setup_logging("INFO")

    workdir = Path(tempfile.mkdtemp())
    settings = TilawaSettings(database_path=workdir / "rotation.db")

    # Step 1: Database and community
    print("Step 1: Creating the community...")
    ctx = TilawaContext(settings=settings).initialize()
    community = ctx.ledger.create_community("Family khatmah", admin_id=1, max_members=5)
    print(f"  Community {community.id}: {community.name} (max {community.max_members} members)\n")

    # Step 2: Members join
    print("Step 2: Members joining...")
    for member_id in (1, 2, 3, 4):
        assignment = ctx.ledger.join(community.id, member_id)
        print(f"  Member {member_id} -> juz {assignment.juz_number}")
    print()

    # Step 3: Member 4 wants juz 1, held by member 1
    print("Step 3: Transfer request...")
    try:
        ctx.ledger.claim(community.id, 4, 1)
    except TilawaError as e:
        print(f"  Direct claim refused: {e.message}")

    request = ctx.transfers.create_request(community.id, 1, requester_id=4)
    print(f"  Request {request.id}: member {request.to_member_id} asks member {request.from_member_id}")
    listing = ctx.transfers.list_requests(1)
    print(f"  Member 1 has {len(listing.received)} request(s) to answer")
    request = ctx.transfers.respond(request.id, 1, "accept")
    print(f"  Request {request.id} {request.status.value}\n")

    # Step 4: Progress
    print("Step 4: Reporting progress...")
    for member_id, pct in [(2, 40), (3, 100), (4, 15)]:
        assignment = ctx.ledger.assignment_for(community.id, member_id)
        ctx.ledger.update_progress(assignment.id, pct)
    print()

    # Step 5: Juz table
    print("Step 5: Juz table")
    print("=" * 48)
    details = ctx.ledger.details(community.id)
    for slot in details.juz_data[:6]:
        holder = f"member {slot.member_id}" if slot.member_id is not None else "-"
        print(f"Juz {slot.juz_number:2d}  {holder:<10} {slot.completion_percentage:5.1f}%  {slot.status.value}")
    print(f"... {len(ctx.ledger.available_juz(community.id))} juz still available")


if __name__ == "__main__":
    main()
