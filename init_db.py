import sys

from claimflow.core.config import settings
from claimflow.core.exceptions import ClaimFlowException
from claimflow.database.seed import seed_database
from claimflow.database.session import get_database

database = get_database()
print(f"Using database: {settings.database_url}")

try:
    database.create_all()
    with database.session_scope() as session:
        seeded = seed_database(session, include_demo_policy=settings.SEED_DEMO_DATA)
except ClaimFlowException as e:
    print(f"Failed to initialize database: {e.message}")
    sys.exit(1)

if seeded:
    print("Reference data seeded successfully.")
else:
    print("Reference data already present, nothing to seed.")
