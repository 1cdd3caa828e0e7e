"""
Seed script to populate the database with users, ads and chat threads.
Run with: python scripts/seed_test_data.py
"""

import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

# Add parent directory to path so we can import app
sys.path.insert(0, str(Path(__file__).parent.parent))

from faker import Faker
from sqlalchemy import func, select

from app.core.security import hash_password
from app.database import async_session_maker
from app.models.ad import Ad
from app.models.message import Message
from app.models.user import User

fake = Faker()

# Configuration
NUM_USERS = 30
NUM_ADS = 40
NUM_THREADS = 25
MAX_MESSAGES_PER_THREAD = 8
TEST_EMAIL_DOMAIN = "test.soko.local"

BUYER_LINES = [
    "Is this still available?",
    "What is your last price?",
    "Can I view it this weekend?",
    "Do you deliver to {city}?",
    "Does it come with a warranty?",
]
SELLER_LINES = [
    "Yes, it is still available.",
    "The price is slightly negotiable.",
    "You can view it on Saturday morning.",
    "Delivery is possible at an extra cost.",
    "It is in very good condition.",
]


async def seed_users(db) -> list[User]:
    """Create active users plus a few suspended/banned accounts."""
    users = []
    test_password_hash = hash_password("Test1234!")
    statuses = ["active"] * 8 + ["suspended", "banned"]

    print(f"Creating {NUM_USERS} test users...")

    for i in range(NUM_USERS):
        user = User(
            id=uuid4(),
            name=fake.name(),
            email=f"user{i+1}@{TEST_EMAIL_DOMAIN}",
            phone=f"+2547{random.randint(10000000, 99999999)}",
            password_hash=test_password_hash,
            avatar=fake.image_url(width=128, height=128),
            status=random.choice(statuses) if i > 1 else "active",
            role="user",
            created_at=datetime.now(timezone.utc) - timedelta(days=random.randint(1, 180)),
        )
        db.add(user)
        users.append(user)

    await db.flush()
    print(f"  Created {len(users)} users")
    return users


async def seed_ads(db, users: list[User]) -> list[Ad]:
    """Create ads, most of them approved so they accept messages."""
    ads = []
    statuses = ["approved"] * 6 + ["pending", "rejected", "sold"]

    print(f"Creating {NUM_ADS} ads...")

    for _ in range(NUM_ADS):
        ad = Ad(
            id=uuid4(),
            seller_id=random.choice(users).id,
            title=fake.sentence(nb_words=4).rstrip(".")[:100],
            images=[fake.image_url() for _ in range(random.randint(1, 4))],
            status=random.choice(statuses),
            is_active=random.random() > 0.1,
        )
        db.add(ad)
        ads.append(ad)

    await db.flush()
    print(f"  Created {len(ads)} ads")
    return ads


async def seed_threads(db, users: list[User], ads: list[Ad]) -> list[Message]:
    """Create buyer/seller conversations about messageable ads."""
    messages = []
    open_ads = [ad for ad in ads if ad.accepts_messages]
    if not open_ads:
        print("  No approved ads to message about")
        return messages

    print(f"Creating {NUM_THREADS} conversations...")

    for _ in range(NUM_THREADS):
        ad = random.choice(open_ads)
        buyers = [u for u in users if u.id != ad.seller_id and u.status == "active"]
        buyer = random.choice(buyers)

        sent_at = datetime.now(timezone.utc) - timedelta(hours=random.randint(1, 240))
        for turn in range(random.randint(1, MAX_MESSAGES_PER_THREAD)):
            from_buyer = turn % 2 == 0
            line = random.choice(BUYER_LINES if from_buyer else SELLER_LINES)
            sent_at += timedelta(minutes=random.randint(1, 90))
            is_read = random.random() > 0.3

            message = Message(
                id=uuid4(),
                sender_id=buyer.id if from_buyer else ad.seller_id,
                receiver_id=ad.seller_id if from_buyer else buyer.id,
                ad_id=ad.id,
                content=line.format(city=fake.city()),
                is_read=is_read,
                read_at=sent_at + timedelta(minutes=5) if is_read else None,
                created_at=sent_at,
            )
            db.add(message)
            messages.append(message)

    print(f"  Created {len(messages)} messages")
    return messages


async def main():
    print("=" * 50)
    print("Seeding test data for Soko Messaging")
    print("=" * 50)

    async with async_session_maker() as db:
        try:
            count_result = await db.execute(
                select(func.count(User.id)).where(User.email.like(f"%@{TEST_EMAIL_DOMAIN}"))
            )
            existing_count = count_result.scalar() or 0

            if existing_count > 0:
                print(f"\nFound {existing_count} existing test users.")
                response = input("Do you want to add more test data? (y/n): ")
                if response.lower() != "y":
                    print("Aborted.")
                    return

            print("\nCreating test data...")

            users = await seed_users(db)
            ads = await seed_ads(db, users)
            messages = await seed_threads(db, users, ads)

            await db.commit()

            print("\n" + "=" * 50)
            print("Summary:")
            print("=" * 50)
            print(f"  Users created: {len(users)}")
            print(f"    - Active: {len([u for u in users if u.status == 'active'])}")
            print(f"    - Suspended: {len([u for u in users if u.status == 'suspended'])}")
            print(f"    - Banned: {len([u for u in users if u.status == 'banned'])}")
            print(f"  Ads created: {len(ads)}")
            print(f"    - Open for messages: {len([a for a in ads if a.accepts_messages])}")
            print(f"  Messages created: {len(messages)}")
            print(f"    - Unread: {len([m for m in messages if not m.is_read])}")
            print("\nTest user login:")
            print(f"  Email: user1@{TEST_EMAIL_DOMAIN}")
            print("  Password: Test1234!")
            print("=" * 50)

        except Exception as e:
            print(f"\nError: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(main())
