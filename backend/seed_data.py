"""Seed database with a demo owner and the summer-drop gate."""
import os

from backstage.auth import hash_password
from backstage.database import SessionLocal
from backstage.models import DownloadGate, User

DEMO_OWNER_EMAIL = "artist@thebackstage.app"
DEMO_OWNER_PASSWORD = "backstage123"


def seed(session_factory=SessionLocal):
    """Create the demo owner and gate; rows that already exist are left untouched."""
    db = session_factory()
    email = os.getenv("SEED_OWNER_EMAIL", DEMO_OWNER_EMAIL).strip().lower()
    password = os.getenv("SEED_OWNER_PASSWORD", DEMO_OWNER_PASSWORD)

    try:
        owner = db.query(User).filter(User.email == email).first()
        if owner is None:
            owner = User(
                email=email,
                password_hash=hash_password(password),
                name="Demo Artist",
                spotify_artist_id=os.getenv("SEED_SPOTIFY_ARTIST_ID") or None,
            )
            db.add(owner)
            db.flush()
            print(f"✅ Created owner {email}")
        else:
            print(f"Owner {email} already exists")

        gate = db.query(DownloadGate).filter(DownloadGate.slug == "summer-drop").first()
        if gate is None:
            gate = DownloadGate(
                user_id=owner.id,
                slug="summer-drop",
                title="Summer Drop",
                artist_name="Demo Artist",
                genre="House",
                description="Free download for everyone who reposts the track.",
                soundcloud_track_id=os.getenv("SEED_SOUNDCLOUD_TRACK_ID", "123456"),
                soundcloud_user_id=os.getenv("SEED_SOUNDCLOUD_USER_ID") or None,
                file_url=os.getenv("SEED_FILE_URL", "https://files.thebackstage.app/demo/summer-drop.wav"),
                file_type="audio/wav",
                require_email=True,
                require_soundcloud_repost=True,
                active=True,
            )
            db.add(gate)
            print("✅ Created gate summer-drop")
        else:
            print("Gate summer-drop already exists")

        db.commit()
        print("\nDemo owner:")
        print(f"  {email} / {'(from SEED_OWNER_PASSWORD)' if 'SEED_OWNER_PASSWORD' in os.environ else password}")
        return owner.id, gate.id

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
