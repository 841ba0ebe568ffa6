"""
Database initialization script for deployment
Run with: python init_db.py
"""

from app import app, db
from models import Team, Match, Standing


def initialize_database():
    """Create the database tables and report what is already stored"""
    with app.app_context():
        print("Creating database tables...")
        db.create_all()

        print("✅ Database initialized successfully!")
        print(f"  Teams:     {Team.query.count()}")
        print(f"  Matches:   {Match.query.count()}")
        print(f"  Standings: {Standing.query.count()}")
        if not app.config['ADMIN_API_TOKEN']:
            print("⚠️  ADMIN_API_TOKEN is not set; admin routes are disabled until it is.")


if __name__ == "__main__":
    initialize_database()
