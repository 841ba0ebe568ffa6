"""
Blueprints package for the LeagueDesk API
Contains modular route blueprints for the admin back-office, public views and team feeds
"""

from .admin import admin_bp
from .team import team_bp
from .public import public_bp

__all__ = ['admin_bp', 'team_bp', 'public_bp']
