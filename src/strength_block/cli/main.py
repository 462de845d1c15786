"""
CLI entry point using Typer.

Provides commands for the training block, coaching and attendance:
- init: Create or update your profile
- set-tm: Save a training max
- plan: Show a week's warmup and work sets
- log: Record an AMRAP result
- history / progress: Review recorded sessions
- roster, coach: Coach views and the active athlete
- attendance: Team attendance sheets
- roles: Role administration
"""

from .app import app
from .commands import attendance, coach, planning, profile, sessions  # noqa: F401  (register commands)

if __name__ == "__main__":
    app()
