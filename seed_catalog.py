# seed_catalog.py
"""
Seed the level table and the default achievement/reward catalog.
Safe to run repeatedly: existing rows are left untouched.
"""
import logging
import sys

from examcore import create_app
from examcore.extensions import db
from examcore.models import LevelConfig, Achievement, Reward

logger = logging.getLogger('seed_catalog')

# (level, cumulative XP needed to leave the level, perks)
# The last level is the cap: its threshold is never reached, so no award
# ever looks for a level beyond the table.
MAX_XP = 2_147_483_647
LEVELS = [
    (1, 1000, []),
    (2, 2500, ['custom_avatar']),
    (3, 4500, ['dark_theme']),
    (4, 7000, ['profile_badge']),
    (5, 10000, ['bonus_practice_sets']),
    (6, 14000, ['certificate_frame']),
    (7, 19000, ['leaderboard_flair']),
    (8, 25000, ['mentor_badge']),
    (9, 32000, ['golden_theme']),
    (10, 40000, ['hall_of_fame']),
    (11, MAX_XP, ['legend']),
]

ACHIEVEMENTS = [
    ('First Steps', 'Complete your first test', 'Practice', 50, 'TEST_COUNT', 1),
    ('Test Taker', 'Complete 10 tests', 'Practice', 200, 'TEST_COUNT', 10),
    ('Perfectionist', 'Score 100% on a test', 'Performance', 300, 'SCORE', 100),
    ('High Achiever', 'Score at least 90% on a test', 'Performance', 150, 'SCORE', 90),
    ('On a Roll', 'Keep a 3 day streak', 'Consistency', 100, 'STREAK', 3),
    ('Dedicated', 'Keep a 7 day streak', 'Consistency', 250, 'STREAK', 7),
    ('Subject Master', 'Reach mastery level 5 in a subject', 'Mastery', 500, 'MASTERY', 5),
]

REWARDS = [
    ('Custom Avatar', 'Upload your own avatar', 'Avatar', 500),
    ('Dark Theme', 'Unlock the dark theme', 'Theme', 750),
    ('Star Badge', 'Show a star on your profile', 'Badge', 1000),
    ('Completion Certificate', 'Printable certificate of progress', 'Certificate', 2500),
]


def seed_catalog():
    """Insert missing levels, achievements and rewards"""
    app = create_app()

    with app.app_context():
        logger.info("Seeding catalog into %s", db.engine.url.render_as_string(hide_password=True))

        try:
            added = 0
            for level, xp_required, perks in LEVELS:
                if db.session.get(LevelConfig, level) is None:
                    db.session.add(LevelConfig(level=level, xp_required=xp_required,
                                               perks={'unlocks': perks}))
                    added += 1
            logger.info("Levels: %s added", added)

            added = 0
            for title, description, category, points, criteria_type, target in ACHIEVEMENTS:
                if Achievement.query.filter_by(title=title).first() is None:
                    db.session.add(Achievement(
                        title=title,
                        description=description,
                        category=category,
                        points=points,
                        required_criteria={'type': criteria_type, 'target': target},
                    ))
                    added += 1
            logger.info("Achievements: %s added", added)

            added = 0
            for title, description, category, cost in REWARDS:
                if Reward.query.filter_by(title=title).first() is None:
                    db.session.add(Reward(title=title, description=description,
                                          category=category, cost=cost))
                    added += 1
            logger.info("Rewards: %s added", added)

            db.session.commit()
            logger.info("Catalog seeded")
        except Exception:
            db.session.rollback()
            logger.exception("Seeding failed; nothing was written")
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(seed_catalog())
