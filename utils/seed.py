import logging

from models import db
from models.user import Role
from utils.roles import ALLOWED_DISPLAY_ROLES

logger = logging.getLogger(__name__)


def seed_roles():
    """Create any missing role rows. Safe to run on every startup."""
    existing = set(db.session.execute(db.select(Role.name)).scalars())
    missing = sorted(ALLOWED_DISPLAY_ROLES - existing)
    if not missing:
        return
    db.session.add_all(Role(name=name) for name in missing)
    db.session.commit()
    logger.info("Seeded roles: %s", ", ".join(missing))
