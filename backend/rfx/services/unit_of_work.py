from __future__ import annotations

from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from rfx.errors import CampaignError, Internal
from rfx.extensions import db

T = TypeVar("T")


def run_atomically(work: Callable[[], T], *, label: str, code: str = "INTERNAL_ERROR", retries: int | None = None) -> T:
    """Run `work` and commit it as one transaction.

    `work` must re-read everything it touches: on a version clash
    (StaleDataError) or a uniqueness race (IntegrityError) the session is
    rolled back and `work` runs again from scratch, so its validation sees
    whatever the competing writer committed. Domain errors roll back and
    propagate unchanged; anything else becomes Internal.
    """
    if retries is None:
        retries = int(current_app.config.get("ENGINE_MAX_RETRIES", 3))
    attempts = max(1, int(retries))

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.session.commit()
            return result
        except CampaignError:
            db.session.rollback()
            raise
        except (StaleDataError, IntegrityError) as e:
            db.session.rollback()
            current_app.logger.warning(
                "%s: concurrent update detected (attempt %s/%s): %s", label, attempt, attempts, e.__class__.__name__
            )
            continue
        except Exception:
            db.session.rollback()
            current_app.logger.exception("%s: persistence failure, rolled back", label)
            raise Internal(f"{label} failed; no changes were saved", code=code)

    raise Internal(f"{label} failed after {attempts} attempts; no changes were saved", code=code)
