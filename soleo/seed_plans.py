"""Create the schema and the baseline catalog rows.

Run with ``python -m soleo.seed_plans``. Existing rows are left unchanged.
"""
from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv

from . import app_context
from .app.memberships import PlanDraft, PostgresPlanRepository
from .app.training.repository import PostgresTrainingRepository
from .app.training.service import BULKING_ROUTINE_NAME
from .config import get_settings
from .db import Database, managed_connection

logger = logging.getLogger("soleo.seed")

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

TRIAL_PLAN = PlanDraft(
    name="SEMILLA",
    description="Membresía de prueba incluida con cada cuenta nueva",
    price=0,
    duration_days=365,
    is_trial=True,
    is_default=True,
)


def _unavailable_user(*args, **kwargs):
    raise RuntimeError("seed command does not authenticate requests")


def apply_schema() -> None:
    with managed_connection() as (conn, _):
        with conn.cursor() as cursor:
            cursor.execute(SCHEMA_PATH.read_text(encoding="utf-8"))


def seed(*, routines: PostgresTrainingRepository, plans: PostgresPlanRepository) -> None:
    routine_id = routines.find_routine_id(BULKING_ROUTINE_NAME)
    if routine_id is None:
        routine_id = routines.create_routine(BULKING_ROUTINE_NAME).id
        logger.info("Routine created", extra={"routine_id": routine_id})

    if plans.get_plan_by_name(TRIAL_PLAN.name) is None:
        plan = plans.create_plan(TRIAL_PLAN.model_copy(update={"routine_id": routine_id}))
        print(f"Created plan {plan.name} (id={plan.id}).")
    else:
        print(f"Plan {TRIAL_PLAN.name} already exists, unchanged.")


def main() -> None:
    load_dotenv()
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    database = Database(settings.database)
    database.open()
    app_context.configure(database=database, get_current_user=_unavailable_user)
    try:
        apply_schema()
        seed(routines=PostgresTrainingRepository(), plans=PostgresPlanRepository())
    finally:
        app_context.reset()
        database.close()


if __name__ == "__main__":
    main()
