"""
Visa plan read/write helpers.

A plan is an ordered list of visa types (items). Plans go
draft -> submitted -> reviewed once an admin completes the review.

Visa types carry an ordered list of requirements (documents and conditions)
maintained by admins.
"""

from typing import List, Optional

from sqlalchemy import text

from frog_portal.db.postgres import get_db_session, execute_raw_sql, fetch_one
from frog_portal.services.progress_service import visa_plan_progress

PLAN_COLUMNS = "plan_id, user_id, name, description, status, created_at, updated_at"
VISA_TYPE_COLUMNS = "visa_type_id, name, description, country"


# ============================================================
# VISA TYPES
# ============================================================

def _requirements_for(visa_type_ids: List[int]) -> dict:
    grouped = {vid: [] for vid in visa_type_ids}
    if not visa_type_ids:
        return grouped
    placeholders = ", ".join(f":v{i}" for i in range(len(visa_type_ids)))
    rows = execute_raw_sql(f"""
        SELECT requirement_id, visa_type_id, description, additional_info, order_index
        FROM visa_requirements
        WHERE visa_type_id IN ({placeholders})
        ORDER BY order_index, requirement_id
    """, {f"v{i}": vid for i, vid in enumerate(visa_type_ids)})
    for row in rows:
        grouped[row["visa_type_id"]].append(row)
    return grouped


def list_visa_types() -> List[dict]:
    types = execute_raw_sql(f"SELECT {VISA_TYPE_COLUMNS} FROM visa_types ORDER BY visa_type_id")
    requirements = _requirements_for([t["visa_type_id"] for t in types])
    for visa_type in types:
        visa_type["requirements"] = requirements[visa_type["visa_type_id"]]
    return types


def load_visa_type(visa_type_id: int) -> Optional[dict]:
    visa_type = fetch_one(f"SELECT {VISA_TYPE_COLUMNS} FROM visa_types WHERE visa_type_id = :vid",
                          {"vid": visa_type_id})
    if visa_type:
        visa_type["requirements"] = _requirements_for([visa_type_id])[visa_type_id]
    return visa_type


def replace_requirements(db, visa_type_id: int, requirements: List[dict]) -> None:
    """Swap a visa type's requirements for the given list; list position is the order."""
    db.execute(text("DELETE FROM visa_requirements WHERE visa_type_id = :vid"), {"vid": visa_type_id})
    for index, requirement in enumerate(requirements):
        db.execute(
            text("""
                INSERT INTO visa_requirements (visa_type_id, description, additional_info, order_index)
                VALUES (:vid, :description, :info, :idx)
            """),
            {"vid": visa_type_id, "description": requirement["description"],
             "info": requirement.get("additional_info"), "idx": index}
        )


def visa_type_in_use(visa_type_id: int) -> bool:
    return fetch_one(
        "SELECT item_id FROM visa_plan_items WHERE visa_type_id = :vid", {"vid": visa_type_id}
    ) is not None


# ============================================================
# PLANS
# ============================================================


def _items_for(plan_ids: List[int]) -> dict:
    grouped = {pid: [] for pid in plan_ids}
    if not plan_ids:
        return grouped
    placeholders = ", ".join(f":p{i}" for i in range(len(plan_ids)))
    rows = execute_raw_sql(f"""
        SELECT i.item_id, i.plan_id, i.visa_type_id, vt.name AS visa_type_name, i.order_index, i.notes
        FROM visa_plan_items i
        JOIN visa_types vt ON i.visa_type_id = vt.visa_type_id
        WHERE i.plan_id IN ({placeholders})
        ORDER BY i.order_index, i.item_id
    """, {f"p{i}": pid for i, pid in enumerate(plan_ids)})
    for row in rows:
        grouped[row["plan_id"]].append(row)
    return grouped


def list_plans(user_id: int) -> List[dict]:
    """Own plans, newest first, with their items."""
    plans = execute_raw_sql(
        f"SELECT {PLAN_COLUMNS} FROM visa_plans WHERE user_id = :uid ORDER BY created_at DESC, plan_id DESC",
        {"uid": user_id}
    )
    items = _items_for([p["plan_id"] for p in plans])
    for plan in plans:
        plan["items"] = items[plan["plan_id"]]
        plan["progress"] = visa_plan_progress(plan["status"])
    return plans


def load_plan(plan_id: int) -> Optional[dict]:
    plan = fetch_one(f"SELECT {PLAN_COLUMNS} FROM visa_plans WHERE plan_id = :pid", {"pid": plan_id})
    if plan:
        plan["items"] = _items_for([plan_id])[plan_id]
        plan["progress"] = visa_plan_progress(plan["status"])
    return plan


def unknown_visa_types(visa_type_ids: List[int]) -> List[int]:
    if not visa_type_ids:
        return []
    unique = sorted(set(visa_type_ids))
    placeholders = ", ".join(f":v{i}" for i in range(len(unique)))
    rows = execute_raw_sql(
        f"SELECT visa_type_id FROM visa_types WHERE visa_type_id IN ({placeholders})",
        {f"v{i}": v for i, v in enumerate(unique)}
    )
    known = {r["visa_type_id"] for r in rows}
    return [v for v in unique if v not in known]


def create_plan(user_id: int, name: str, description: Optional[str], items: List[dict]) -> int:
    with get_db_session() as db:
        result = db.execute(
            text("""
                INSERT INTO visa_plans (user_id, name, description, status)
                VALUES (:uid, :name, :description, 'draft')
                RETURNING plan_id
            """),
            {"uid": user_id, "name": name, "description": description}
        )
        plan_id = result.fetchone()[0]
        _insert_items(db, plan_id, items)
    return plan_id


def replace_items(plan_id: int, items: List[dict]) -> None:
    with get_db_session() as db:
        db.execute(text("DELETE FROM visa_plan_items WHERE plan_id = :pid"), {"pid": plan_id})
        _insert_items(db, plan_id, items)
        db.execute(
            text("UPDATE visa_plans SET updated_at = CURRENT_TIMESTAMP WHERE plan_id = :pid"),
            {"pid": plan_id}
        )


def _insert_items(db, plan_id: int, items: List[dict]) -> None:
    # order_index follows list position
    for index, item in enumerate(items):
        db.execute(
            text("""
                INSERT INTO visa_plan_items (plan_id, visa_type_id, order_index, notes)
                VALUES (:pid, :vt, :idx, :notes)
            """),
            {"pid": plan_id, "vt": item["visa_type_id"], "idx": index, "notes": item.get("notes")}
        )


def list_reviews(plan_id: int) -> List[dict]:
    return execute_raw_sql("""
        SELECT review_id, plan_id, reviewer_id, status, reviewer_notes, completed_at, created_at
        FROM visa_plan_reviews WHERE plan_id = :pid
        ORDER BY created_at DESC, review_id DESC
    """, {"pid": plan_id})
