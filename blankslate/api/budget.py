from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from blankslate.api.errors import budget_errors, parse_month
from blankslate.core.deps import BudgetSession, get_budget_session
from blankslate.schemas import (
    AssignIn,
    GroupCreate,
    GroupOut,
    HistoryOut,
    ImportCategoriesIn,
    ImportResult,
    ItemCreate,
    ItemOut,
    MonthBudget,
    MonthOut,
    RenameIn,
    TargetIn,
    UndoRedoIn,
    UndoRedoResult,
)
from blankslate.services.budget_engine import BudgetEngine

router = APIRouter(tags=["budget"])


def month_out(engine: BudgetEngine, month: MonthBudget) -> MonthOut:
    groups = []
    for group in month.groups:
        items = []
        for item in group.items:
            status = engine.categories.target_status(item)
            items.append(
                ItemOut(
                    name=item.name,
                    assigned=item.assigned,
                    activity=item.activity,
                    available=item.available,
                    carry_in=item.carry_in,
                    target=item.target,
                    target_status=status.type if status else None,
                    target_message=status.message if status else None,
                    deletable=engine.item_actions(group.name, item.name)["delete"],
                )
            )
        groups.append(GroupOut(name=group.name, is_system_group=group.is_system_group, items=items))
    return MonthOut(
        month=month.month,
        ready_to_assign=month.ready_to_assign,
        income=month.income,
        overspent=month.overspent,
        rta_error=month.rta_error,
        groups=groups,
    )


# ==================== Months ====================


@router.get("/months")
def list_months(budget: BudgetSession = Depends(get_budget_session)):
    return {"current": budget.engine.current_month, "months": budget.engine.months()}


@router.get("/months/{month}", response_model=MonthOut)
def get_month(month: str, budget: BudgetSession = Depends(get_budget_session)):
    key = parse_month(month)
    created = key not in budget.engine.book.months
    with budget_errors():
        figures = budget.engine.get_month(key)
    if created:
        budget.save()
    return month_out(budget.engine, figures)


@router.post("/months/{month}/navigate", response_model=MonthOut)
def navigate(month: str, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        figures = budget.engine.navigate(parse_month(month))
    budget.save()
    return month_out(budget.engine, figures)


@router.put("/months/{month}/assigned", response_model=MonthOut)
def set_assigned(month: str, payload: AssignIn, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        figures = budget.engine.set_assigned(payload.group, payload.item, parse_month(month), payload.amount)
    budget.save()
    return month_out(budget.engine, figures)


# ==================== Categories ====================


@router.post("/categories/groups", status_code=201)
def create_group(payload: GroupCreate, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        name = budget.engine.create_group(payload.name)
    budget.save()
    return {"name": name}


@router.patch("/categories/groups/{group}")
def rename_group(group: str, payload: RenameIn, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        budget.engine.rename_group(group, payload.name)
    budget.save()
    return {"name": payload.name.strip()}


@router.delete("/categories/groups/{group}", status_code=204)
def delete_group(
    group: str,
    clear_items: bool = Query(False, description="Also remove items that hold no money"),
    month: Optional[str] = Query(None),
    budget: BudgetSession = Depends(get_budget_session),
):
    with budget_errors():
        budget.engine.delete_group(group, clear_items=clear_items, month=parse_month(month) if month else None)
    budget.save()
    return Response(status_code=204)


@router.post("/categories/groups/{group}/items", status_code=201)
def create_item(group: str, payload: ItemCreate, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        name = budget.engine.create_item(group, payload.name)
    budget.save()
    return {"group": group, "name": name}


@router.patch("/categories/groups/{group}/items/{item}")
def rename_item(group: str, item: str, payload: RenameIn, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        budget.engine.rename_item(group, item, payload.name)
    budget.save()
    return {"group": group, "name": payload.name.strip()}


@router.delete("/categories/groups/{group}/items/{item}", status_code=204)
def delete_item(
    group: str,
    item: str,
    reassign_group: Optional[str] = Query(None),
    reassign_item: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    budget: BudgetSession = Depends(get_budget_session),
):
    target = (reassign_group, reassign_item) if reassign_group and reassign_item else None
    with budget_errors():
        budget.engine.delete_item(group, item, reassign_to=target, month=parse_month(month) if month else None)
    budget.save()
    return Response(status_code=204)


@router.put("/categories/groups/{group}/items/{item}/target")
def set_target(group: str, item: str, payload: TargetIn, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        budget.engine.set_target(group, item, payload.amount)
        status = budget.engine.target_status(group, item)
    budget.save()
    return {
        "group": group,
        "item": item,
        "target": budget.engine.book.require_item(group, item).target,
        "target_status": status.type if status else None,
    }


@router.get("/categories/groups/{group}/items/{item}/actions")
def item_actions(group: str, item: str, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        return budget.engine.item_actions(group, item)


@router.post("/categories/import", response_model=ImportResult)
def import_categories(payload: ImportCategoriesIn, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        created, skipped, command_id = budget.engine.import_categories(payload.rows)
    budget.save()
    return ImportResult(created=created, skipped=skipped, command_id=command_id)


# ==================== History ====================


@router.get("/history", response_model=HistoryOut)
def history(budget: BudgetSession = Depends(get_budget_session)):
    return budget.engine.history()


@router.post("/undo", response_model=UndoRedoResult)
def undo(payload: Optional[UndoRedoIn] = None, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        command = budget.engine.undo(payload.expected_id if payload else None)
    if command is not None:
        budget.save()
    return UndoRedoResult(
        applied=command is not None,
        description=command.description if command else None,
        history=budget.engine.history(),
    )


@router.post("/redo", response_model=UndoRedoResult)
def redo(payload: Optional[UndoRedoIn] = None, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        command = budget.engine.redo(payload.expected_id if payload else None)
    if command is not None:
        budget.save()
    return UndoRedoResult(
        applied=command is not None,
        description=command.description if command else None,
        history=budget.engine.history(),
    )
