"""Aggregate SQL expressions over tailor jobs.

The daily refresher and the tailor-scoped analytics path both compute job
metrics from raw ``tailor_job`` rows; they share these definitions so a
rollup row and a live query over the same day always agree.
"""

from typing import Any

from sqlalchemy import ColumnElement, case, func

from app.features.data_platform.models import ACTIVE_JOB_STATUSES, TailorJob


def issued_pcs_sum() -> ColumnElement[Any]:
    """Pieces issued."""
    return func.coalesce(func.sum(TailorJob.issued_pcs), 0)


def in_production_pcs_sum() -> ColumnElement[Any]:
    """Issued minus returned, counted only for jobs still at the tailor."""
    return func.coalesce(
        func.sum(
            case(
                (
                    TailorJob.status.in_(ACTIVE_JOB_STATUSES),
                    TailorJob.issued_pcs - func.coalesce(TailorJob.returned_pcs, 0),
                ),
                else_=0,
            )
        ),
        0,
    )


def in_production_orders_count() -> ColumnElement[Any]:
    """Number of jobs still at the tailor."""
    return func.coalesce(
        func.sum(case((TailorJob.status.in_(ACTIVE_JOB_STATUSES), 1), else_=0)),
        0,
    )


def tailor_expense_sum() -> ColumnElement[Any]:
    """Issued pieces times the job's piece rate."""
    return func.coalesce(func.sum(TailorJob.issued_pcs * TailorJob.rate), 0)
