from __future__ import annotations

import click
from flask import Flask

from ..common.datetime_utils import now_local
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.cli.command("close-elapsed-days")
    @click.option("--as-of", type=click.DateTime(), default=None, help="Sweep time (ISO), default now.")
    def close_elapsed_days(as_of):
        """Mark open attendance days from earlier dates as incomplete."""
        as_of = as_of or now_local()
        closed = container.attendance_service.close_elapsed_days(as_of=as_of)
        for day in closed:
            click.echo(f"incomplete: employee={day.employee_id} date={day.work_date.isoformat()}")
        click.echo(f"Closed {len(closed)} open day(s) before {as_of.date().isoformat()}")
