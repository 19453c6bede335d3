# Overview: Flask CLI groups for bootstrap, user admin, month-end runs and prices.

# Run from the backend directory with FLASK_APP=wsgi.py:
#
#   flask system init                    tables + default users (idempotent)
#   flask system reset-db --yes          drop and recreate every table (dev only)
#   flask users list
#   flask users create --email ops@marmitas.local --name Ops --role operator
#   flask users deactivate --email ops@marmitas.local   (also ends their sessions)
#   flask users activate --email ops@marmitas.local
#   flask closures generate --month 3 --year 2025
#   flask prices show
#   flask prices set --size M --price 1900

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import MealSize, User, UserRole
from .services import closure_service, settings_service
from .services.auth_service import (
    PasswordValidationError,
    create_user,
    deactivate_user,
    get_user_by_email,
    list_users,
    reactivate_user,
)
from .services.pricing_service import format_brl
from .time_utils import today
from .validation import ConflictError, NotFoundError, StoreError, ValidationError

DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("admin@marmitas.local", "Administrator", UserRole.ADMIN),
    ("manager@marmitas.local", "Manager", UserRole.MANAGER),
    ("operator@marmitas.local", "Operator", UserRole.OPERATOR),
]

_RULE = "-" * 78


def _fail(message: str) -> None:
    click.echo(f"FAIL {message}")
    raise SystemExit(1)


@click.group("system")
def system_group():
    """Database bootstrap."""


@system_group.command("init")
@with_appcontext
def init_system():
    """
    Create missing tables and one user per role.

    Users that already exist are left untouched, so this is safe to re-run.
    Every default account gets DEFAULT_PASSWORD; change it after first login.
    """
    db.create_all()
    click.echo("PASS Tables ready")

    for email, name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first() is not None:
            click.echo(f"SKIP {email} already exists")
            continue
        try:
            create_user(email=email, name=name, password=DEFAULT_PASSWORD, role=role)
        except (ValidationError, ConflictError, StoreError) as e:
            click.echo(f"FAIL Could not create {email}: {e}")
        else:
            click.echo(f"PASS Created user: {email} ({role.value})")

    click.echo(f"\nDefault password for new accounts: {DEFAULT_PASSWORD}")


@system_group.command("reset-db")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. All data is lost."""
    if not yes:
        click.confirm("Every table will be dropped. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Schema recreated; run 'flask system init' next")


@click.group("users")
def users_group():
    """Back-office accounts."""


@users_group.command("create")
@click.option("--email", prompt=True)
@click.option("--name", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice([r.value for r in UserRole]), prompt=True)
@with_appcontext
def create_user_cli(email, name, password, role):
    try:
        user = create_user(email=email, name=name, password=password, role=role)
    except PasswordValidationError as e:
        _fail(f"{e} (8+ characters with upper, lower, digit and symbol)")
    except (ValidationError, ConflictError, StoreError) as e:
        _fail(str(e))
    click.echo(f"PASS Created user #{user.id}: {user.email} ({user.role})")


@users_group.command("list")
@with_appcontext
def list_users_cli():
    users = list_users()
    if not users:
        click.echo("No users.")
        return

    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Role':<9} Active")
    click.echo(_RULE)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.name:<24} {user.role:<9} "
            f"{'yes' if user.is_active else 'no'}"
        )


@users_group.command("deactivate")
@click.option("--email", required=True)
@with_appcontext
def deactivate_user_cli(email):
    """Block sign-in and end the user's live sessions."""
    try:
        user, revoked = deactivate_user(get_user_by_email(email).id)
    except (ValidationError, NotFoundError) as e:
        _fail(str(e))
    click.echo(f"PASS Deactivated {user.email}; revoked {revoked} session(s)")


@users_group.command("activate")
@click.option("--email", required=True)
@with_appcontext
def activate_user_cli(email):
    try:
        user = reactivate_user(get_user_by_email(email).id)
    except (ValidationError, NotFoundError) as e:
        _fail(str(e))
    click.echo(f"PASS Reactivated {user.email}")


@click.group("closures")
def closures_group():
    """Monthly closure commands."""


@closures_group.command("generate")
@click.option("--month", type=int, help="Month (1-12), defaults to the current month")
@click.option("--year", type=int, help="Year, defaults to the current year")
@with_appcontext
def generate_closures_cli(month, year):
    """Build or refresh the closures of every active company for a month."""
    now = today()
    month = month or now.month
    year = year or now.year
    try:
        result = closure_service.generate_closures(month, year)
    except (ValidationError, StoreError) as e:
        _fail(str(e))

    click.echo(f"PASS Generated {result['count']} closure(s) for {month:02d}/{year}")
    for closure in result["closures"]:
        company = closure.company.name if closure.company else f"#{closure.company_id}"
        click.echo(
            f"     {company:<30} P={closure.total_p:<4} M={closure.total_m:<4} G={closure.total_g:<4} "
            f"{format_brl(closure.total_value_cents)}"
        )


@click.group("prices")
def prices_group():
    """Price table commands."""


@prices_group.command("show")
@with_appcontext
def show_prices_cli():
    table = settings_service.get_price_table()
    for size in MealSize:
        click.echo(f"{size.value}  {format_brl(table.unit_price(size))}")


@prices_group.command("set")
@click.option("--size", type=click.Choice([s.value for s in MealSize]), required=True)
@click.option("--price", "price_cents", type=int, required=True, help="Unit price in cents")
@with_appcontext
def set_price_cli(size, price_cents):
    try:
        table = settings_service.save_price_table({size: price_cents})
    except (ValidationError, StoreError) as e:
        _fail(str(e))
    click.echo(f"PASS {size} now costs {format_brl(table.unit_price(MealSize(size)))}")


def register_commands(app):
    """Attach every command group to app.cli."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(closures_group)
    app.cli.add_command(prices_group)
