"""
Main CLI application using Typer.
"""

import base64
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig
from ..domain.dates import normalize_date, today_string
from ..domain.exceptions import SalonBookError
from ..domain.models import Appointment, AppointmentStatus
from ..domain.roster import DateWindow, RosterFilter, build_roster, roster_stats
from ..services.bootstrap import SalonApp, build_app
from ..services.booking_wizard import BookingWizard

app = typer.Typer(
    name="salonbook",
    help="Book and manage salon appointments",
    add_completion=False
)

console = Console()

STATUS_STYLES = {
    AppointmentStatus.PENDING: "yellow",
    AppointmentStatus.CONFIRMED: "green",
    AppointmentStatus.COMPLETED: "blue",
    AppointmentStatus.CANCELLED: "red",
}


class _State:
    config_file: Optional[Path] = None
    memory: bool = False
    salon: Optional[SalonApp] = None


state = _State()


@app.callback()
def main(
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    memory: Annotated[bool, typer.Option("--memory", help="Use the in-memory store regardless of the config.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Salon appointment booking.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    state.config_file = config_file
    state.memory = memory
    state.salon = None


def _salon() -> SalonApp:
    if state.salon is None:
        config = AppConfig.load_or_default(state.config_file)
        state.salon = build_app(config, force_memory=state.memory)
    return state.salon


@contextmanager
def _command_errors() -> Iterator[None]:
    """Report expected failures and exit with status 1."""
    try:
        yield
    except (SalonBookError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _status_text(status: AppointmentStatus) -> str:
    return f"[{STATUS_STYLES[status]}]{status.value}[/{STATUS_STYLES[status]}]"


def _negotiation_text(appt: Appointment) -> str:
    change = appt.pending_change
    if change is None:
        return ""
    who = "customer request" if change.proposed_by.value == "customer" else "salon proposal"
    return f"{who} → {change.new_date} {change.new_time} ({change.status.value})"


def _print_appointment(appt: Appointment, title: str) -> None:
    lines = [
        f"[bold]ID:[/bold] {appt.id}",
        f"[bold]Customer:[/bold] {appt.customer_name}",
        f"[bold]Service:[/bold] {appt.service_name}",
        f"[bold]Staff:[/bold] {appt.staff_name}",
        f"[bold]When:[/bold] {appt.date} {appt.time}",
        f"[bold]Status:[/bold] {_status_text(appt.status)}",
    ]
    if appt.pending_change:
        lines.append(f"[bold]Reschedule:[/bold] {_negotiation_text(appt)}")
    if appt.notes:
        lines.append(f"[bold]Notes:[/bold] {appt.notes}")
    console.print(Panel.fit("\n".join(lines), title=title))


def _appointments_table(appointments: List[Appointment], title: str, with_date: bool = False) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    if with_date:
        table.add_column("Date")
    table.add_column("Time", style="bold")
    table.add_column("Customer")
    table.add_column("Service")
    table.add_column("Staff")
    table.add_column("Status")
    table.add_column("Reschedule", style="dim")
    table.add_column("ID", style="dim")

    for appt in appointments:
        leading = [appt.date] if with_date else []
        table.add_row(
            *leading,
            appt.time,
            appt.customer_name,
            appt.service_name,
            appt.staff_name,
            _status_text(appt.status),
            _negotiation_text(appt),
            appt.id,
        )
    return table


def _print_grid(wizard: BookingWizard) -> None:
    table = Table(
        title=f"{wizard.staff.name if wizard.staff else '-'} · {wizard.date}",
        show_header=False,
    )
    states = wizard.time_slots()
    for row_start in range(0, len(states), 4):
        table.add_row(*[
            f"[red]{s.time} taken[/red]" if s.occupied else f"[green]{s.time}[/green]"
            for s in states[row_start:row_start + 4]
        ])
    console.print(table)


def _run_wizard(
    wizard: BookingWizard,
    service_id: Optional[str],
    staff_id: Optional[str],
    date: Optional[str],
    time: Optional[str],
    notes: Optional[str],
) -> Appointment:
    # 1. SERVICE
    if service_id is None:
        console.print("[bold]1️⃣  Service[/bold]")
        for idx, service in enumerate(wizard.services, 1):
            console.print(f"  {idx}. {service.name} ({service.duration_min} min, {service.price} ₺)")
        choice = typer.prompt("→ Service number", default="1", type=int)
        service_id = wizard.services[choice - 1].id if 0 < choice <= len(wizard.services) else ""
    wizard.select_service(service_id)

    # 2. STAFF
    if staff_id is None:
        console.print("\n[bold]2️⃣  Staff[/bold]")
        for idx, member in enumerate(wizard.staff_list, 1):
            console.print(f"  {idx}. {member.name} ({member.specialty or '-'})")
        choice = typer.prompt("→ Staff number", default="1", type=int)
        staff_id = wizard.staff_list[choice - 1].id if 0 < choice <= len(wizard.staff_list) else ""
    wizard.select_staff(staff_id)

    # 3. DATE & TIME
    if date is None:
        date = typer.prompt("\n→ Day (YYYY-MM-DD)", default=wizard.today).strip()
    wizard.select_date(date)
    if time is None:
        _print_grid(wizard)
        time = typer.prompt("→ Time (HH:MM)").strip()
    wizard.select_time(time)

    # 4. CONFIRM
    return wizard.confirm(notes)


@app.command()
def slots(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day (YYYY-MM-DD), defaults to today")] = None,
):
    """
    Show the time grid of a staff member with occupied slots marked.
    """
    with _command_errors():
        salon = _salon()
        staff = salon.accounts.get_user(staff_id)
        day = normalize_date(date) if date else today_string()
        availability = salon.appointments.availability
        appointments = salon.appointments.list_all()
        states = availability.slot_states(staff.id, day, appointments)
        free = availability.free_slots(staff.id, day, appointments)

        table = Table(title=f"{staff.name} · {day}", show_header=True, header_style="bold cyan")
        table.add_column("Time", style="bold")
        table.add_column("State")
        for slot_state in states:
            table.add_row(slot_state.time, "[red]occupied[/red]" if slot_state.occupied else "[green]free[/green]")
        console.print()
        console.print(table)
        console.print(f"[dim]{len(free)} of {len(states)} slots free[/dim]")
        console.print()


@app.command()
def book(
    phone: Annotated[str, typer.Option("--phone", help="Customer phone number")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True)],
    service_id: Annotated[Optional[str], typer.Option("--service", help="Service id")] = None,
    staff_id: Annotated[Optional[str], typer.Option("--staff", help="Staff member id")] = None,
    date: Annotated[Optional[str], typer.Option("--date", help="Day (YYYY-MM-DD)")] = None,
    time: Annotated[Optional[str], typer.Option("--time", help="Time (HH:MM)")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes")] = None,
):
    """
    Book an appointment. Missing selections are asked for interactively.
    """
    with _command_errors():
        salon = _salon()
        customer = salon.accounts.login(phone, password, panel="customer")
        salon.cache.start()
        try:
            wizard = BookingWizard(customer, salon.appointments, salon.cache, salon.accounts.list_staff())
            appointment = _run_wizard(wizard, service_id, staff_id, date, time, notes)
        finally:
            salon.cache.stop()
        _print_appointment(appointment, "✓ Appointment requested")


@app.command()
def roster(
    search: Annotated[str, typer.Option("--search", "-s", help="Customer, service or staff name")] = "",
    status: Annotated[str, typer.Option("--status", help="pending/confirmed/completed/cancelled/all")] = "all",
    staff_id: Annotated[str, typer.Option("--staff", help="Staff member id or 'all'")] = "all",
    window: Annotated[DateWindow, typer.Option("--window", "-w", help="upcoming, past or all")] = DateWindow.UPCOMING,
):
    """
    Show appointments grouped by day for the salon management.
    """
    with _command_errors():
        salon = _salon()
        appointments = salon.appointments.list_all()
        today = today_string()

        stats = roster_stats(appointments, today)
        console.print(
            f"\n[bold cyan]Total:[/bold cyan] {stats.total}   "
            f"[bold cyan]Pending change requests:[/bold cyan] {stats.pending_change_requests}   "
            f"[bold cyan]Today:[/bold cyan] {stats.today}\n"
        )

        groups = build_roster(
            appointments,
            RosterFilter(search=search, status=status, staff_id=staff_id, date_window=window),
            today,
        )
        if not groups:
            console.print("[yellow]No appointments match the filters.[/yellow]\n")
            return

        for group in groups:
            title = "Today" if group.date == today else group.date
            console.print(_appointments_table(group.appointments, title))
            console.print()


@app.command("my-appointments")
def my_appointments(
    phone: Annotated[str, typer.Option("--phone", help="Customer phone number")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True)],
):
    """
    List a customer's own appointments, latest first.
    """
    with _command_errors():
        salon = _salon()
        customer = salon.accounts.login(phone, password, panel="customer")
        appointments = salon.appointments.list_for_customer(customer.id)
        if not appointments:
            console.print("[yellow]No appointments yet.[/yellow]")
            return
        console.print(_appointments_table(appointments, f"Appointments of {customer.name}", with_date=True))
        open_count = sum(1 for appt in appointments if not appt.status.is_terminal)
        console.print(f"[dim]{open_count} open, {len(appointments) - open_count} closed[/dim]")


@app.command()
def status(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_status: Annotated[AppointmentStatus, typer.Argument(help="New status")],
):
    """
    Set an appointment's status (confirm, complete, ...).
    """
    with _command_errors():
        appt = _salon().appointments.update_status(appointment_id, new_status.value)
        _print_appointment(appt, "✓ Status updated")


@app.command()
def cancel(appointment_id: Annotated[str, typer.Argument(help="Appointment id")]):
    """
    Cancel an appointment. The slot becomes free again.
    """
    with _command_errors():
        appt = _salon().appointments.cancel(appointment_id)
        _print_appointment(appt, "✓ Appointment cancelled")


@app.command()
def delete(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
):
    """
    Permanently delete an appointment.
    """
    with _command_errors():
        if not yes:
            typer.confirm(f"Permanently delete appointment {appointment_id}?", abort=True)
        _salon().appointments.delete(appointment_id)
        console.print("[green]✓ Appointment deleted.[/green]")


@app.command("request-change")
def request_change(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_date: Annotated[str, typer.Option("--date", help="Requested day (YYYY-MM-DD)")],
    new_time: Annotated[str, typer.Option("--time", help="Requested time (HH:MM)")],
):
    """
    Customer asks the salon to move an appointment.
    """
    with _command_errors():
        appt = _salon().appointments.request_change(appointment_id, new_date, new_time)
        _print_appointment(appt, "✓ Change request sent, waiting for the salon")


@app.command("withdraw-change")
def withdraw_change(appointment_id: Annotated[str, typer.Argument(help="Appointment id")]):
    """
    Customer withdraws a pending change request.
    """
    with _command_errors():
        appt = _salon().appointments.withdraw_change_request(appointment_id)
        _print_appointment(appt, "✓ Change request withdrawn")


@app.command("approve-change")
def approve_change(appointment_id: Annotated[str, typer.Argument(help="Appointment id")]):
    """
    Salon approves the customer's change request.
    """
    with _command_errors():
        service = _salon().appointments
        request = service.get(appointment_id).change_request
        appt = service.approve_change_request(
            appointment_id,
            request.new_date if request else None,
            request.new_time if request else None,
        )
        _print_appointment(appt, "✓ Change approved")


@app.command("reject-change")
def reject_change(appointment_id: Annotated[str, typer.Argument(help="Appointment id")]):
    """
    Salon rejects the customer's change request.
    """
    with _command_errors():
        appt = _salon().appointments.reject_change_request(appointment_id)
        _print_appointment(appt, "Change request rejected")


@app.command()
def propose(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_date: Annotated[str, typer.Option("--date", help="Proposed day (YYYY-MM-DD)")],
    new_time: Annotated[str, typer.Option("--time", help="Proposed time (HH:MM)")],
):
    """
    Salon proposes a new slot to the customer.
    """
    with _command_errors():
        appt = _salon().appointments.propose_admin_change(appointment_id, new_date, new_time)
        _print_appointment(appt, "✓ Proposal sent to the customer")


@app.command("accept-proposal")
def accept_proposal(appointment_id: Annotated[str, typer.Argument(help="Appointment id")]):
    """
    Customer accepts the salon's proposal.
    """
    with _command_errors():
        appt = _salon().appointments.accept_admin_proposal(appointment_id)
        _print_appointment(appt, "✓ New time confirmed")


@app.command("reject-proposal")
def reject_proposal(appointment_id: Annotated[str, typer.Argument(help="Appointment id")]):
    """
    Customer rejects the salon's proposal.
    """
    with _command_errors():
        appt = _salon().appointments.reject_admin_proposal(appointment_id)
        _print_appointment(appt, "Proposal rejected")


@app.command("admin-book")
def admin_book(
    customer_name: Annotated[str, typer.Option("--name", help="Customer name")],
    customer_phone: Annotated[str, typer.Option("--phone", help="Customer phone number")],
    staff_id: Annotated[str, typer.Option("--staff", help="Staff member id")],
    date: Annotated[str, typer.Option("--date", help="Day (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", help="Time (HH:MM)")] = "12:00",
    service_id: Annotated[Optional[str], typer.Option("--service", help="Service id")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes")] = None,
):
    """
    Salon enters a confirmed appointment, creating the customer account if needed.
    """
    with _command_errors():
        salon = _salon()
        roster_members = salon.accounts.list_staff()
        staff = next((m for m in roster_members if m.id == staff_id), None)
        if staff is None:
            raise SalonBookError(f"'{staff_id}' is not a member of the salon staff")
        service = salon.appointments.find_service(service_id or salon.appointments.catalog[0].id)
        customer = salon.accounts.ensure_customer_exists(customer_name, customer_phone)
        appt = salon.appointments.admin_book(customer, staff, service, date, time, roster_members, notes)
        _print_appointment(appt, f"✓ Appointment created for {customer.name}")


@app.command()
def edit(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    staff_id: Annotated[Optional[str], typer.Option("--staff", help="Staff member id")] = None,
    date: Annotated[Optional[str], typer.Option("--date", help="Day (YYYY-MM-DD)")] = None,
    time: Annotated[Optional[str], typer.Option("--time", help="Time (HH:MM)")] = None,
    service_id: Annotated[Optional[str], typer.Option("--service", help="Service id")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes")] = None,
):
    """
    Salon edits an appointment directly, without asking the customer.
    """
    with _command_errors():
        salon = _salon()
        current = salon.appointments.get(appointment_id)
        roster_members = salon.accounts.list_staff()
        wanted_staff = staff_id or current.staff_id
        staff = next((m for m in roster_members if m.id == wanted_staff), None)
        if staff is None:
            raise SalonBookError(f"'{wanted_staff}' is not a member of the salon staff")
        appt = salon.appointments.edit_details(
            appointment_id,
            staff,
            salon.appointments.find_service(service_id or current.service_id),
            date or current.date,
            time or current.time,
            roster_members,
            notes if notes is not None else current.notes,
        )
        _print_appointment(appt, "✓ Appointment updated")


@app.command()
def register(
    name: Annotated[str, typer.Option("--name", help="Full name")],
    phone: Annotated[str, typer.Option("--phone", help="Phone number")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, confirmation_prompt=True)],
):
    """
    Create a customer account.
    """
    with _command_errors():
        user = _salon().accounts.register_customer(name, phone, password)
        console.print(f"[green]✓ Welcome, {user.name}![/green] (id: {user.id})")


@app.command()
def login(
    phone: Annotated[str, typer.Option("--phone", help="Phone number")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True)],
    admin: Annotated[bool, typer.Option("--admin", help="Sign in to the admin panel")] = False,
):
    """
    Check credentials.
    """
    with _command_errors():
        user = _salon().accounts.login(phone, password, panel="admin" if admin else "customer")
        console.print(f"[green]✓ Signed in as {user.name}[/green] ({user.role.value}, id: {user.id})")


@app.command("add-staff")
def add_staff(
    name: Annotated[str, typer.Option("--name", help="Full name")],
    phone: Annotated[str, typer.Option("--phone", help="Phone number")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True)],
    specialty: Annotated[str, typer.Option("--specialty")] = "Stylist",
):
    """
    Add a staff member.
    """
    with _command_errors():
        user = _salon().accounts.create_staff_member(name, phone, password, specialty)
        console.print(f"[green]✓ Staff member added:[/green] {user.name} (id: {user.id})")


@app.command()
def staff():
    """
    List everyone who can be booked.
    """
    with _command_errors():
        members = _salon().accounts.list_staff()

        table = Table(title="Staff", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="bold yellow")
        table.add_column("Specialty")
        table.add_column("Role", style="dim")
        table.add_column("ID", style="dim")
        for member in members:
            table.add_row(member.name, member.specialty or "-", member.role.value, member.id)

        console.print()
        console.print(table)
        console.print()


@app.command()
def consult(
    description: Annotated[str, typer.Argument(help="Describe your hair and what you would like")],
    photo: Annotated[Optional[Path], typer.Option("--photo", help="JPEG photo of your face")] = None,
):
    """
    Ask the AI hairstyle consultant for recommendations.
    """
    with _command_errors():
        image = None
        if photo is not None:
            image = base64.b64encode(photo.read_bytes()).decode("ascii")

        consultation = _salon().consultation
        if not consultation.is_available:
            console.print("[yellow]⚠  No Gemini API key configured, showing standard suggestions.[/yellow]\n")

        for rec in consultation.analyze(description, image):
            console.print(Panel.fit(
                f"{rec.description}\n\n"
                f"[bold]Face shape:[/bold] {rec.face_shape_match}\n"
                f"[bold]Maintenance:[/bold] {rec.maintenance_level}",
                title=f"✂ {rec.name}",
            ))


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
