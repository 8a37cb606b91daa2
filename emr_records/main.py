"""Interactive console for the patient records service."""

import logging
import shlex
import sys

from rich.console import Console
from rich.table import Table

from emr_records import settings
from emr_records.events import EventDispatcher
from emr_records.patient_records.database.connection import init_database
from emr_records.patient_records.database.query_utils import QueryExecutionError
from emr_records.patient_service import PatientService
from emr_records.patient_validator import ProcessingResult
from emr_records.search import ConfigurationError

console = Console()

HELP_TEXT = """Commands:
  search [--or] field=value ...    find patients (fname, mname, lname, street, city, state, postal_code, title, uuid)
  show <uuid>                      show one patient with previous names
  add field=value ...              create a patient (fname, lname, sex, dob required)
  update <uuid> field=value ...    update a patient
  names <pid>                      list previous names
  add-name <pid> field=value ...   record a previous name (prefix, first, middle, last, suffix, enddate)
  delete-name <id>                 delete a previous name
  help                             show this message
  quit                             leave"""


class CommandError(Exception):
    """Raised when a console command is malformed."""
    pass


def parse_assignments(args: list[str]) -> dict:
    """Turn ["fname=Jo", "lname=Smith"] into {"fname": "Jo", "lname": "Smith"}."""
    values = {}
    for arg in args:
        if "=" not in arg:
            raise CommandError(f"Expected field=value, got '{arg}'")
        key, value = arg.split("=", 1)
        values[key.strip()] = value
    return values


def patients_table(patients: list) -> Table:
    table = Table(title=f"{len(patients)} patient(s)")
    for column in ("pid", "uuid", "name", "dob", "city", "previous names"):
        table.add_column(column)
    for p in patients:
        name = " ".join(part for part in (p.title, p.fname, p.mname, p.lname) if part)
        previous = "; ".join(n.formatted_name for n in p.previous_names)
        table.add_row(str(p.pid), p.uuid, name, p.dob or "", p.city or "", previous)
    return table


def render_result(result: ProcessingResult):
    """Render a ProcessingResult as console output."""
    if not result.is_valid():
        lines = [f"[red]{field}[/red]: {'; '.join(messages)}"
                 for field, messages in result.validation_messages.items()]
        return "\n".join(lines)
    if result.internal_errors:
        return "[bold red]" + "; ".join(result.internal_errors) + "[/bold red]"
    if result.has_data() and isinstance(result.first(), dict):
        return "\n".join(f"pid={d['pid']} uuid={d['uuid']}" for d in result.data)
    return patients_table(result.data)


def handle_search(service: PatientService, args: list[str]):
    is_and = True
    if args and args[0] == "--or":
        is_and = False
        args = args[1:]
    return render_result(service.get_all(parse_assignments(args), is_and_condition=is_and))


def handle_show(service: PatientService, args: list[str]):
    if len(args) != 1:
        raise CommandError("Usage: show <uuid>")
    return render_result(service.get_one(args[0]))


def handle_add(service: PatientService, args: list[str]):
    return render_result(service.insert(parse_assignments(args)))


def handle_update(service: PatientService, args: list[str]):
    if len(args) < 2:
        raise CommandError("Usage: update <uuid> field=value ...")
    return render_result(service.update(args[0], parse_assignments(args[1:])))


def _pid_arg(args: list[str], usage: str) -> int:
    if not args or not args[0].isdigit():
        raise CommandError(usage)
    return int(args[0])


def handle_names(service: PatientService, args: list[str]):
    pid = _pid_arg(args, "Usage: names <pid>")
    entries = service.get_patient_name_history(pid)
    if not entries:
        return f"No previous names for patient {pid}."
    return "\n".join(f"[{e.id}] {e.formatted_name}" for e in entries)


def handle_add_name(service: PatientService, args: list[str]):
    pid = _pid_arg(args, "Usage: add-name <pid> field=value ...")
    values = parse_assignments(args[1:])
    record = {f"previous_name_{key}": value for key, value in values.items()}
    history_id = service.create_patient_name_history(pid, record)
    if history_id is None:
        return "That previous name is already recorded."
    return f"Recorded previous name {history_id}."


def handle_delete_name(service: PatientService, args: list[str]):
    history_id = _pid_arg(args, "Usage: delete-name <id>")
    if service.delete_patient_name_history_by_id(history_id):
        return f"Deleted previous name {history_id}."
    return f"No previous name with id {history_id}."


# Command handlers mapping
COMMAND_HANDLERS = {
    "search": handle_search,
    "show": handle_show,
    "add": handle_add,
    "update": handle_update,
    "names": handle_names,
    "add-name": handle_add_name,
    "delete-name": handle_delete_name,
}


def process_command(service: PatientService, line: str):
    """Process one console line and return something printable."""
    try:
        parts = shlex.split(line)
    except ValueError as e:
        raise CommandError(str(e)) from e
    if not parts:
        return ""
    command, args = parts[0].lower(), parts[1:]
    if command == "help":
        return HELP_TEXT
    handler = COMMAND_HANDLERS.get(command)
    if handler is None:
        raise CommandError(f"Unknown command '{command}'. Type 'help' for a list.")
    return handler(service, args)


def main():
    """Main console loop."""
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_database()
    service = PatientService(EventDispatcher())

    console.print("[bold blue]Patient records console[/bold blue]")
    console.print("Type 'help' for commands, 'quit' or 'exit' to leave.\n")

    is_tty = sys.stdin.isatty()

    while True:
        try:
            user_input = console.input("[bold green]records>[/bold green] ").strip()
            # Echo input when stdin is piped (not interactive)
            if not is_tty and user_input:
                console.print(f"[dim]{user_input}[/dim]")
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold blue]Goodbye![/bold blue]")
            break

        if not user_input:
            continue

        if user_input.lower() in ("quit", "exit"):
            console.print("[bold blue]Goodbye![/bold blue]")
            break

        try:
            console.print(process_command(service, user_input), "\n")
        except CommandError as e:
            console.print(f"[yellow]{e}[/yellow]\n")
        except (QueryExecutionError, ConfigurationError) as e:
            console.print(f"[bold red]Error:[/bold red] {e}\n")


if __name__ == "__main__":
    main()
