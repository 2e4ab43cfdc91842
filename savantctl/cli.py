"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import typer

from savantctl.core.errors import SavantError
from savantctl.core.keys import format_key_action, key_catalog, modifier_groups, modifier_symbol
from savantctl.core.model import PEDAL_NAMES, EventKind, KeyboardEvent, Preset, ProgrammingOutcome
from savantctl.core.monitor import describe_event
from savantctl.core.service import PLAY_MODE_WAIT_S, SavantService

app = typer.Typer(help="Kinesis Savant Elite foot pedal programmer")
config_app = typer.Typer(help="Inspect the pedal configuration and manage saved profiles")
app.add_typer(config_app, name="config")

EXIT_PARTIAL = 2


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log protocol negotiation details"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> SavantService:
    service = SavantService()
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _fail(exc: SavantError) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _outcome_payload(outcome: ProgrammingOutcome) -> dict[str, Any]:
    return {
        "dry_run": outcome.dry_run,
        "ok": outcome.ok,
        "all_pedals_ok": outcome.all_pedals_ok,
        "eeprom_save_ok": outcome.eeprom_save_ok,
        "disconnected_mid_session": outcome.disconnected_mid_session,
        "changes_lost": outcome.changes_lost,
        "state": outcome.state.value,
        "pedals": [
            {
                "pedal": p.name,
                "modifiers": p.action.modifiers,
                "key": p.action.key,
                "display": format_key_action(p.action),
                "attempted": p.attempted,
                "succeeded": p.succeeded,
                "format": p.format_label,
                "verification": p.verification.value if p.verification else None,
                "error": p.error,
            }
            for p in outcome.pedals
        ],
        "next_step": outcome.next_step,
    }


def _report_outcome(outcome: ProgrammingOutcome, *, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(_outcome_payload(outcome), indent=2))
    else:
        if outcome.dry_run:
            typer.echo("Dry run: would program")
        for pedal in outcome.pedals:
            line = f"  {pedal.name:<6} {format_key_action(pedal.action)}"
            if not outcome.dry_run:
                if pedal.succeeded:
                    line += f"  ok via {pedal.format_label}"
                    if pedal.verification is not None:
                        line += f" ({pedal.verification.value})"
                elif pedal.attempted:
                    line += f"  FAILED: {pedal.error}"
                else:
                    line += "  not attempted"
            typer.echo(line)
        if not outcome.dry_run:
            if outcome.changes_lost:
                done = ", ".join(outcome.programmed_before_disconnect) or "none"
                typer.echo(
                    f"Device disconnected before the EEPROM save; changes were lost "
                    f"(programmed before disconnect: {done})",
                    err=True,
                )
            elif outcome.eeprom_save_ok:
                typer.echo(f"EEPROM saved via {outcome.save_format_label}")
            else:
                typer.echo("EEPROM save failed; changes may not persist after unplug", err=True)
            if outcome.failed_pedals:
                typer.echo(f"Failed pedals: {', '.join(outcome.failed_pedals)}", err=True)
        typer.echo(f"Next: {outcome.next_step}")

    if not outcome.dry_run and not outcome.ok:
        raise typer.Exit(code=EXIT_PARTIAL)


@app.command("status")
def status(as_json: bool = typer.Option(False, "--json", help="Emit JSON")) -> None:
    """Report whether the pedal is attached and in which mode."""
    try:
        service = _build_service()
        survey = service.status()
    except SavantError as exc:
        raise _fail(exc) from None

    if as_json:
        typer.echo(
            json.dumps(
                {
                    "play": survey.found_play,
                    "program": survey.found_program,
                    "warnings": list(survey.warnings),
                }
            )
        )
    else:
        for warning in survey.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        if survey.found_program:
            typer.echo("Savant Elite found in PROGRAM mode; ready to program")
        elif survey.found_play:
            typer.echo("Savant Elite found in PLAY mode; flip the switch to Program and replug to program it")
        else:
            typer.echo("No Savant Elite found")
    if not survey.found_play and not survey.found_program:
        raise typer.Exit(code=1)


@app.command("info")
def info() -> None:
    """Show attached pedal interfaces and the last programmed configuration."""
    try:
        service = _build_service()
        survey = service.status()
        config = service.last_config()
    except SavantError as exc:
        raise _fail(exc) from None

    for warning in survey.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    for identity in survey.play + survey.program:
        mode = "program" if identity in survey.program else "play"
        serial = f" serial={identity.serial}" if identity.serial else ""
        typer.echo(
            f"{identity.vendor_id:04x}:{identity.product_id:04x} bus {identity.bus} "
            f"address {identity.address} ({mode}){serial}"
        )
    for hid_info in survey.hid_play + survey.hid_program:
        typer.echo(
            f"  interface {hid_info.interface_number} usage {hid_info.usage_page:#04x}/{hid_info.usage:#04x}"
        )
    if not survey.found_play and not survey.found_program:
        typer.echo("No Savant Elite attached")

    if config is None:
        typer.echo("No saved pedal configuration")
        return
    typer.echo("Last programmed configuration:")
    for name in ("left", "middle", "right"):
        value = getattr(config, name)
        typer.echo(f"  {name:<6} {value} ({format_key_action(value)})")


@app.command("monitor")
def monitor(
    duration: int = typer.Option(30, "--duration", "-d", min=0, help="Seconds to watch (0 = until Ctrl+C)"),
) -> None:
    """Print the key reports the pedals send in play mode."""
    try:
        service = _build_service()
        _print_events(service.monitor(duration or None))
    except KeyboardInterrupt:
        typer.echo("")
    except SavantError as exc:
        raise _fail(exc) from None


def _print_events(events: Iterator[KeyboardEvent]) -> None:
    typer.echo("Press pedals to see what they send; Ctrl+C to stop.")
    for event in events:
        label = "PRESS  " if event.kind is EventKind.PRESS else "RELEASE"
        typer.echo(f"{label} {describe_event(event)} ({event.report.hex()})")


def _monitor_after_program(service: SavantService) -> None:
    typer.echo("")
    typer.echo("Switch the pedal to Play mode and replug the USB cable.")
    typer.echo(f"Waiting for the pedal... ({PLAY_MODE_WAIT_S:.0f}s timeout, Ctrl+C to cancel)")
    try:
        found = service.wait_for_play_mode(
            on_reminder=lambda remaining: typer.echo(
                f"Still waiting... {remaining}s remaining (switch to Play mode and replug USB)"
            )
        )
        if not found:
            typer.echo(f"Timeout: pedal not detected in play mode after {PLAY_MODE_WAIT_S:.0f}s.", err=True)
            typer.echo("Run savantctl monitor manually after switching modes.")
            return
        typer.echo("Pedal detected in play mode.")
        _print_events(service.monitor(None))
    except KeyboardInterrupt:
        typer.echo("")
    except SavantError as exc:
        raise _fail(exc) from None


@app.command("program")
def program(
    left: str = typer.Option("cmd+c", "--left", help="Left pedal action, e.g. cmd+c"),
    middle: str = typer.Option("cmd+a", "--middle", help="Middle pedal action"),
    right: str = typer.Option("cmd+v", "--right", help="Right pedal action"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate and preview without touching the device"),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip the advisory read-back"),
    monitor_after: bool = typer.Option(
        False, "--monitor", "-m", help="After programming, wait for Play mode and monitor the pedals"
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Program all three pedals and save them to EEPROM."""
    try:
        service = _build_service()
        outcome = service.program(left, middle, right, dry_run=dry_run, verify=not no_verify)
    except SavantError as exc:
        raise _fail(exc) from None
    _report_outcome(outcome, as_json=as_json)
    if monitor_after and not dry_run:
        _monitor_after_program(service)


def _preset_payload(p: Preset) -> dict[str, str]:
    return {
        "name": p.name,
        "description": p.description,
        "left": p.left,
        "middle": p.middle,
        "right": p.right,
    }


def _echo_presets(presets: list[Preset], *, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps({"presets": [_preset_payload(p) for p in presets]}, indent=2))
        return
    for p in presets:
        typer.echo(f"{p.name}: {p.description}")
        typer.echo(f"  left={p.left} middle={p.middle} right={p.right}")


@app.command("preset")
def preset(
    name: str | None = typer.Argument(None, help="Preset to program"),
    list_all: bool = typer.Option(False, "--list", help="List presets instead of programming"),
    show: str | None = typer.Option(None, "--show", metavar="NAME", help="Show one preset without programming"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without touching the device"),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip the advisory read-back"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Program the pedals from a named preset, or list and show presets."""
    if not (name or list_all or show):
        typer.echo("Error: give a preset NAME, --list, or --show NAME", err=True)
        raise typer.Exit(code=1)
    try:
        service = _build_service()
        if list_all:
            _echo_presets(service.list_presets(), as_json=as_json)
            return
        if show:
            found = service.preset(show)
            if as_json:
                typer.echo(json.dumps(_preset_payload(found), indent=2))
            else:
                typer.echo(f"{found.name}: {found.description}")
                _echo_pedals(found.left, found.middle, found.right)
            return
        outcome = service.program_preset(name, dry_run=dry_run, verify=not no_verify)
    except SavantError as exc:
        raise _fail(exc) from None
    _report_outcome(outcome, as_json=as_json)


@app.command("presets")
def list_presets(as_json: bool = typer.Option(False, "--json", help="Emit JSON")) -> None:
    """List available presets."""
    try:
        service = _build_service()
        presets = service.list_presets()
    except SavantError as exc:
        raise _fail(exc) from None
    _echo_presets(presets, as_json=as_json)


@app.command("keys")
def keys(as_json: bool = typer.Option(False, "--json", help="Emit JSON")) -> None:
    """List the modifiers and keys a pedal action can use."""
    groups = modifier_groups()
    catalog = key_catalog()
    if as_json:
        payload = {
            "modifiers": [
                {"names": names, "bit": bit, "symbol": modifier_symbol(bit)} for bit, names in groups
            ],
            "keys": catalog,
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo("Modifiers:")
    for bit, names in groups:
        typer.echo(f"  {modifier_symbol(bit)}  {', '.join(names)}")
    typer.echo("Keys:")
    for category, tokens in catalog.items():
        typer.echo(f"  {category.replace('_', ' ')}: {' '.join(tokens)}")
    typer.echo("Combine with '+', e.g. cmd+shift+z")


@app.command("doctor")
def doctor(as_json: bool = typer.Option(False, "--json", help="Emit JSON")) -> None:
    """Check the install, the attached pedal, and saved configuration."""
    try:
        service = _build_service()
        report = service.doctor()
    except SavantError as exc:
        raise _fail(exc) from None

    summary = {
        "total": len(report.checks),
        "passed": report.passed,
        "warnings": report.warnings,
        "failed": report.failed,
        "healthy": report.healthy,
    }
    if as_json:
        payload = {
            "version": report.version,
            "platform": report.platform,
            "arch": report.arch,
            "checks": [
                {"name": c.name, "status": c.status.value, "message": c.message} for c in report.checks
            ],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        typer.echo(f"savantctl version {report.version} on {report.platform}/{report.arch}")
        for check in report.checks:
            typer.echo(f"  [{check.status.value.upper():<4}] {check.name:<11} {check.message}")
        typer.echo(
            f"Summary: {report.passed} passed, {report.warnings} warnings, {report.failed} failed "
            f"of {summary['total']} checks"
        )
    if not report.healthy:
        raise typer.Exit(code=1)


@app.command("raw-cmd")
def raw_cmd(
    cmd: str = typer.Option(..., "--cmd", help="Command byte in hex, e.g. b5"),
    data: str = typer.Option("", "--data", help="Data bytes in hex, e.g. 00010203"),
    interface: int = typer.Option(0, "--interface", min=0, max=255, help="Interface number"),
) -> None:
    """Send one raw command to a pedal in program mode (expert use)."""
    try:
        service = _build_service()
        result = service.raw_command(cmd, data, interface=interface)
    except SavantError as exc:
        raise _fail(exc) from None
    typer.echo(
        f"Sent 0x{result.opcode:02X} data={result.payload_hex or '-'} via {result.format_label}"
    )
    if result.response_hex:
        typer.echo(f"Response ({len(result.response_hex) // 2} bytes): {result.response_hex}")
    elif result.read_error:
        typer.echo(f"Warning: could not read a response: {result.read_error}", err=True)
    else:
        typer.echo("No response")


def _echo_pedals(left: str, middle: str, right: str) -> None:
    for name, value in zip(PEDAL_NAMES, (left, middle, right)):
        typer.echo(f"  {name.upper():<6} {value} ({format_key_action(value)})")


@config_app.command("show")
def config_show(
    name: str | None = typer.Argument(None, help="Saved profile to show (default: current configuration)"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Print the current configuration or a saved profile."""
    try:
        service = _build_service()
        config = service.profile(name) if name else service.last_config()
    except SavantError as exc:
        raise _fail(exc) from None
    if config is None:
        typer.echo("No saved pedal configuration", err=True)
        raise typer.Exit(code=1)

    if as_json:
        payload = {"name": name, "left": config.left, "middle": config.middle, "right": config.right}
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo(f"Profile '{name}':" if name else "Current configuration:")
    _echo_pedals(config.left, config.middle, config.right)


@config_app.command("check")
def config_check(
    path: Path,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Validate a pedals.conf file."""
    try:
        service = _build_service()
        result = service.check_config(path)
    except SavantError as exc:
        raise _fail(exc) from None

    if as_json:
        typer.echo(json.dumps({"path": result.path, "valid": result.valid, "errors": list(result.errors)}))
    elif result.valid:
        typer.echo(f"{result.path}: valid")
    else:
        for error in result.errors:
            typer.echo(f"Error: {error}", err=True)
    if not result.valid:
        raise typer.Exit(code=1)


@config_app.command("save")
def config_save(
    name: str,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile"),
) -> None:
    """Save the current configuration as a named profile."""
    try:
        service = _build_service()
        path = service.save_profile(name, force=force)
    except SavantError as exc:
        raise _fail(exc) from None
    typer.echo(f"Saved profile '{name}' to {path}")


@config_app.command("list")
def config_list(as_json: bool = typer.Option(False, "--json", help="Emit JSON")) -> None:
    """List saved profiles."""
    try:
        service = _build_service()
        profiles = service.list_profiles()
    except SavantError as exc:
        raise _fail(exc) from None

    if as_json:
        payload = {
            "profiles": [
                {"name": p.name, "path": p.path, "left": p.left, "middle": p.middle, "right": p.right}
                for p in profiles
            ]
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    if not profiles:
        typer.echo("No saved profiles")
        return
    for p in profiles:
        if p.complete:
            typer.echo(f"{p.name}: left={p.left} middle={p.middle} right={p.right}")
        else:
            typer.echo(f"{p.name}: (incomplete)")


@config_app.command("delete")
def config_delete(
    name: str,
    force: bool = typer.Option(False, "--force", "-f", help="Delete without asking"),
) -> None:
    """Delete a saved profile."""
    if not force and not typer.confirm(f"Delete profile '{name}'?"):
        typer.echo("Not deleted")
        raise typer.Exit(code=1)
    try:
        service = _build_service()
        service.delete_profile(name)
    except SavantError as exc:
        raise _fail(exc) from None
    typer.echo(f"Deleted profile '{name}'")


@config_app.command("history")
def config_history(as_json: bool = typer.Option(False, "--json", help="Emit JSON")) -> None:
    """Show recently programmed configurations, newest first."""
    try:
        service = _build_service()
        entries = service.history_entries()
    except SavantError as exc:
        raise _fail(exc) from None

    if as_json:
        history = [
            {"timestamp": e.timestamp, "left": e.left, "middle": e.middle, "right": e.right}
            for e in entries
        ]
        typer.echo(json.dumps({"history": history, "count": len(history)}, indent=2))
        return
    if not entries:
        typer.echo("No programming history yet")
        return
    for e in entries:
        typer.echo(f"{e.timestamp}  left={e.left} middle={e.middle} right={e.right}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
