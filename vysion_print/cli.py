"""Command-line interface."""

import argparse
import logging
import sys

from vysion_print.config import DEFAULT_HOST, DEFAULT_LAYOUT, DEFAULT_PORT, SCAN_INTERFACES
from vysion_print.discovery import NetworkScanner
from vysion_print.exceptions import VysionPrintError
from vysion_print.models import ServerState
from vysion_print.printer import PrinterService
from vysion_print.receipt import LAYOUTS, get_layout
from vysion_print.server import Router, run_server
from vysion_print.settings import PrinterSettings, SettingsStore, parse_printer_address


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vysion-print",
        description="Vysion Print - Local bridge between a web POS and a network receipt printer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              Start the print server on 0.0.0.0:3001
  %(prog)s -p 8080                      Use port 8080
  %(prog)s --printer 192.168.1.87       Save printer (default port 9100) and start
  %(prog)s --printer 192.168.1.87:9100  Save printer with explicit port
  %(prog)s --layout compact             Print for 58mm paper (32 columns)

Printer setup:
  %(prog)s --scan                       List printers on the local network
  %(prog)s --scan --select 1            Save the first printer found
  %(prog)s --test-print                 Print a test ticket and exit
  %(prog)s --open-drawer                Open the cash drawer and exit
        """,
    )

    parser.add_argument(
        "-H",
        "--host",
        default=DEFAULT_HOST,
        metavar="ADDR",
        help=f"Server bind address (default: {DEFAULT_HOST})",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=DEFAULT_PORT,
        metavar="PORT",
        help=f"Server port (default: {DEFAULT_PORT})",
    )

    parser.add_argument(
        "--printer",
        metavar="IP[:PORT]",
        help="Save this printer address before starting",
    )

    parser.add_argument(
        "--layout",
        choices=sorted(LAYOUTS),
        default=DEFAULT_LAYOUT,
        help=f"Receipt layout: wide = 42 columns, compact = 32 columns (default: {DEFAULT_LAYOUT})",
    )

    parser.add_argument(
        "--settings",
        metavar="FILE",
        help="Settings file holding the printer address",
    )

    parser.add_argument(
        "--interface",
        action="append",
        metavar="NAME",
        help=f"Network interface to scan from, repeatable (default: {', '.join(SCAN_INTERFACES)})",
    )

    parser.add_argument(
        "--scan",
        action="store_true",
        help="Scan the local /24 network for printers on port 9100 and exit",
    )

    parser.add_argument(
        "--select",
        type=int,
        metavar="N",
        help="With --scan: save the Nth printer found",
    )

    parser.add_argument(
        "--test-print",
        action="store_true",
        help="Send a test print and exit",
    )

    parser.add_argument(
        "--open-drawer",
        action="store_true",
        help="Open the cash drawer and exit",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging",
    )

    return parser


def scan(settings: PrinterSettings, interfaces, select=None) -> int:
    def show_progress(progress: float):
        print(f"\r  Scanning... {progress:4.0%}", end="", flush=True)

    scanner = NetworkScanner(interfaces=interfaces or SCAN_INTERFACES, on_progress=show_progress)
    printers = scanner.scan()
    print("")

    if not printers:
        print("No printers found.")
        return 1

    for number, printer in enumerate(printers, start=1):
        print(f"  {number}. {printer.display_name}:{printer.port}  ({printer.latency * 1000:.0f} ms)")

    if select is not None:
        if not 1 <= select <= len(printers):
            print(f"Error: --select must be between 1 and {len(printers)}")
            return 2
        chosen = printers[select - 1].endpoint()
        endpoint = settings.select(chosen.ip, chosen.port)
        print(f"Printer saved: {endpoint}")
    return 0


def main(argv=None):
    """Main entry point with CLI argument parsing."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = PrinterSettings.from_store(SettingsStore(args.settings))
    if args.printer:
        try:
            endpoint = parse_printer_address(args.printer)
        except ValueError as e:
            print(f"Error: {e}")
            return 2
        settings.select(endpoint.ip, endpoint.port)

    if args.scan:
        return scan(settings, args.interface, args.select)

    state = ServerState()
    service = PrinterService(settings, state, layout=get_layout(args.layout))

    if args.test_print or args.open_drawer:
        try:
            if args.test_print:
                service.test_print()
                print("Test print sent.")
            if args.open_drawer:
                service.kick_drawer()
                print("Drawer opened.")
        except VysionPrintError as e:
            print(f"Error: {e}")
            return 1
        return 0

    run_server(Router(service, state), args.host, args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
