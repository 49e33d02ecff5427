"""Render orders into ESC/POS byte streams."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from escpos.printer import Dummy

from vysion_print import commands
from vysion_print.config import DEFAULT_BUSINESS_NAME, DEFAULT_LAYOUT
from vysion_print.models import BusinessProfile, Order, PrinterEndpoint


@dataclass(frozen=True)
class ReceiptLayout:
    """
    Column width and darkness profile for a paper roll.

    Attributes:
        name: Preset name used on the command line.
        width: Characters per line used for separators and two-column lines.
        darken: Print with double-strike, bold, and wider line and character
            spacing so faint thermal heads stay readable.

    """

    name: str
    width: int
    darken: bool


LAYOUTS = {
    "wide": ReceiptLayout("wide", 42, True),  # 80mm paper
    "compact": ReceiptLayout("compact", 32, False),  # 58mm paper
}


def get_layout(name: str = DEFAULT_LAYOUT) -> ReceiptLayout:
    try:
        return LAYOUTS[name]
    except KeyError:
        raise ValueError(f"Unknown layout {name!r}, choose from {', '.join(LAYOUTS)}") from None


def pad_line(left: str, right: str, width: int, minimum: int = 1) -> str:
    """Justify left and right text on one line, never with less than `minimum` spaces between."""
    padding = max(minimum, width - len(left) - len(right))
    return left + " " * padding + right


def format_price(amount: Decimal) -> str:
    return f"€{amount:.2f}"


class ReceiptBuilder:
    """Accumulates commands and text on an escpos Dummy printer."""

    def __init__(self, layout: ReceiptLayout):
        self.layout = layout
        self._printer = Dummy()

    def raw(self, *chunks: bytes) -> ReceiptBuilder:
        for chunk in chunks:
            self._printer._raw(chunk)
        return self

    def text(self, text: str) -> ReceiptBuilder:
        return self.raw(commands.encode_text(text))

    def line(self, text: str = "") -> ReceiptBuilder:
        return self.text(text + "\n")

    def separator(self) -> ReceiptBuilder:
        return self.line("-" * self.layout.width)

    def price_line(self, label: str, amount: Decimal) -> ReceiptBuilder:
        """Label left, euro amount right; the euro sign is the code page glyph."""
        price = f"{amount:.2f}"
        line = pad_line(label, format_price(amount), self.layout.width)
        self.text(line[: -len(price) - 1])
        self.raw(commands.EURO)
        return self.line(price)

    @property
    def output(self) -> bytes:
        return self._printer.output


def _start(builder: ReceiptBuilder) -> None:
    builder.raw(commands.INITIALIZE, commands.CODE_PAGE_PC858)
    if builder.layout.darken:
        builder.raw(
            commands.EMPHASIZE_ON,
            commands.BOLD_ON,
            commands.LINE_SPACING_WIDE,
            commands.CHAR_SPACING_WIDE,
        )


def _finish(builder: ReceiptBuilder, feed: int) -> None:
    builder.raw(commands.LINE_FEED * feed)
    if builder.layout.darken:
        builder.raw(commands.EMPHASIZE_OFF)
    builder.raw(commands.CUT_FULL)


def encode_receipt(
    order: Order,
    business: BusinessProfile | None = None,
    layout: ReceiptLayout | None = None,
    now: datetime | None = None,
) -> bytes:
    """
    Encode a customer receipt.

    The result only depends on the arguments; pass `now` to pin the
    timestamp printed next to the order number.
    """
    business = business or BusinessProfile()
    builder = ReceiptBuilder(layout or get_layout())
    width = builder.layout.width
    now = now or datetime.now()

    _start(builder)

    # Header
    builder.line()
    builder.raw(commands.ALIGN_CENTER, commands.BOLD_ON, commands.SIZE_DOUBLE)
    builder.line(business.name or DEFAULT_BUSINESS_NAME)
    builder.raw(commands.SIZE_NORMAL)
    if business.address:
        builder.line(business.address)
    if business.city:
        builder.line(f"{business.postal_code} {business.city}" if business.postal_code else business.city)
    if business.phone:
        builder.line(f"Tel: {business.phone}")
    builder.raw(commands.BOLD_OFF)
    builder.line()
    builder.separator()

    # Order type banner
    builder.raw(commands.BOLD_ON, commands.SIZE_DOUBLE_HEIGHT)
    builder.line(order.order_type.banner)
    builder.raw(commands.SIZE_NORMAL, commands.BOLD_OFF)
    builder.line()

    builder.raw(commands.ALIGN_LEFT)
    builder.line(pad_line(f"Bon #{order.order_number}", now.strftime("%d-%m-%y, %H:%M"), width, minimum=2))
    if order.staff_name:
        builder.raw(commands.ALIGN_CENTER)
        builder.line(f"Bediend door: {order.staff_name}")
    if order.table_number:
        builder.raw(commands.ALIGN_CENTER)
        builder.line(f"Tafel: {order.table_number}")
    builder.line()
    builder.separator()
    builder.line()

    # Items
    builder.raw(commands.ALIGN_LEFT)
    for item in order.items:
        builder.raw(commands.BOLD_ON, commands.SIZE_DOUBLE_HEIGHT)
        builder.price_line(f"{item.quantity}x {item.name}", item.total_price)
        builder.raw(commands.SIZE_NORMAL, commands.BOLD_OFF)
        if item.selected_options:
            builder.line()
            for option in item.selected_options:
                builder.line(f"   + {option}")
        builder.line()
    builder.separator()

    # Totals
    builder.raw(commands.BOLD_ON, commands.SIZE_DOUBLE_HEIGHT)
    builder.price_line("Subtotaal", order.subtotal)
    builder.price_line("BTW", order.tax)
    builder.raw(commands.SIZE_NORMAL, commands.BOLD_OFF)
    builder.line()
    builder.separator()

    builder.line()
    builder.raw(commands.BOLD_ON, commands.SIZE_DOUBLE_HEIGHT)
    builder.price_line("TOTAAL", order.total)
    builder.raw(commands.SIZE_NORMAL, commands.BOLD_OFF)

    builder.line()
    builder.raw(commands.ALIGN_CENTER)
    builder.line(f"Betaald met: {order.payment_label}")
    builder.line()
    builder.separator()

    # Footer
    if business.vat_number:
        builder.line()
        builder.line(f"BTW: {business.vat_number}")
    builder.line()
    builder.raw(commands.BOLD_ON)
    builder.line("Bedankt voor uw bezoek!")
    builder.raw(commands.BOLD_OFF)
    if business.website:
        builder.line(business.website)

    _finish(builder, feed=4)
    return builder.output


def encode_test_print(
    endpoint: PrinterEndpoint,
    layout: ReceiptLayout | None = None,
    now: datetime | None = None,
) -> bytes:
    """Encode the short self-test ticket naming the printer it was sent to."""
    builder = ReceiptBuilder(layout or get_layout())
    now = now or datetime.now()

    builder.raw(commands.INITIALIZE, commands.CODE_PAGE_PC858)
    builder.raw(commands.ALIGN_CENTER, commands.BOLD_ON, commands.SIZE_DOUBLE_HEIGHT)
    builder.line("TEST PRINT")
    builder.raw(commands.SIZE_NORMAL, commands.BOLD_OFF)
    builder.separator()
    builder.line("Vysion Print")
    builder.line(f"Printer: {endpoint}")
    builder.separator()
    builder.line("Als je dit ziet,")
    builder.line("werkt alles!")
    builder.separator()
    builder.line(now.strftime("%d-%m-%Y %H:%M:%S"))
    builder.raw(commands.LINE_FEED * 3, commands.CUT_FULL)
    return builder.output


def encode_drawer(pin: int = 2) -> bytes:
    """Initialize, then pulse the cash drawer connector."""
    return commands.INITIALIZE + commands.drawer_kick(pin)
