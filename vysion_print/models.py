"""Order, business and printer models."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from vysion_print.config import DEFAULT_PRINTER_PORT
from vysion_print.exceptions import ProtocolError


class OrderType(Enum):
    """How the order leaves the counter."""

    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"
    OTHER = "OTHER"

    @classmethod
    def from_value(cls, value: Any) -> OrderType:
        """Map a raw value to a member, OTHER when it is not one of ours."""
        try:
            member = cls(value)
        except ValueError:
            return cls.OTHER
        return member

    @property
    def label(self) -> str:
        return ORDER_TYPE_LABELS[self][1]

    @property
    def banner(self) -> str:
        icon, label = ORDER_TYPE_LABELS[self]
        return f"{icon} {label}" if icon else label


ORDER_TYPE_LABELS = {
    OrderType.DINE_IN: ("(Y)", "HIER OPETEN"),
    OrderType.TAKEAWAY: (">>", "AFHALEN"),
    OrderType.DELIVERY: ("=>", "BEZORGEN"),
    OrderType.OTHER: ("", "BESTELLING"),
}


class PaymentMethod(Enum):
    CASH = "CASH"
    CARD = "CARD"
    IDEAL = "IDEAL"
    BANCONTACT = "BANCONTACT"
    OTHER = "OTHER"

    @classmethod
    def from_value(cls, value: Any) -> PaymentMethod:
        try:
            member = cls(value)
        except ValueError:
            return cls.OTHER
        return member


PAYMENT_LABELS = {
    PaymentMethod.CASH: "Contant",
    PaymentMethod.CARD: "PIN/Kaart",
    PaymentMethod.IDEAL: "iDEAL",
    PaymentMethod.BANCONTACT: "Bancontact",
}


def _amount(value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def _text(value: Any) -> str | None:
    """Non-empty string or None; numbers are accepted and stringified."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _quantity(value: Any) -> int:
    if isinstance(value, bool):
        return 1
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return 1


@dataclass(frozen=True)
class OrderItem:
    """One receipt line and the options chosen for it."""

    name: str
    quantity: int = 1
    total_price: Decimal = Decimal("0")
    selected_options: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: Any) -> OrderItem:
        if not isinstance(data, dict):
            raise ProtocolError("Order item must be an object")

        options = []
        raw_options = data.get("selectedOptions")
        if isinstance(raw_options, list):
            for option in raw_options:
                if isinstance(option, dict):
                    option = option.get("optionName")
                name = _text(option)
                if name:
                    options.append(name)

        return cls(
            name=_text(data.get("name")) or "Item",
            quantity=_quantity(data.get("quantity")),
            total_price=_amount(data.get("totalPrice")),
            selected_options=tuple(options),
        )


@dataclass(frozen=True)
class Order:
    """
    A single order as received from the point-of-sale client.

    Only lives for the duration of one print request.
    """

    order_number: int = 0
    order_type: OrderType = OrderType.TAKEAWAY
    items: tuple[OrderItem, ...] = ()
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_method_raw: str = "CASH"
    staff_name: str | None = None
    table_number: str | None = None

    @property
    def payment_label(self) -> str:
        """Display label, the raw value for methods we do not know."""
        return PAYMENT_LABELS.get(self.payment_method, self.payment_method_raw)

    @classmethod
    def from_json(cls, data: Any) -> Order:
        """
        Build an order from the loosely typed JSON payload.

        Missing or mistyped fields fall back to defaults; only a payload that
        is not an object (or whose items are not a list of objects) is rejected.

        Raises:
            ProtocolError: If the payload has the wrong shape.

        """
        if not isinstance(data, dict):
            raise ProtocolError("Order must be an object")

        raw_items = data.get("items", [])
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise ProtocolError("Order items must be a list")

        order_number = data.get("orderNumber", 0)
        if isinstance(order_number, bool) or not isinstance(order_number, int):
            order_number = 0

        order_type = data.get("orderType")
        payment = _text(data.get("paymentMethod")) or "CASH"

        return cls(
            order_number=order_number,
            order_type=OrderType.from_value(order_type) if order_type is not None else OrderType.TAKEAWAY,
            items=tuple(OrderItem.from_json(item) for item in raw_items),
            subtotal=_amount(data.get("subtotal")),
            tax=_amount(data.get("tax")),
            total=_amount(data.get("total")),
            payment_method=PaymentMethod.from_value(payment),
            payment_method_raw=payment,
            staff_name=_text(data.get("staffName")),
            table_number=_text(data.get("tableNumber")),
        )


@dataclass(frozen=True)
class BusinessProfile:
    """Receipt header and footer details. Every field is optional."""

    name: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    vat_number: str | None = None
    website: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> BusinessProfile:
        if not isinstance(data, dict):
            return cls()
        return cls(
            name=_text(data.get("name")),
            address=_text(data.get("address")),
            city=_text(data.get("city")),
            postal_code=_text(data.get("postalCode")),
            phone=_text(data.get("phone")),
            vat_number=_text(data.get("vatNumber")),
            website=_text(data.get("website")),
        )


@dataclass(frozen=True)
class PrinterEndpoint:
    ip: str
    port: int = DEFAULT_PRINTER_PORT

    def __str__(self) -> str:
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True)
class DiscoveredPrinter:
    """A host that accepted a TCP connection on the printer port."""

    ip: str
    port: int
    latency: float  # seconds until the connection was ready

    @property
    def display_name(self) -> str:
        return f"Printer op {self.ip}"

    def endpoint(self) -> PrinterEndpoint:
        return PrinterEndpoint(self.ip, self.port)


@dataclass(frozen=True)
class ServerStatus:
    is_running: bool = False
    print_count: int = 0
    last_print_time: datetime | None = None
    last_error: str | None = None


class ServerState:
    """Counters shared by concurrent requests; all access goes through the lock."""

    def __init__(self):
        self._status = ServerStatus()
        self._lock = threading.Lock()

    def snapshot(self) -> ServerStatus:
        with self._lock:
            return self._status

    def set_running(self, running: bool) -> None:
        with self._lock:
            self._status = replace(self._status, is_running=running)

    def record_print(self, when: datetime | None = None) -> None:
        """Count one logically successful print or test print."""
        with self._lock:
            self._status = replace(
                self._status,
                print_count=self._status.print_count + 1,
                last_print_time=when or datetime.now(),
                last_error=None,
            )

    def record_error(self, message: str) -> None:
        with self._lock:
            self._status = replace(self._status, last_error=message)

    def clear_error(self) -> None:
        with self._lock:
            self._status = replace(self._status, last_error=None)

    @property
    def print_count(self) -> int:
        return self.snapshot().print_count

    @property
    def is_running(self) -> bool:
        return self.snapshot().is_running
